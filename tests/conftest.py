import logging
import os
from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime
from pathlib import Path

# Point the application at throwaway stores before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STORAGE_BACKEND", "filesystem")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from photo_gallery.coordinator import MediaCoordinator  # noqa: E402
from photo_gallery.dao import CommentDAO, PhotoDAO  # noqa: E402
from photo_gallery.database import (  # noqa: E402
    Base,
    create_engine_from_url,
    make_session_factory,
)
from photo_gallery.deps import get_coordinator  # noqa: E402
from photo_gallery.main import app  # noqa: E402
from photo_gallery.storage import (  # noqa: E402
    FileSystemStorage,
    PhotoStorage,
    make_object_name,
)

# Configure basic logging for tests
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE_URL = "sqlite+aiosqlite://"
TEST_BASE_URL = "http://testserver/media"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 1020


class MemoryStorage(PhotoStorage):
    """In-memory object store that records every call."""

    def __init__(self, container: str = "photos") -> None:
        self.container = container
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.modified: dict[str, datetime] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_put: Exception | None = None
        self.fail_delete = False

    def url_for(self, key: str) -> str:
        return f"https://blobs.example.com/{self.container}/{key}"

    def put(self, data: bytes, original_name: str, content_type: str) -> str:
        self.calls.append(("put", original_name))
        if self.fail_put is not None:
            raise self.fail_put
        key = make_object_name(original_name)
        self.objects[key] = data
        self.content_types[key] = content_type
        self.modified[key] = datetime.now(UTC)
        return self.url_for(key)

    def delete(self, url_or_key: str) -> None:
        self.calls.append(("delete", url_or_key))
        if self.fail_delete:
            logger.error("Simulated delete failure for %s", url_or_key)
            return
        key = self.key_for(url_or_key)
        self.objects.pop(key, None)
        self.modified.pop(key, None)

    def list_objects(self) -> dict[str, datetime]:
        self.calls.append(("list", ""))
        return dict(self.modified)

    def exists(self, url_or_key: str) -> bool:
        return self.key_for(url_or_key) in self.objects


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def sessions() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_engine_from_url(IN_MEMORY_DATABASE_URL)
    await create_tables(engine)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fs_storage(tmp_path: Path) -> FileSystemStorage:
    return FileSystemStorage(
        base_path=str(tmp_path), container="photos", public_base_url=TEST_BASE_URL
    )


@pytest_asyncio.fixture
async def coordinator(
    sessions: async_sessionmaker[AsyncSession], memory_storage: MemoryStorage
) -> MediaCoordinator:
    return MediaCoordinator(
        storage=memory_storage,
        photos=PhotoDAO(sessions),
        comments=CommentDAO(sessions),
    )


@pytest.fixture
def api(fs_storage: FileSystemStorage) -> Generator[tuple[TestClient, MediaCoordinator], None, None]:
    """
    TestClient wired to a fresh in-memory database and a tmp_path storage.

    The database is created inside the client's event loop so every request
    shares it.
    """
    engine = create_engine_from_url(IN_MEMORY_DATABASE_URL)
    sessions = make_session_factory(engine)
    test_coordinator = MediaCoordinator(
        storage=fs_storage,
        photos=PhotoDAO(sessions),
        comments=CommentDAO(sessions),
    )
    app.dependency_overrides[get_coordinator] = lambda: test_coordinator
    try:
        with TestClient(app) as test_client:
            test_client.portal.call(create_tables, engine)
            yield test_client, test_coordinator
            test_client.portal.call(engine.dispose)
    finally:
        del app.dependency_overrides[get_coordinator]


@pytest.fixture
def client(api: tuple[TestClient, MediaCoordinator]) -> TestClient:
    return api[0]

