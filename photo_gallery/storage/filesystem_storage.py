import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from .photo_storage import (
    DEFAULT_CONTAINER,
    ObjectStoreError,
    PhotoStorage,
    StoreUnavailableError,
    WriteFailedError,
    make_object_name,
)

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "http://localhost:4000/media"


class FileSystemStorage(PhotoStorage):
    """
    Photo storage using the local filesystem.

    Objects live in ``{base_path}/{container}/{key}`` and are served from
    ``{public_base_url}/{container}/{key}`` (the app mounts the base path
    as static files when this backend is active).
    """

    def __init__(
        self,
        base_path: str | None = None,
        container: str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self.base_path = Path(base_path or os.getenv("STORAGE_ROOT", "./media"))
        self.container = container or os.getenv("CONTAINER_NAME", DEFAULT_CONTAINER)
        base_url = public_base_url or os.getenv(
            "PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL
        )
        self.public_base_url = base_url.rstrip("/")
        self.container_path: Path | None = None
        try:
            container_path = self.base_path / self.container
            container_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Filesystem storage initialisation failed")
        else:
            self.container_path = container_path
            logger.info("Using filesystem storage at %s", container_path)

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{self.container}/{key}"

    def put(self, data: bytes, original_name: str, content_type: str) -> str:
        if self.container_path is None:
            error_message = "Filesystem storage not initialized"
            raise StoreUnavailableError(error_message)
        key = make_object_name(original_name)
        try:
            (self.container_path / key).write_bytes(data)
        except OSError as exc:
            error_message = f"Failed to write {key}: {exc}"
            raise WriteFailedError(error_message) from exc
        logger.info("Stored %s (%s, %d bytes)", key, content_type, len(data))
        return self.url_for(key)

    def delete(self, url_or_key: str) -> None:
        if self.container_path is None:
            logger.error("Filesystem storage not initialized, cannot delete %s", url_or_key)
            return
        key = self.key_for(url_or_key)
        target = (self.container_path / key).resolve()
        if target.parent != self.container_path.resolve():
            logger.warning("Refusing to delete %s outside the container", key)
            return
        try:
            target.unlink(missing_ok=True)
        except OSError:
            logger.exception("Error deleting %s", key)
            return
        logger.info("Deleted %s", key)

    def list_objects(self) -> dict[str, datetime]:
        if self.container_path is None:
            error_message = "Filesystem storage not initialized"
            raise StoreUnavailableError(error_message)
        try:
            return {
                p.name: datetime.fromtimestamp(p.stat().st_mtime, tz=UTC)
                for p in self.container_path.iterdir()
                if p.is_file()
            }
        except OSError as exc:
            error_message = f"Failed to list {self.container_path}: {exc}"
            raise ObjectStoreError(error_message) from exc
