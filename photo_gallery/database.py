import logging
import os
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Database URL from environment or default to local SQLite file
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./photos.db"

# Base class for ORM models
Base = declarative_base()


def normalize_database_url(url: str) -> str:
    """Rewrite sync driver URLs to their async equivalents."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE and FK violations unless asked
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_url(url: str) -> AsyncEngine:
    """
    Build the process-wide async engine (and its connection pool).

    In-memory SQLite databases use a StaticPool so that every checkout sees
    the same database.
    """
    url = normalize_database_url(url)
    kwargs: dict[str, Any] = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or "mode=memory" in url or url == "sqlite+aiosqlite://":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    db_engine = create_async_engine(url, **kwargs)
    if db_engine.dialect.name == "sqlite":
        event.listen(db_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return db_engine


def create_engine_from_env() -> AsyncEngine:
    return create_engine_from_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))


def make_session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, autoflush=False, expire_on_commit=False)


engine: AsyncEngine = create_engine_from_env()

# Session factory for DB sessions
SessionLocal = make_session_factory(engine)


def _create_all_default(db_engine: AsyncEngine) -> bool:
    flag = os.getenv("DB_CREATE_ALL")
    if flag is None:
        return db_engine.dialect.name == "sqlite"
    return flag.lower() in {"1", "true", "yes"}


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """
    Verify the relational store is reachable and optionally create tables.

    Any connection error propagates: the metadata store is mandatory, so a
    failed first connection must stop the application from starting.
    """
    db_engine = db_engine or engine
    # Import models so their tables are registered on Base.metadata
    from photo_gallery import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if _create_all_default(db_engine):
            await conn.run_sync(Base.metadata.create_all)
    logger.info("Connected to database (%s)", db_engine.dialect.name)
