from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photo_gallery.dao import (
    CommentDAO,
    ForeignKeyViolationError,
    MetadataStoreError,
    PhotoDAO,
)
from photo_gallery.models import Comment, Photo

pytestmark = pytest.mark.asyncio

IMAGE_URL = "https://blobs.example.com/photos/1-abc.jpg"


async def test_insert_photo_returns_persisted_row(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    photo = await dao.insert_photo("Sunset", "Golden hour", "Lisbon", IMAGE_URL)
    assert photo.id is not None
    assert photo.created_at is not None
    assert photo.title == "Sunset"
    assert photo.caption == "Golden hour"
    assert photo.location == "Lisbon"
    assert photo.image_url == IMAGE_URL


async def test_insert_photo_optional_fields_null(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    photo = await dao.insert_photo("Untitled", None, None, IMAGE_URL)
    assert photo.caption is None
    assert photo.location is None


async def test_select_photos_newest_first(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    base = datetime(2024, 1, 1, 12, 0, 0)
    async with sessions() as session:
        session.add_all(
            [
                Photo(title="old", image_url="u1", created_at=base),
                Photo(title="newest", image_url="u3", created_at=base + timedelta(hours=2)),
                Photo(title="middle", image_url="u2", created_at=base + timedelta(hours=1)),
            ]
        )
        await session.commit()
    photos = await PhotoDAO(sessions).select_photos()
    assert [p.title for p in photos] == ["newest", "middle", "old"]
    stamps = [p.created_at for p in photos]
    assert stamps == sorted(stamps, reverse=True)


async def test_select_photos_same_timestamp_latest_insert_first(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    first = await dao.insert_photo("first", None, None, "u1")
    second = await dao.insert_photo("second", None, None, "u2")
    photos = await dao.select_photos()
    assert [p.id for p in photos][:2] == [second.id, first.id]


async def test_select_photo_image_url(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    photo = await dao.insert_photo("Sunset", None, None, IMAGE_URL)
    assert await dao.select_photo_image_url(photo.id) == IMAGE_URL
    assert await dao.select_photo_image_url(9999) is None


async def test_select_photo_image_urls(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    await dao.insert_photo("a", None, None, "u1")
    await dao.insert_photo("b", None, None, "u2")
    assert await dao.select_photo_image_urls() == {"u1", "u2"}


async def test_delete_photo_reports_rows_affected(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = PhotoDAO(sessions)
    photo = await dao.insert_photo("Sunset", None, None, IMAGE_URL)
    assert await dao.delete_photo(photo.id) == 1
    assert await dao.select_photo_image_url(photo.id) is None
    assert await dao.delete_photo(photo.id) == 0


async def test_delete_photo_cascades_comments(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    photos = PhotoDAO(sessions)
    comments = CommentDAO(sessions)
    photo = await photos.insert_photo("Sunset", None, None, IMAGE_URL)
    await comments.insert_comment(photo.id, "one")
    await comments.insert_comment(photo.id, "two")
    await photos.delete_photo(photo.id)
    async with sessions() as session:
        remaining = (
            await session.scalars(select(Comment).where(Comment.photo_id == photo.id))
        ).all()
    assert remaining == []


async def test_insert_comment_returns_row(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    photo = await PhotoDAO(sessions).insert_photo("Sunset", None, None, IMAGE_URL)
    comment = await CommentDAO(sessions).insert_comment(photo.id, "Nice!")
    assert comment.id is not None
    assert comment.photo_id == photo.id
    assert comment.comment_text == "Nice!"
    assert comment.created_at is not None


async def test_insert_comment_unknown_photo_is_foreign_key_violation(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    dao = CommentDAO(sessions)
    with pytest.raises(ForeignKeyViolationError):
        await dao.insert_comment(424242, "orphan comment")
    assert await dao.select_comments(424242) == []


async def test_select_comments_newest_first(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    photo = await PhotoDAO(sessions).insert_photo("Sunset", None, None, IMAGE_URL)
    base = datetime(2024, 1, 1, 12, 0, 0)
    async with sessions() as session:
        session.add_all(
            [
                Comment(photo_id=photo.id, comment_text="early", created_at=base),
                Comment(
                    photo_id=photo.id,
                    comment_text="late",
                    created_at=base + timedelta(minutes=5),
                ),
            ]
        )
        await session.commit()
    comments = await CommentDAO(sessions).select_comments(photo.id)
    assert [c.comment_text for c in comments] == ["late", "early"]


async def test_select_comments_empty_for_unknown_photo(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    assert await CommentDAO(sessions).select_comments(9999) == []


async def test_store_errors_are_wrapped(
    sessions: async_sessionmaker[AsyncSession],
) -> None:
    async with sessions() as session:
        await session.run_sync(lambda s: Photo.__table__.drop(s.connection()))
        await session.commit()
    dao = PhotoDAO(sessions)
    with pytest.raises(MetadataStoreError) as exc_info:
        await dao.select_photos()
    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert not isinstance(exc_info.value, ForeignKeyViolationError)
