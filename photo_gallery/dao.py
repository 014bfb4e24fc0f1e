from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from photo_gallery.models import Comment, Photo

# Native error codes meaning "referenced row does not exist"
_PG_FOREIGN_KEY_VIOLATION = "23503"
_MSSQL_FOREIGN_KEY_VIOLATION = 547


class MetadataStoreError(Exception):
    """Raised when the relational store fails."""


class ForeignKeyViolationError(MetadataStoreError):
    """Raised when a row references a photo that does not exist."""


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _PG_FOREIGN_KEY_VIOLATION:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] == _MSSQL_FOREIGN_KEY_VIOLATION:
        return True
    return "FOREIGN KEY constraint" in str(orig)


class PhotoDAO:
    """Data Access Object for Photo."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self.sessions = sessions

    async def insert_photo(
        self,
        title: str,
        caption: str | None,
        location: str | None,
        image_url: str,
    ) -> Photo:
        photo = Photo(title=title, caption=caption, location=location, image_url=image_url)
        async with self.sessions() as session:
            try:
                session.add(photo)
                await session.commit()
                await session.refresh(photo)
            except SQLAlchemyError as exc:
                error_message = f"Failed to insert photo: {exc}"
                raise MetadataStoreError(error_message) from exc
        return photo

    async def select_photos(self) -> Sequence[Photo]:
        stmt = select(Photo).order_by(Photo.created_at.desc(), Photo.id.desc())
        async with self.sessions() as session:
            try:
                result = await session.scalars(stmt)
                return result.all()
            except SQLAlchemyError as exc:
                error_message = f"Failed to list photos: {exc}"
                raise MetadataStoreError(error_message) from exc

    async def select_photo_image_url(self, photo_id: int) -> str | None:
        stmt = select(Photo.image_url).where(Photo.id == photo_id)
        async with self.sessions() as session:
            try:
                return await session.scalar(stmt)
            except SQLAlchemyError as exc:
                error_message = f"Failed to look up photo {photo_id}: {exc}"
                raise MetadataStoreError(error_message) from exc

    async def select_photo_image_urls(self) -> set[str]:
        async with self.sessions() as session:
            try:
                result = await session.scalars(select(Photo.image_url))
                return set(result.all())
            except SQLAlchemyError as exc:
                error_message = f"Failed to list photo URLs: {exc}"
                raise MetadataStoreError(error_message) from exc

    async def delete_photo(self, photo_id: int) -> int:
        """Delete the photo row (comments cascade) and return rows affected."""
        async with self.sessions() as session:
            try:
                result = await session.execute(delete(Photo).where(Photo.id == photo_id))
                await session.commit()
            except SQLAlchemyError as exc:
                error_message = f"Failed to delete photo {photo_id}: {exc}"
                raise MetadataStoreError(error_message) from exc
        return result.rowcount


class CommentDAO:
    """Data Access Object for Comment."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self.sessions = sessions

    async def insert_comment(self, photo_id: int, comment_text: str) -> Comment:
        comment = Comment(photo_id=photo_id, comment_text=comment_text)
        async with self.sessions() as session:
            try:
                session.add(comment)
                await session.commit()
                await session.refresh(comment)
            except IntegrityError as exc:
                if _is_foreign_key_violation(exc):
                    error_message = f"Photo {photo_id} does not exist"
                    raise ForeignKeyViolationError(error_message) from exc
                error_message = f"Failed to insert comment: {exc}"
                raise MetadataStoreError(error_message) from exc
            except SQLAlchemyError as exc:
                error_message = f"Failed to insert comment: {exc}"
                raise MetadataStoreError(error_message) from exc
        return comment

    async def select_comments(self, photo_id: int) -> Sequence[Comment]:
        stmt = (
            select(Comment)
            .where(Comment.photo_id == photo_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        async with self.sessions() as session:
            try:
                result = await session.scalars(stmt)
                return result.all()
            except SQLAlchemyError as exc:
                error_message = f"Failed to list comments for photo {photo_id}: {exc}"
                raise MetadataStoreError(error_message) from exc
