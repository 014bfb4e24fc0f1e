"""
Media coordinator: sequences the object store and the metadata store.

Consistency contract
--------------------
* create: the blob is written before the row, so readers never see a photo
  whose ``image_url`` is missing. A failed insert leaves an invisible orphan
  blob (optionally removed right away, otherwise by :meth:`reconcile`).
* delete: the blob is removed before the row. Blob removal is best effort
  and never fails the request; the row deletion is what the caller sees.
* comment: the relational store's foreign key decides whether the photo
  exists.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from starlette.concurrency import run_in_threadpool

from photo_gallery.dao import (
    CommentDAO,
    ForeignKeyViolationError,
    MetadataStoreError,
    PhotoDAO,
)
from photo_gallery.models import (
    CAPTION_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Comment,
    Photo,
)
from photo_gallery.storage import ObjectStoreError, PhotoStorage

logger = logging.getLogger(__name__)

DEFAULT_ORPHAN_MIN_AGE = timedelta(hours=1)


class CoordinatorError(Exception):
    """Base exception for media coordinator failures."""


class InvalidInputError(CoordinatorError):
    """The request was rejected before any store was touched."""


class PhotoNotFoundError(CoordinatorError):
    """The referenced photo does not exist."""


class UploadFailedError(CoordinatorError):
    """The image could not be written to the object store; no row was written."""


@dataclass
class ReconcileReport:
    scanned: int = 0
    skipped_recent: int = 0
    orphaned: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def _check_length(name: str, value: str | None, limit: int) -> None:
    if value is not None and len(value) > limit:
        error_message = f"{name} must be at most {limit} characters"
        raise InvalidInputError(error_message)


class MediaCoordinator:
    """Orchestrates create/delete/comment across the two stores."""

    def __init__(
        self,
        storage: PhotoStorage,
        photos: PhotoDAO,
        comments: CommentDAO,
        cleanup_on_failure: bool = False,
    ) -> None:
        self.storage = storage
        self.photos = photos
        self.comments = comments
        self.cleanup_on_failure = cleanup_on_failure

    async def create_photo(
        self,
        title: str,
        caption: str | None,
        location: str | None,
        data: bytes,
        file_name: str,
        content_type: str,
    ) -> Photo:
        if not title or not title.strip():
            error_message = "Title is required"
            raise InvalidInputError(error_message)
        if not data:
            error_message = "No image file provided"
            raise InvalidInputError(error_message)
        caption = _blank_to_none(caption)
        location = _blank_to_none(location)
        _check_length("Title", title, TITLE_MAX_LENGTH)
        _check_length("Caption", caption, CAPTION_MAX_LENGTH)
        _check_length("Location", location, LOCATION_MAX_LENGTH)

        try:
            image_url = await run_in_threadpool(
                self.storage.put, data, file_name, content_type
            )
        except ObjectStoreError as exc:
            error_message = f"Image upload failed: {exc}"
            raise UploadFailedError(error_message) from exc

        try:
            return await self.photos.insert_photo(
                title=title,
                caption=caption,
                location=location,
                image_url=image_url,
            )
        except MetadataStoreError:
            logger.warning("Photo row insert failed; %s is now an orphan", image_url)
            if self.cleanup_on_failure:
                await run_in_threadpool(self.storage.delete, image_url)
            raise

    async def delete_photo(self, photo_id: int) -> None:
        image_url = await self.photos.select_photo_image_url(photo_id)
        if image_url is None:
            error_message = f"Photo {photo_id} not found"
            raise PhotoNotFoundError(error_message)

        if image_url:
            await run_in_threadpool(self.storage.delete, image_url)

        deleted = await self.photos.delete_photo(photo_id)
        if not deleted:
            # Someone else removed the row between lookup and delete
            error_message = f"Photo {photo_id} not found"
            raise PhotoNotFoundError(error_message)

    async def add_comment(self, photo_id: int, comment_text: str) -> Comment:
        if not comment_text or not comment_text.strip():
            error_message = "Comment text is required"
            raise InvalidInputError(error_message)
        try:
            return await self.comments.insert_comment(photo_id, comment_text)
        except ForeignKeyViolationError as exc:
            error_message = f"Photo {photo_id} not found"
            raise PhotoNotFoundError(error_message) from exc

    async def list_photos(self) -> Sequence[Photo]:
        return await self.photos.select_photos()

    async def list_comments(self, photo_id: int) -> Sequence[Comment]:
        return await self.comments.select_comments(photo_id)

    async def reconcile(
        self,
        dry_run: bool = False,
        min_age: timedelta = DEFAULT_ORPHAN_MIN_AGE,
    ) -> ReconcileReport:
        """
        Remove objects that no photo row references.

        Objects modified within ``min_age`` are left alone: they may belong
        to an upload whose row has not been committed yet.
        """
        objects = await run_in_threadpool(self.storage.list_objects)
        image_urls = await self.photos.select_photo_image_urls()
        parsed_keys = {self.storage.key_for(url) for url in image_urls}
        cutoff = datetime.now(UTC) - min_age

        report = ReconcileReport(scanned=len(objects))
        for key, modified in sorted(objects.items()):
            if self.storage.url_for(key) in image_urls or key in parsed_keys:
                continue
            if modified.tzinfo is None:
                modified = modified.replace(tzinfo=UTC)
            if modified > cutoff:
                report.skipped_recent += 1
                continue
            report.orphaned.append(key)
            if not dry_run:
                await run_in_threadpool(self.storage.delete, key)
                report.deleted.append(key)

        logger.info(
            "Reconcile scanned %d objects: %d orphaned, %d deleted, %d too recent",
            report.scanned,
            len(report.orphaned),
            len(report.deleted),
            report.skipped_recent,
        )
        return report
