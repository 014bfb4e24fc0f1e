import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from photo_gallery.coordinator import (
    InvalidInputError,
    MediaCoordinator,
    PhotoNotFoundError,
    UploadFailedError,
)
from photo_gallery.dao import MetadataStoreError
from photo_gallery.deps import get_coordinator
from photo_gallery.schemas import (
    CommentCreateRequest,
    CommentResponse,
    MessageResponse,
    PhotoResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


@router.get("/photos", response_model=list[PhotoResponse])
async def get_photos(
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
) -> JSONResponse | list[PhotoResponse]:
    try:
        photos = await coordinator.list_photos()
    except MetadataStoreError:
        logger.exception("Error fetching photos")
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
    return [PhotoResponse.model_validate(photo) for photo in photos]


@router.post("/photos", response_model=PhotoResponse, status_code=HTTP_201_CREATED)
async def create_photo(
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
    title: Annotated[str | None, Form()] = None,
    caption: Annotated[str | None, Form()] = None,
    location: Annotated[str | None, Form()] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> JSONResponse | PhotoResponse:
    if image is None:
        return _error(HTTP_400_BAD_REQUEST, "No image file provided")
    if not title:
        return _error(HTTP_400_BAD_REQUEST, "Title is required")
    data = await image.read()
    try:
        photo = await coordinator.create_photo(
            title=title,
            caption=caption,
            location=location,
            data=data,
            file_name=image.filename or "upload",
            content_type=image.content_type or DEFAULT_CONTENT_TYPE,
        )
    except InvalidInputError as exc:
        return _error(HTTP_400_BAD_REQUEST, str(exc))
    except (UploadFailedError, MetadataStoreError):
        logger.exception("Error uploading photo")
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process request")
    return PhotoResponse.model_validate(photo)


@router.delete("/photos/{photo_id}", response_model=MessageResponse)
async def delete_photo(
    photo_id: int,
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
) -> JSONResponse | MessageResponse:
    try:
        await coordinator.delete_photo(photo_id)
    except PhotoNotFoundError:
        return _error(HTTP_404_NOT_FOUND, "Photo not found")
    except MetadataStoreError:
        logger.exception("Error deleting photo %s", photo_id)
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete photo")
    return MessageResponse(message="Photo deleted successfully")


@router.post(
    "/photos/{photo_id}/comments",
    response_model=CommentResponse,
    status_code=HTTP_201_CREATED,
)
async def add_comment(
    photo_id: int,
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
    body: Annotated[CommentCreateRequest | None, Body()] = None,
) -> JSONResponse | CommentResponse:
    comment_text = body.comment_text if body is not None else None
    try:
        comment = await coordinator.add_comment(photo_id, comment_text or "")
    except InvalidInputError:
        return _error(HTTP_400_BAD_REQUEST, "Comment text is required")
    except PhotoNotFoundError:
        return _error(HTTP_404_NOT_FOUND, "Photo not found")
    except MetadataStoreError:
        logger.exception("Error adding comment to photo %s", photo_id)
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Failed to add comment")
    return CommentResponse.model_validate(comment)


@router.get("/photos/{photo_id}/comments", response_model=list[CommentResponse])
async def get_comments(
    photo_id: int,
    coordinator: Annotated[MediaCoordinator, Depends(get_coordinator)],
) -> JSONResponse | list[CommentResponse]:
    try:
        comments = await coordinator.list_comments(photo_id)
    except MetadataStoreError:
        logger.exception("Error fetching comments for photo %s", photo_id)
        return _error(HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
    return [CommentResponse.model_validate(comment) for comment in comments]
