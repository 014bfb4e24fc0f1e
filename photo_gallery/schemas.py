from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PhotoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    caption: str | None
    location: str | None
    image_url: str
    created_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    photo_id: int
    comment_text: str
    created_at: datetime


class CommentCreateRequest(BaseModel):
    comment_text: str | None = None


class MessageResponse(BaseModel):
    message: str


class ReconcileResponse(BaseModel):
    status: str
    dry_run: bool
    scanned: int
    skipped_recent: int
    orphaned: list[str]
    deleted: list[str]
