import os

from .filesystem_storage import FileSystemStorage
from .photo_storage import (
    ObjectStoreError,
    PhotoStorage,
    StoreUnavailableError,
    WriteFailedError,
    extract_key,
    make_object_name,
)
from .s3_storage import S3Storage

__all__ = [
    "FileSystemStorage",
    "ObjectStoreError",
    "PhotoStorage",
    "S3Storage",
    "StoreUnavailableError",
    "WriteFailedError",
    "extract_key",
    "get_storage_backend",
    "make_object_name",
]


def get_storage_backend() -> PhotoStorage:
    """
    Factory for storage backend based on STORAGE_BACKEND env var.
    Defaults to FileSystemStorage.

    Supported values (case-insensitive):
      - 'filesystem'
      - 's3'
    """
    backend = os.getenv("STORAGE_BACKEND", "filesystem").lower()
    if backend in ("filesystem", ""):  # default
        return FileSystemStorage()
    if backend == "s3":
        return S3Storage()
    error_message = f"Unknown storage backend: {backend}"
    raise ValueError(error_message)
