import os
from functools import lru_cache

from photo_gallery.coordinator import MediaCoordinator
from photo_gallery.dao import CommentDAO, PhotoDAO
from photo_gallery.database import SessionLocal
from photo_gallery.storage import PhotoStorage, get_storage_backend


@lru_cache
def get_storage() -> PhotoStorage:
    """
    Dependency returning the process-wide storage backend.
    The backend client is built once, on first use.
    """
    return get_storage_backend()


def get_coordinator() -> MediaCoordinator:
    """
    Dependency that wires the media coordinator to both stores.
    Tests override this to inject in-memory databases or fake storage.
    """
    cleanup = os.getenv("ORPHAN_CLEANUP_ON_FAILURE", "false").lower() in {
        "1",
        "true",
        "yes",
    }
    return MediaCoordinator(
        storage=get_storage(),
        photos=PhotoDAO(SessionLocal),
        comments=CommentDAO(SessionLocal),
        cleanup_on_failure=cleanup,
    )
