import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import PurePath
from uuid import uuid4

DEFAULT_CONTAINER = "photos"


class ObjectStoreError(Exception):
    """Base exception for object store failures."""


class StoreUnavailableError(ObjectStoreError):
    """The storage client was never initialized (e.g. bad connection settings)."""


class WriteFailedError(ObjectStoreError):
    """The storage backend reported an I/O error."""


def make_object_name(original_name: str) -> str:
    """
    Return a collision-free object name that keeps the original extension.

    The name is a millisecond timestamp followed by a random UUID, so two
    concurrent uploads of the same file never map to the same object.
    Directory parts of the client-supplied name are ignored, and an extension
    that is not plain ASCII letters and digits is dropped.
    """
    stem = f"{int(time.time() * 1000)}-{uuid4().hex}"
    extension = PurePath(original_name).name.rsplit(".", 1)[-1]
    if extension.isascii() and extension.isalnum():
        return f"{stem}.{extension}"
    return stem


def extract_key(url_or_key: str, container: str) -> str:
    """
    Return the object key from either a bare key or a full object URL.

    A URL is recognised by the ``/{container}/`` path segment; everything
    after its first occurrence is the key.
    """
    marker = f"/{container}/"
    _, found, key = url_or_key.partition(marker)
    if found and key:
        return key
    return url_or_key


class PhotoStorage(ABC):
    """
    Interface for photo object storage backends.
    """

    container: str = DEFAULT_CONTAINER

    @abstractmethod
    def put(self, data: bytes, original_name: str, content_type: str) -> str:
        """
        Store the bytes under a freshly generated name and return its public URL.

        Raises StoreUnavailableError or WriteFailedError; never retries.
        """
        error_message = "put not implemented"
        raise NotImplementedError(error_message)

    @abstractmethod
    def delete(self, url_or_key: str) -> None:
        """
        Delete the object addressed by a key or URL, if it exists.

        Best effort: failures are logged and never raised.
        """
        error_message = "delete not implemented"
        raise NotImplementedError(error_message)

    @abstractmethod
    def list_objects(self) -> dict[str, datetime]:
        """
        Return every object key in the container mapped to its last-modified time.
        """
        error_message = "list_objects not implemented"
        raise NotImplementedError(error_message)

    @abstractmethod
    def url_for(self, key: str) -> str:
        """
        Return the public URL of the object stored under key.
        """
        error_message = "url_for not implemented"
        raise NotImplementedError(error_message)

    def key_for(self, url_or_key: str) -> str:
        """
        Return the key of an object given its URL or bare key.

        URLs built by this backend are matched on their exact prefix; anything
        else falls back to the container path segment.
        """
        prefix = self.url_for("")
        if url_or_key.startswith(prefix) and len(url_or_key) > len(prefix):
            return url_or_key[len(prefix) :]
        return extract_key(url_or_key, self.container)
