"""
Bundle Storage Contract

Object storage is an external collaborator. The publication pipeline only
needs two operations from it: write a blob under a path that must not exist
yet, and mint a time-limited retrieval URL for a stored blob.
"""

from typing import Protocol


class StorageError(Exception):
    """Raised when the storage backend fails to complete an operation."""

    pass


class StorageConflictError(StorageError):
    """Raised when writing to a path that already holds an object.

    Bundle paths are immutable once written; backends must never overwrite.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Object already exists at {path}")


class BundleStorage(Protocol):
    """Storage collaborator used by the version pipeline."""

    def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store data at path and return the stored path.

        Raises:
            StorageConflictError: If an object already exists at path
            StorageError: On any other backend failure
        """
        ...

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        """Return a URL that retrieves the object at path until the TTL elapses.

        Raises:
            StorageError: If the URL cannot be issued
        """
        ...

    def public_url(self, path: str) -> str:
        """Return a permanent, unauthenticated URL for a media object."""
        ...


def bundle_path(publisher_slug: str, extension_slug: str, version: str, extension: str) -> str:
    """Stable, content-independent path of a version bundle."""
    return f"{publisher_slug}/{extension_slug}/{version}.{extension}"


# Slugs cannot contain "_", so no bundle path falls under the media prefix
MEDIA_PREFIX = "_media"


def media_path(publisher_slug: str, extension_slug: str, name: str) -> str:
    """Path of a public image (icon or screenshot) belonging to an extension."""
    return f"{MEDIA_PREFIX}/{publisher_slug}/{extension_slug}/{name}"
