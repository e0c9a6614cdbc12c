"""
Filesystem bundle storage

Stores bundles and extension images under a local root directory. Bundles are
served through HMAC-signed download URLs that the /api/storage route verifies.
Images under the media prefix are served without a signature.
"""

import hashlib
import hmac
import logging
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from .base import MEDIA_PREFIX, StorageConflictError, StorageError

logger = logging.getLogger(__name__)


class LocalBundleStorage:
    """
    Bundle storage backed by a directory on disk.

    Args:
        root: Directory that holds all bundles
        public_base_url: URL prefix the storage route is mounted under
        signing_key: Secret used to sign download URLs
        clock: Returns the current UNIX time (injectable for tests)
    """

    def __init__(
        self,
        root: str,
        public_base_url: str,
        signing_key: str,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self._signing_key = signing_key.encode("utf-8")
        self._clock = clock or time.time

    def _resolve(self, path: str) -> Path:
        """Map a storage path onto the root, rejecting traversal."""
        root = self.root.resolve()
        target = (root / path).resolve()
        if root not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "x" mode fails if the file exists, so bundles are never overwritten
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise StorageConflictError(path)
        except OSError as e:
            logger.error(f"Failed to write bundle {path}: {e}")
            raise StorageError(f"Failed to write {path}") from e

        logger.info(f"Stored bundle {path} ({len(data)} bytes)")
        return path

    def _sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")

        expires = int(self._clock()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(path, expires)})
        return f"{self.public_base_url}/{quote(path)}?{query}"

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(path)}"

    def verify(self, path: str, expires: int, signature: str) -> bool:
        """Check a signed URL's parameters; False if forged or expired."""
        if expires < int(self._clock()):
            return False
        return hmac.compare_digest(self._sign(path, expires), signature)

    def open(self, path: str) -> Path:
        """Return the on-disk location of a stored object."""
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        return target

    def open_media(self, path: str) -> Path:
        """Return the on-disk location of a public image, relative to the media prefix."""
        target = self.open(f"{MEDIA_PREFIX}/{path}")
        if (self.root.resolve() / MEDIA_PREFIX) not in target.parents:
            raise StorageError(f"Not a media object: {path}")
        return target
