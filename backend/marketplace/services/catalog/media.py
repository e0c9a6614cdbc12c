"""
Extension Media

Icons and screenshots for an extension's public page. Images are stored
write-once under a content-addressed name, so uploading the same image twice
resolves to the object already stored instead of overwriting anything.
"""

import hashlib
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...database import Extension, ExtensionScreenshot, Publisher, utcnow
from ...exceptions import InternalError, InvalidInputError, InvalidStateError, NotFoundError
from ..storage import BundleStorage, StorageConflictError, StorageError, media_path

logger = logging.getLogger(__name__)

IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}

DEFAULT_MAX_IMAGE_SIZE = 2 * 1024 * 1024
DEFAULT_MAX_SCREENSHOTS = 10


class ExtensionMedia:
    """
    Stores extension images and keeps the extension's media records in sync.

    Args:
        db: Database session
        storage: Storage backend shared with bundles
        max_image_size: Largest accepted image in bytes
        max_screenshots: Screenshots allowed per extension
    """

    def __init__(
        self,
        db: Session,
        storage: BundleStorage,
        max_image_size: int = DEFAULT_MAX_IMAGE_SIZE,
        max_screenshots: int = DEFAULT_MAX_SCREENSHOTS,
    ):
        self.db = db
        self.storage = storage
        self.max_image_size = max_image_size
        self.max_screenshots = max_screenshots

    def _store(
        self, publisher: Publisher, extension: Extension, kind: str, data: bytes, content_type: Optional[str]
    ):
        """Write an image and return (path, public URL)."""
        suffix = IMAGE_TYPES.get((content_type or "").split(";")[0].strip().lower())
        if suffix is None:
            raise InvalidInputError(f"Unsupported image type, expected one of: {', '.join(IMAGE_TYPES)}")
        if not data:
            raise InvalidInputError("Image file is required")
        if len(data) > self.max_image_size:
            raise InvalidInputError(f"Image exceeds the maximum size of {self.max_image_size} bytes")

        digest = hashlib.sha256(data).hexdigest()[:16]
        path = media_path(publisher.slug, extension.slug, f"{kind}-{digest}.{suffix}")
        try:
            self.storage.put(path, data, content_type=content_type)
        except StorageConflictError:
            # Same name means same bytes
            logger.debug(f"Image {path} already stored")
        except StorageError as e:
            logger.error(f"Image upload failed for {extension.extension_id}: {e}")
            raise InternalError("Failed to upload image")

        return path, self.storage.public_url(path)

    def set_icon(
        self, publisher: Publisher, extension: Extension, data: bytes, content_type: Optional[str]
    ) -> str:
        """
        Store a new icon and point the extension at it.

        Raises:
            InvalidInputError: Unsupported type, empty or oversized image
            InternalError: The storage backend failed
        """
        _, url = self._store(publisher, extension, "icon", data, content_type)

        extension.icon_url = url
        extension.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(extension)

        logger.info(f"Updated icon of {extension.extension_id}")
        return url

    def add_screenshot(
        self,
        publisher: Publisher,
        extension: Extension,
        data: bytes,
        content_type: Optional[str],
        caption: Optional[str] = None,
    ) -> ExtensionScreenshot:
        """
        Store a screenshot and append it after the existing ones.

        Raises:
            InvalidInputError: Unsupported type, empty or oversized image
            InvalidStateError: The extension already has the maximum number of screenshots
            InternalError: The storage backend failed
        """
        count, last = (
            self.db.query(func.count(ExtensionScreenshot.id), func.max(ExtensionScreenshot.sort_order))
            .filter(ExtensionScreenshot.extension_id == extension.id)
            .one()
        )
        if count >= self.max_screenshots:
            raise InvalidStateError(f"An extension can have at most {self.max_screenshots} screenshots")

        path, url = self._store(publisher, extension, "screenshot", data, content_type)

        screenshot = ExtensionScreenshot(
            extension_id=extension.id,
            image_path=path,
            image_url=url,
            caption=caption,
            sort_order=0 if last is None else last + 1,
        )
        self.db.add(screenshot)
        self.db.commit()
        self.db.refresh(screenshot)

        logger.info(f"Added screenshot {screenshot.id} to {extension.extension_id}")
        return screenshot

    def delete_screenshot(self, extension: Extension, screenshot_id: UUID) -> None:
        """
        Remove a screenshot record. The stored image is left in place.

        Raises:
            NotFoundError: No such screenshot on this extension
        """
        screenshot = (
            self.db.query(ExtensionScreenshot)
            .filter(ExtensionScreenshot.id == screenshot_id, ExtensionScreenshot.extension_id == extension.id)
            .first()
        )
        if not screenshot:
            raise NotFoundError("Screenshot not found")

        self.db.delete(screenshot)
        self.db.commit()
        logger.info(f"Deleted screenshot {screenshot_id} from {extension.extension_id}")

    def list_screenshots(self, extension: Extension) -> List[ExtensionScreenshot]:
        return (
            self.db.query(ExtensionScreenshot)
            .filter(ExtensionScreenshot.extension_id == extension.id)
            .order_by(ExtensionScreenshot.sort_order)
            .all()
        )
