"""
Local Bundle Storage Route
Serves bundles written by the filesystem backend to holders of a valid signed URL,
and extension images to anyone
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from ..exceptions import ForbiddenError, NotFoundError
from ..services.storage import MEDIA_PREFIX, BundleStorage, LocalBundleStorage, StorageError, get_bundle_storage

logger = logging.getLogger(__name__)
router = APIRouter()


def _local_storage(storage: BundleStorage = Depends(get_bundle_storage)) -> LocalBundleStorage:
    if not isinstance(storage, LocalBundleStorage):
        raise NotFoundError()
    return storage


@router.get(f"/{MEDIA_PREFIX}/{{path:path}}")
async def get_media(path: str, storage: LocalBundleStorage = Depends(_local_storage)) -> FileResponse:
    """Icons and screenshots are public."""
    try:
        target = storage.open_media(path)
    except StorageError:
        raise NotFoundError("Image not found")

    return FileResponse(target)


@router.get("/{path:path}")
async def download_bundle(
    path: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: LocalBundleStorage = Depends(_local_storage),
) -> FileResponse:
    if not storage.verify(path, expires, signature):
        logger.warning(f"Rejected download of {path}: invalid or expired signature")
        raise ForbiddenError("Invalid or expired download URL")

    try:
        target = storage.open(path)
    except StorageError:
        raise NotFoundError("Bundle not found")

    return FileResponse(target, media_type="application/octet-stream", filename=target.name)
