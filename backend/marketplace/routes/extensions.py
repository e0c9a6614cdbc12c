"""
Public Extension Routes
Extension details, screenshots, published versions and bundle downloads
"""

import logging
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from ..auth import get_optional_identity, get_session_factory
from ..database import Category, Publisher, get_db
from ..schemas.extensions import (
    DownloadResponse,
    PublicExtensionResponse,
    PublicVersionResponse,
    ScreenshotResponse,
)
from ..services.catalog import ExtensionCatalog, ExtensionMedia
from ..services.downloads import ClientMetadata, record_detached
from ..services.identity import CallerIdentity
from ..services.versions import VersionPipeline
from .publish import get_extension_media, get_version_pipeline

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{slug}", response_model=PublicExtensionResponse)
async def get_extension(
    slug: str,
    db: Session = Depends(get_db),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
    media: ExtensionMedia = Depends(get_extension_media),
) -> PublicExtensionResponse:
    """Published extension with publisher, category, screenshots and latest version."""
    extension = ExtensionCatalog(db).get_public(slug)
    publisher = db.get(Publisher, extension.publisher_id)
    category = db.get(Category, extension.category_id) if extension.category_id else None
    published = pipeline.list_published(extension)

    return PublicExtensionResponse(
        id=extension.id,
        extension_id=extension.extension_id,
        public_key=extension.public_key,
        name=extension.name,
        slug=extension.slug,
        short_description=extension.short_description,
        description=extension.description,
        icon_url=extension.icon_url,
        tags=extension.tags,
        verified=extension.verified,
        total_downloads=extension.total_downloads,
        average_rating=extension.average_rating,
        review_count=extension.review_count,
        publisher_slug=publisher.slug,
        publisher_name=publisher.display_name,
        category_slug=category.slug if category else None,
        published_at=extension.published_at,
        updated_at=extension.updated_at,
        latest_version=PublicVersionResponse.model_validate(published[0]) if published else None,
        screenshots=[ScreenshotResponse.model_validate(s) for s in media.list_screenshots(extension)],
    )


@router.get("/{slug}/versions")
async def list_versions(
    slug: str,
    db: Session = Depends(get_db),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
) -> Dict[str, List[PublicVersionResponse]]:
    """Published versions, highest first."""
    extension = ExtensionCatalog(db).get_public(slug)
    return {"versions": [PublicVersionResponse.model_validate(v) for v in pipeline.list_published(extension)]}


@router.get("/{slug}/download", response_model=DownloadResponse)
async def download_extension(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    version: Optional[str] = Query(None, description="Specific version, defaults to the latest"),
    db: Session = Depends(get_db),
    identity: Optional[CallerIdentity] = Depends(get_optional_identity),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> DownloadResponse:
    """
    Signed download URL for a published version.

    The download is recorded after the response is sent; recording failures
    never affect this endpoint.
    """
    extension = ExtensionCatalog(db).get_public(slug)
    target = pipeline.resolve_download(extension, version)
    response = pipeline.build_download(target)

    client = ClientMetadata.from_headers(request.headers, request.client.host if request.client else None)
    background_tasks.add_task(
        record_detached,
        session_factory,
        extension.id,
        target.id,
        identity.subject_id if identity else None,
        client,
    )
    return response
