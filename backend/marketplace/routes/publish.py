"""
Publish Routes
Extension management, icons and screenshots, bundle uploads, version publishing
and API keys.
Every endpoint acts on the caller's own publisher.
"""

import json
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..auth import audit_logger, require_publisher, require_session_identity
from ..config import get_settings
from ..database import Publisher, get_db
from ..exceptions import InvalidInputError
from ..schemas.api_keys import ApiKeyCreateRequest
from ..schemas.extensions import (
    ExtensionCreate,
    ExtensionResponse,
    ExtensionUpdate,
    IconResponse,
    PublishResponse,
    ScreenshotResponse,
    VersionMetadata,
    VersionResponse,
)
from ..services.catalog import ExtensionCatalog, ExtensionMedia
from ..services.identity import ApiKeyCreated, ApiKeyInfo, ApiKeyService, CallerIdentity
from ..services.storage import BundleStorage, get_bundle_storage
from ..services.versions import VersionPipeline

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter()


def get_version_pipeline(
    db: Session = Depends(get_db),
    storage: BundleStorage = Depends(get_bundle_storage),
) -> VersionPipeline:
    return VersionPipeline(
        db,
        storage,
        bundle_extension=settings.bundle_extension,
        url_ttl_seconds=settings.download_url_ttl_seconds,
        max_bundle_size=settings.max_bundle_size,
    )


# ----------------------------------------------------------------------
# Extensions
# ----------------------------------------------------------------------


@router.get("/extensions", response_model=List[ExtensionResponse])
async def list_my_extensions(
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
) -> List[ExtensionResponse]:
    """List the caller's extensions, most recently updated first."""
    extensions = ExtensionCatalog(db).list_for_publisher(publisher)
    return [ExtensionResponse.model_validate(ext) for ext in extensions]


@router.post("/extensions", response_model=ExtensionResponse, status_code=status.HTTP_201_CREATED)
async def create_extension(
    spec: ExtensionCreate,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
) -> ExtensionResponse:
    """Create a draft extension."""
    extension = ExtensionCatalog(db).create(publisher, spec)
    return ExtensionResponse.model_validate(extension)


@router.patch("/extensions/{slug}", response_model=ExtensionResponse)
async def update_extension(
    slug: str,
    patch: ExtensionUpdate,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
) -> ExtensionResponse:
    extension = ExtensionCatalog(db).update(publisher, slug, patch)
    return ExtensionResponse.model_validate(extension)


# ----------------------------------------------------------------------
# Icon and screenshots
# ----------------------------------------------------------------------


def get_extension_media(
    db: Session = Depends(get_db),
    storage: BundleStorage = Depends(get_bundle_storage),
) -> ExtensionMedia:
    return ExtensionMedia(
        db,
        storage,
        max_image_size=settings.max_image_size,
        max_screenshots=settings.max_screenshots,
    )


@router.post("/extensions/{slug}/icon", response_model=IconResponse)
async def upload_icon(
    slug: str,
    icon: UploadFile = File(..., description="PNG, JPEG, WebP or GIF image"),
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    media: ExtensionMedia = Depends(get_extension_media),
) -> IconResponse:
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    data = await icon.read(settings.max_image_size + 1)
    return IconResponse(icon_url=media.set_icon(publisher, extension, data, icon.content_type))


@router.get("/extensions/{slug}/screenshots", response_model=List[ScreenshotResponse])
async def list_screenshots(
    slug: str,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    media: ExtensionMedia = Depends(get_extension_media),
) -> List[ScreenshotResponse]:
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    return [ScreenshotResponse.model_validate(s) for s in media.list_screenshots(extension)]


@router.post(
    "/extensions/{slug}/screenshots",
    response_model=ScreenshotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_screenshot(
    slug: str,
    screenshot: UploadFile = File(..., description="PNG, JPEG, WebP or GIF image"),
    caption: Optional[str] = Form(None, max_length=200),
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    media: ExtensionMedia = Depends(get_extension_media),
) -> ScreenshotResponse:
    """Append a screenshot to the extension page."""
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    data = await screenshot.read(settings.max_image_size + 1)
    created = media.add_screenshot(publisher, extension, data, screenshot.content_type, caption)
    return ScreenshotResponse.model_validate(created)


@router.delete("/extensions/{slug}/screenshots/{screenshot_id}")
async def delete_screenshot(
    slug: str,
    screenshot_id: UUID,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    media: ExtensionMedia = Depends(get_extension_media),
):
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    media.delete_screenshot(extension, screenshot_id)
    return {"success": True}


# ----------------------------------------------------------------------
# Versions
# ----------------------------------------------------------------------


@router.get("/extensions/{slug}/versions", response_model=List[VersionResponse])
async def list_my_versions(
    slug: str,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
) -> List[VersionResponse]:
    """Every version of an owned extension, drafts included."""
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    return [VersionResponse.model_validate(v) for v in pipeline.list_all(extension)]


@router.post(
    "/extensions/{slug}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_version(
    slug: str,
    bundle: UploadFile = File(..., description="Extension bundle"),
    metadata: str = Form(..., description="Version metadata as a JSON document"),
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
) -> VersionResponse:
    """Upload a bundle and create a draft version."""
    extension = ExtensionCatalog(db).get_owned(publisher, slug)

    try:
        version_metadata = VersionMetadata.model_validate(json.loads(metadata))
    except json.JSONDecodeError:
        raise InvalidInputError("metadata must be a JSON document")
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidInputError(f"Invalid version metadata: {fields}")

    # One byte past the limit is enough to reject an oversized bundle
    data = await bundle.read(settings.max_bundle_size + 1)
    version = pipeline.create_version(publisher, extension, data, version_metadata)
    return VersionResponse.model_validate(version)


@router.post("/extensions/{slug}/versions/{version}/publish", response_model=PublishResponse)
async def publish_version(
    slug: str,
    version: str,
    db: Session = Depends(get_db),
    publisher: Publisher = Depends(require_publisher),
    pipeline: VersionPipeline = Depends(get_version_pipeline),
) -> PublishResponse:
    """Publish a draft version. The first published version also publishes the extension."""
    extension = ExtensionCatalog(db).get_owned(publisher, slug)
    result = pipeline.publish(extension, version)
    return PublishResponse(
        version=VersionResponse.model_validate(result.version),
        extension_status=result.extension_status,
        first_release=result.first_release,
    )


# ----------------------------------------------------------------------
# API keys
# ----------------------------------------------------------------------


def get_api_key_service(db: Session = Depends(get_db)) -> ApiKeyService:
    return ApiKeyService(db, prefix=settings.api_key_prefix, max_days=settings.api_key_max_days)


@router.get("/api-keys", response_model=List[ApiKeyInfo])
async def list_api_keys(
    identity: CallerIdentity = Depends(require_session_identity),
    publisher: Publisher = Depends(require_publisher),
    service: ApiKeyService = Depends(get_api_key_service),
) -> List[ApiKeyInfo]:
    return service.list(publisher)


@router.post("/api-keys", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    request: ApiKeyCreateRequest,
    identity: CallerIdentity = Depends(require_session_identity),
    publisher: Publisher = Depends(require_publisher),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiKeyCreated:
    """Create an API key. The key itself is only ever returned here."""
    created = service.create(publisher, request.name, request.expires_in_days)

    audit_logger.log_api_key_action(
        user_id=identity.subject_id,
        action="CREATED",
        api_key_id=str(created.id),
        api_key_name=created.name,
        details={"publisher": publisher.slug, "expires_at": created.expires_at.isoformat()},
    )
    return created


@router.delete("/api-keys/{key_id}")
async def revoke_api_key(
    key_id: UUID,
    identity: CallerIdentity = Depends(require_session_identity),
    publisher: Publisher = Depends(require_publisher),
    service: ApiKeyService = Depends(get_api_key_service),
):
    name = service.revoke(publisher, key_id)

    audit_logger.log_api_key_action(
        user_id=identity.subject_id,
        action="REVOKED",
        api_key_id=str(key_id),
        api_key_name=name,
        details={"publisher": publisher.slug},
    )
    return {"success": True}
