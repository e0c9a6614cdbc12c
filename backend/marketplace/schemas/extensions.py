"""
Extension and Version Schemas

Pydantic models for the publish API and the public extension endpoints.
Version strings are validated by the version pipeline, not here, so that a
malformed version is reported as a validation_error with status 400.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database import ExtensionStatus, VersionStatus
from .publishers import SLUG_PATTERN

Tag = Annotated[str, Field(max_length=30)]


class ExtensionCreate(BaseModel):
    """Request model for creating an extension in draft status."""

    public_key: str = Field(..., min_length=1, description="Key clients use to verify bundle signatures")
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=SLUG_PATTERN)
    short_description: str = Field(..., min_length=10, max_length=150)
    description: Optional[str] = Field(None, max_length=10000)
    category_slug: Optional[str] = None
    tags: Optional[List[Tag]] = Field(None, max_length=10)
    icon_url: Optional[str] = Field(None, max_length=2048)


class ExtensionUpdate(BaseModel):
    """
    Partial extension update.

    slug and public_key are identity-defining and deliberately absent.
    An empty category_slug clears the category.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    short_description: Optional[str] = Field(None, min_length=10, max_length=150)
    description: Optional[str] = Field(None, max_length=10000)
    category_slug: Optional[str] = None
    tags: Optional[List[Tag]] = Field(None, max_length=10)
    icon_url: Optional[str] = Field(None, max_length=2048)


class ExtensionResponse(BaseModel):
    """Extension record as seen by its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    publisher_id: UUID
    category_id: Optional[UUID] = None
    extension_id: str
    public_key: str
    name: str
    slug: str
    short_description: str
    description: str
    icon_url: Optional[str] = None
    tags: Optional[List[str]] = None
    status: ExtensionStatus
    verified: bool
    total_downloads: int
    average_rating: Optional[int] = None
    review_count: int
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None


class VersionMetadata(BaseModel):
    """Metadata submitted alongside a bundle upload."""

    version: str = Field(..., min_length=1, max_length=256)
    changelog: Optional[str] = Field(None, max_length=5000)
    min_app_version: Optional[str] = None
    max_app_version: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    manifest: Dict[str, Any]


class VersionResponse(BaseModel):
    """Version record as seen by the publisher."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    extension_id: UUID
    version: str
    changelog: Optional[str] = None
    bundle_path: str
    bundle_size: int
    bundle_hash: str
    manifest: Dict[str, Any]
    min_app_version: Optional[str] = None
    max_app_version: Optional[str] = None
    permissions: Optional[List[str]] = None
    status: VersionStatus
    downloads: int
    created_at: datetime
    published_at: Optional[datetime] = None


class PublicVersionResponse(BaseModel):
    """Published version listed on the public extension page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    version: str
    changelog: Optional[str] = None
    bundle_size: int
    bundle_hash: str
    permissions: Optional[List[str]] = None
    min_app_version: Optional[str] = None
    max_app_version: Optional[str] = None
    downloads: int
    published_at: Optional[datetime] = None


class ScreenshotResponse(BaseModel):
    """Screenshot on an extension page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    image_url: str
    caption: Optional[str] = None
    sort_order: int
    created_at: datetime


class PublicExtensionResponse(BaseModel):
    """Public extension detail page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    extension_id: str
    public_key: str
    name: str
    slug: str
    short_description: str
    description: str
    icon_url: Optional[str] = None
    tags: Optional[List[str]] = None
    verified: bool
    total_downloads: int
    average_rating: Optional[int] = None
    review_count: int
    publisher_slug: str
    publisher_name: str
    category_slug: Optional[str] = None
    published_at: Optional[datetime] = None
    updated_at: datetime
    latest_version: Optional[PublicVersionResponse] = None
    screenshots: List[ScreenshotResponse] = Field(default_factory=list)


class IconResponse(BaseModel):
    icon_url: str


class PublishResponse(BaseModel):
    """Result of publishing a version."""

    version: VersionResponse
    extension_status: ExtensionStatus
    first_release: bool


class DownloadResponse(BaseModel):
    """Time-limited download handle plus the hash consumers verify against."""

    download_url: str
    version: str
    bundle_size: int
    bundle_hash: str
    expires_in: int
