"""
Publisher Schemas

Pydantic models for publisher registration and profile responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

SLUG_PATTERN = r"^[a-z0-9-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class PublisherCreate(BaseModel):
    """Request model for registering a publisher profile."""

    display_name: str = Field(..., min_length=2, max_length=50)
    slug: str = Field(
        ...,
        min_length=2,
        max_length=30,
        pattern=SLUG_PATTERN,
        description="Lowercase alphanumeric with hyphens",
    )
    description: Optional[str] = Field(None, max_length=500)
    website: Optional[HttpUrl] = None
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)


class PublisherUpdate(BaseModel):
    """Partial profile update. Only fields present in the request are applied."""

    display_name: Optional[str] = Field(None, min_length=2, max_length=50)
    slug: Optional[str] = Field(None, min_length=2, max_length=30, pattern=SLUG_PATTERN)
    description: Optional[str] = Field(None, max_length=500)
    website: Optional[HttpUrl] = None
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)


class PublisherResponse(BaseModel):
    """Publisher profile as seen by its owner."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    display_name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    verified: bool
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PublisherExtensionSummary(BaseModel):
    """Published extension listed on a public publisher page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    short_description: str
    icon_url: Optional[str] = None
    verified: bool
    total_downloads: int
    average_rating: Optional[int] = None
    review_count: int
    tags: Optional[List[str]] = None


class PublicPublisherResponse(BaseModel):
    """Public publisher page."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    display_name: str
    slug: str
    description: Optional[str] = None
    website: Optional[str] = None
    verified: bool
    avatar_url: Optional[str] = None
    created_at: datetime
    extensions: List[PublisherExtensionSummary] = Field(default_factory=list)
