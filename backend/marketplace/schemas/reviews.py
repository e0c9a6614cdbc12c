"""
Review Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    """Create or replace the caller's review."""

    rating: int = Field(..., description="Integer rating from 1 to 5")
    title: Optional[str] = Field(None, max_length=100)
    content: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    extension_id: UUID
    user_id: str
    rating: int
    title: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    pagination: Pagination
