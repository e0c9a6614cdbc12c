"""
Review Routes
"""

import logging
import math

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..auth import get_current_identity
from ..database import get_db
from ..schemas.reviews import Pagination, ReviewCreate, ReviewListResponse, ReviewResponse
from ..services.catalog import ExtensionCatalog
from ..services.identity import CallerIdentity
from ..services.reviews import MAX_PAGE_SIZE, RatingAggregator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{slug}/reviews", response_model=ReviewListResponse)
async def list_reviews(
    slug: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: Session = Depends(get_db),
) -> ReviewListResponse:
    extension = ExtensionCatalog(db).get_public(slug)
    limit = min(limit, MAX_PAGE_SIZE)
    reviews, total = RatingAggregator(db).list_reviews(extension, page, limit)

    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.post("/{slug}/reviews", response_model=ReviewResponse)
async def upsert_review(
    slug: str,
    review: ReviewCreate,
    response: Response,
    db: Session = Depends(get_db),
    identity: CallerIdentity = Depends(get_current_identity),
) -> ReviewResponse:
    """Create the caller's review (201) or replace it (200)."""
    extension = ExtensionCatalog(db).get_public(slug)
    saved, created = RatingAggregator(db).upsert_review(
        extension, identity.subject_id, review.rating, review.title, review.content
    )
    if created:
        response.status_code = status.HTTP_201_CREATED
    return ReviewResponse.model_validate(saved)


@router.delete("/{slug}/reviews")
async def delete_review(
    slug: str,
    db: Session = Depends(get_db),
    identity: CallerIdentity = Depends(get_current_identity),
):
    extension = ExtensionCatalog(db).get_public(slug)
    RatingAggregator(db).delete_review(extension, identity.subject_id)
    return {"success": True}
