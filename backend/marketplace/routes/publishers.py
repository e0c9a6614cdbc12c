"""
Publisher Routes
Publisher registration and profile management
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth import get_current_identity
from ..database import get_db
from ..exceptions import NotFoundError
from ..schemas.publishers import (
    PublicPublisherResponse,
    PublisherCreate,
    PublisherExtensionSummary,
    PublisherResponse,
    PublisherUpdate,
)
from ..services.identity import CallerIdentity
from ..services.publishers import PublisherRegistry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=PublisherResponse, status_code=status.HTTP_201_CREATED)
async def register_publisher(
    profile: PublisherCreate,
    db: Session = Depends(get_db),
    identity: CallerIdentity = Depends(get_current_identity),
) -> PublisherResponse:
    """Create the caller's publisher profile."""
    publisher = PublisherRegistry(db).register(identity.subject_id, profile)
    return PublisherResponse.model_validate(publisher)


@router.get("/me", response_model=PublisherResponse)
async def get_my_publisher(
    db: Session = Depends(get_db),
    identity: CallerIdentity = Depends(get_current_identity),
) -> PublisherResponse:
    publisher = PublisherRegistry(db).get_for_subject(identity.subject_id)
    if not publisher:
        raise NotFoundError("No publisher profile found")
    return PublisherResponse.model_validate(publisher)


@router.patch("/me", response_model=PublisherResponse)
async def update_my_publisher(
    patch: PublisherUpdate,
    db: Session = Depends(get_db),
    identity: CallerIdentity = Depends(get_current_identity),
) -> PublisherResponse:
    """Update the caller's publisher profile."""
    publisher = PublisherRegistry(db).update(identity.subject_id, patch)
    return PublisherResponse.model_validate(publisher)


@router.get("/{slug}", response_model=PublicPublisherResponse)
async def get_publisher(slug: str, db: Session = Depends(get_db)) -> PublicPublisherResponse:
    """Public publisher page with its published extensions."""
    publisher, extensions = PublisherRegistry(db).get_public_profile(slug)
    response = PublicPublisherResponse.model_validate(publisher)
    response.extensions = [PublisherExtensionSummary.model_validate(ext) for ext in extensions]
    return response
