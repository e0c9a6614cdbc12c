"""
Publisher Registry

One publisher profile per identity, with globally unique slugs. The
uniqueness pre-checks exist for readable errors; the database constraints
are what actually enforce them.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import Extension, ExtensionStatus, Publisher, utcnow
from ...exceptions import ConflictError, NotFoundError
from ...schemas.publishers import PublisherCreate, PublisherUpdate

logger = logging.getLogger(__name__)


class PublisherRegistry:
    """Registers and updates publisher profiles"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_subject(self, subject_id: str) -> Optional[Publisher]:
        return self.db.query(Publisher).filter(Publisher.user_id == subject_id).first()

    def get_by_slug(self, slug: str) -> Optional[Publisher]:
        return self.db.query(Publisher).filter(Publisher.slug == slug).first()

    def get_public_profile(self, slug: str) -> Tuple[Publisher, List[Extension]]:
        """Publisher plus its published extensions, most downloaded first."""
        publisher = self.get_by_slug(slug)
        if not publisher:
            raise NotFoundError("Publisher not found")

        extensions = (
            self.db.query(Extension)
            .filter(Extension.publisher_id == publisher.id, Extension.status == ExtensionStatus.PUBLISHED)
            .order_by(Extension.total_downloads.desc())
            .all()
        )
        return publisher, extensions

    def register(self, subject_id: str, profile: PublisherCreate) -> Publisher:
        """
        Create the publisher profile for an identity.

        Raises:
            ConflictError: If the identity already has a profile or the slug is taken
        """
        if self.get_for_subject(subject_id):
            raise ConflictError("Publisher profile already exists")
        if self.get_by_slug(profile.slug):
            raise ConflictError("Slug is already taken")

        data = profile.model_dump()
        if data.get("website") is not None:
            data["website"] = str(data["website"])

        publisher = Publisher(user_id=subject_id, **data)
        self.db.add(publisher)
        self._commit("Publisher profile already exists or slug is already taken")
        self.db.refresh(publisher)

        logger.info(f"Registered publisher {publisher.slug} for subject {subject_id}")
        return publisher

    def update(self, subject_id: str, patch: PublisherUpdate) -> Publisher:
        """
        Apply a partial profile update.

        Raises:
            NotFoundError: If the identity has no publisher profile
            ConflictError: If the new slug belongs to another publisher
        """
        publisher = self.get_for_subject(subject_id)
        if not publisher:
            raise NotFoundError("No publisher profile found")

        changes = patch.model_dump(exclude_unset=True)
        new_slug = changes.get("slug")
        if new_slug and new_slug != publisher.slug:
            taken = (
                self.db.query(Publisher.id)
                .filter(Publisher.slug == new_slug, Publisher.id != publisher.id)
                .first()
            )
            if taken:
                raise ConflictError("Slug is already taken")
        if changes.get("website") is not None:
            changes["website"] = str(changes["website"])

        for field, value in changes.items():
            if field in ("display_name", "slug") and value is None:
                continue
            setattr(publisher, field, value)
        publisher.updated_at = utcnow()

        self._commit("Slug is already taken")
        self.db.refresh(publisher)
        return publisher

    def _commit(self, conflict_message: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Publisher unique constraint violated: {e.orig}")
            raise ConflictError(conflict_message)
