"""
Extension Catalog

Owns extension records. Extensions are created in draft status and only the
version pipeline ever moves them to published. slug, public_key and the
derived extension_id are fixed at creation.
"""

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import Category, Extension, ExtensionStatus, Publisher, utcnow
from ...exceptions import ConflictError, NotFoundError
from ...schemas.extensions import ExtensionCreate, ExtensionUpdate

logger = logging.getLogger(__name__)


class ExtensionCatalog:
    """Create, update and look up extensions"""

    def __init__(self, db: Session):
        self.db = db

    def resolve_category(self, category_slug: Optional[str]) -> Optional[Category]:
        """Unknown or empty slugs resolve to no category."""
        if not category_slug:
            return None
        return self.db.query(Category).filter(Category.slug == category_slug).first()

    def create(self, publisher: Publisher, spec: ExtensionCreate) -> Extension:
        """
        Create a draft extension owned by the publisher.

        Raises:
            ConflictError: If the slug or public key is used by any extension
        """
        existing = (
            self.db.query(Extension.slug, Extension.public_key)
            .filter(or_(Extension.slug == spec.slug, Extension.public_key == spec.public_key))
            .first()
        )
        if existing:
            if existing.slug == spec.slug:
                raise ConflictError("Extension slug is already taken")
            raise ConflictError("Public key is already registered")

        category = self.resolve_category(spec.category_slug)
        extension = Extension(
            publisher_id=publisher.id,
            category_id=category.id if category else None,
            extension_id=f"{publisher.slug}/{spec.slug}",
            public_key=spec.public_key,
            name=spec.name,
            slug=spec.slug,
            short_description=spec.short_description,
            description=spec.description or "",
            icon_url=spec.icon_url,
            tags=spec.tags or [],
            status=ExtensionStatus.DRAFT,
        )
        self.db.add(extension)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Extension unique constraint violated: {e.orig}")
            raise ConflictError("Extension slug, identifier or public key is already taken")
        self.db.refresh(extension)

        logger.info(f"Created extension {extension.extension_id}")
        return extension

    def update(self, publisher: Publisher, slug: str, patch: ExtensionUpdate) -> Extension:
        """
        Apply a partial update to an extension the publisher owns.

        Raises:
            NotFoundError: Unless the publisher owns an extension with this slug
        """
        extension = self.get_owned(publisher, slug)
        changes = patch.model_dump(exclude_unset=True)

        if "category_slug" in changes:
            category = self.resolve_category(changes.pop("category_slug"))
            extension.category_id = category.id if category else None

        for field, value in changes.items():
            if field in ("name", "short_description") and value is None:
                continue
            if field == "description" and value is None:
                value = ""
            setattr(extension, field, value)
        extension.updated_at = utcnow()

        self.db.commit()
        self.db.refresh(extension)
        return extension

    def list_for_publisher(self, publisher: Publisher) -> List[Extension]:
        return (
            self.db.query(Extension)
            .filter(Extension.publisher_id == publisher.id)
            .order_by(Extension.updated_at.desc())
            .all()
        )

    def get_owned(self, publisher: Publisher, slug: str) -> Extension:
        extension = (
            self.db.query(Extension)
            .filter(Extension.slug == slug, Extension.publisher_id == publisher.id)
            .first()
        )
        if not extension:
            raise NotFoundError("Extension not found")
        return extension

    def get_public(self, slug: str) -> Extension:
        """Published extension by slug; drafts are invisible to the public."""
        extension = (
            self.db.query(Extension)
            .filter(Extension.slug == slug, Extension.status == ExtensionStatus.PUBLISHED)
            .first()
        )
        if not extension:
            raise NotFoundError("Extension not found")
        return extension
