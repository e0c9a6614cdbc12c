"""
Marketplace database configuration and ORM models
PostgreSQL in production, SQLite for local development and tests
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generator
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the given database URL."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}

    return {
        "poolclass": QueuePool,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,  # Recycle connections every hour
        "connect_args": {
            "connect_timeout": 10,
            "options": "-c application_name=marketplace",
        },
    }


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **engine_options(database_url))


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class ExtensionStatus(str, enum.Enum):
    """Extension lifecycle states"""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"
    REJECTED = "rejected"
    UNLISTED = "unlisted"


class VersionStatus(str, enum.Enum):
    """Version lifecycle states"""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"
    REJECTED = "rejected"


def _enum_values(enum_cls: type) -> list:
    return [member.value for member in enum_cls]


# Database Models
class Publisher(Base):  # type: ignore[valid-type, misc]
    """Account allowed to own and publish extensions, bound to one identity"""

    __tablename__ = "publishers"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(50), nullable=False)
    slug = Column(String(30), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    website = Column(String(2048), nullable=True)
    email = Column(String(255), nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    avatar_url = Column(String(2048), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class Category(Base):  # type: ignore[valid-type, misc]
    """Extension category (managed outside the publication pipeline)"""

    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    icon = Column(String(100), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Extension(Base):  # type: ignore[valid-type, misc]
    """Publishable extension owned by exactly one publisher"""

    __tablename__ = "extensions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    publisher_id = Column(Uuid, ForeignKey("publishers.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    # Identity-defining fields, immutable after creation
    extension_id = Column(String(100), nullable=False, unique=True)  # <publisher-slug>/<extension-slug>
    public_key = Column(Text, nullable=False, unique=True)
    slug = Column(String(50), nullable=False, unique=True, index=True)

    name = Column(String(100), nullable=False)
    short_description = Column(String(150), nullable=False)
    description = Column(Text, nullable=False, default="")
    icon_url = Column(String(2048), nullable=True)
    tags = Column(JSON, nullable=True)

    status: Column[str] = Column(
        Enum(ExtensionStatus, name="extension_status", values_callable=_enum_values),
        default=ExtensionStatus.DRAFT,
        nullable=False,
        index=True,
    )
    verified = Column(Boolean, default=False, nullable=False)

    # Denormalized statistics
    total_downloads = Column(Integer, default=0, nullable=False, index=True)
    average_rating = Column(Integer, nullable=True)  # rating * 100, 0-500
    review_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
    published_at = Column(DateTime, nullable=True)


class ExtensionVersion(Base):  # type: ignore[valid-type, misc]
    """Immutable, hash-verified bundle release of an extension"""

    __tablename__ = "extension_versions"
    __table_args__ = (UniqueConstraint("extension_id", "version", name="uq_extension_versions_extension_version"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    extension_id = Column(Uuid, ForeignKey("extensions.id", ondelete="CASCADE"), nullable=False, index=True)

    version = Column(String(256), nullable=False)
    changelog = Column(Text, nullable=True)

    # Bundle storage
    bundle_path = Column(String(1024), nullable=False)
    bundle_size = Column(Integer, nullable=False)
    bundle_hash = Column(String(64), nullable=False)  # SHA-256, lowercase hex

    # Snapshot of the manifest as uploaded, never rewritten
    manifest = Column(JSON, nullable=False)

    # Compatibility
    min_app_version = Column(String(256), nullable=True)
    max_app_version = Column(String(256), nullable=True)
    permissions = Column(JSON, nullable=True)

    status: Column[str] = Column(
        Enum(VersionStatus, name="version_status", values_callable=_enum_values),
        default=VersionStatus.DRAFT,
        nullable=False,
        index=True,
    )
    downloads = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    published_at = Column(DateTime, nullable=True)


class ExtensionScreenshot(Base):  # type: ignore[valid-type, misc]
    """Screenshot shown on the public extension page"""

    __tablename__ = "extension_screenshots"

    id = Column(Uuid, primary_key=True, default=uuid4)
    extension_id = Column(Uuid, ForeignKey("extensions.id", ondelete="CASCADE"), nullable=False, index=True)
    image_path = Column(String(1024), nullable=False)
    image_url = Column(String(2048), nullable=False)
    caption = Column(String(200), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ExtensionReview(Base):  # type: ignore[valid-type, misc]
    """One review per (extension, reviewer identity)"""

    __tablename__ = "extension_reviews"
    __table_args__ = (
        UniqueConstraint("extension_id", "user_id", name="uq_extension_reviews_extension_user"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_extension_reviews_rating"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    extension_id = Column(Uuid, ForeignKey("extensions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    rating = Column(Integer, nullable=False, index=True)
    title = Column(String(100), nullable=True)
    content = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class ExtensionDownload(Base):  # type: ignore[valid-type, misc]
    """Append-only download analytics event"""

    __tablename__ = "extension_downloads"

    id = Column(Uuid, primary_key=True, default=uuid4)
    extension_id = Column(Uuid, ForeignKey("extensions.id", ondelete="CASCADE"), nullable=False, index=True)
    version_id = Column(Uuid, ForeignKey("extension_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=True)  # Anonymous downloads allowed
    ip_hash = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    platform = Column(String(50), nullable=True)
    app_version = Column(String(256), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class PublisherApiKey(Base):  # type: ignore[valid-type, misc]
    """Long-lived publisher credential, stored only as a one-way hash"""

    __tablename__ = "publisher_api_keys"

    id = Column(Uuid, primary_key=True, default=uuid4)
    publisher_id = Column(Uuid, ForeignKey("publishers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    key_hash = Column(String(128), nullable=False, index=True)  # SHA-256 of the full key
    key_prefix = Column(String(32), nullable=False)  # Display only
    last_used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


Index("ix_extension_reviews_extension_created", ExtensionReview.extension_id, ExtensionReview.created_at)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI endpoints.

    Yields:
        SQLAlchemy Session instance.

    Note:
        Session is automatically closed when the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_session() -> Session:
    """Get a standalone database session for background jobs"""
    return SessionLocal()


def init_database(bind: Engine = None) -> None:
    """Create all tables that do not exist yet"""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Marketplace database schema initialized")
