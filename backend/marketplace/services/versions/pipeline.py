"""
Version Pipeline

Binds uploaded bundles to a content hash, enforces version ordering and
drives the only path by which an extension becomes publicly visible.

Ordering rule: a version must be strictly greater (semver precedence) than
every version of the extension that has been published. Drafts are not
compared against each other, so several drafts can be prepared in parallel.
The rule is checked when the draft is created and again when it is published.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy import exists, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import (
    Extension,
    ExtensionStatus,
    ExtensionVersion,
    Publisher,
    VersionStatus,
    utcnow,
)
from ...exceptions import (
    ConflictError,
    InternalError,
    InvalidInputError,
    InvalidStateError,
    MarketplaceError,
    NotFoundError,
)
from ...schemas.extensions import DownloadResponse, VersionMetadata
from ..metrics import get_metrics_instance
from ..storage import BundleStorage, StorageConflictError, StorageError, bundle_path
from .semver_utils import highest, parse_version, sort_descending

logger = logging.getLogger(__name__)

DEFAULT_URL_TTL_SECONDS = 300


def compute_bundle_hash(data: bytes) -> str:
    """SHA-256 of the raw bundle bytes, lowercase hex"""
    return hashlib.sha256(data).hexdigest()


@dataclass
class PublishResult:
    version: ExtensionVersion
    extension_status: ExtensionStatus
    first_release: bool


class VersionPipeline:
    """
    Creates and publishes extension versions.

    Args:
        db: Database session
        storage: Bundle storage backend
        bundle_extension: File extension of stored bundles
        url_ttl_seconds: Lifetime of signed download URLs
        max_bundle_size: Largest accepted bundle in bytes, or None for no limit
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        db: Session,
        storage: BundleStorage,
        bundle_extension: str = "mpext",
        url_ttl_seconds: int = DEFAULT_URL_TTL_SECONDS,
        max_bundle_size: Optional[int] = None,
        clock: Optional[Callable] = None,
    ):
        self.db = db
        self.storage = storage
        self.bundle_extension = bundle_extension
        self.url_ttl_seconds = url_ttl_seconds
        self.max_bundle_size = max_bundle_size
        self.clock = clock or utcnow
        self.metrics = get_metrics_instance()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_version(
        self,
        publisher: Publisher,
        extension: Extension,
        bundle: bytes,
        metadata: VersionMetadata,
    ) -> ExtensionVersion:
        """
        Store a bundle and create a draft version for it.

        Raises:
            InvalidInputError: Malformed version, bundle problems, or a version not
                greater than every published version
            ConflictError: The version already exists, or its bundle path is taken
            InternalError: The storage backend failed
        """
        parsed = parse_version(metadata.version)
        if parsed is None:
            raise InvalidInputError(f"Invalid semantic version: {metadata.version}")
        for field in ("min_app_version", "max_app_version"):
            bound = getattr(metadata, field)
            if bound is not None and parse_version(bound) is None:
                raise InvalidInputError(f"Invalid semantic version for {field}: {bound}")

        if not bundle:
            raise InvalidInputError("Bundle file is required")
        if self.max_bundle_size is not None and len(bundle) > self.max_bundle_size:
            raise InvalidInputError(f"Bundle exceeds the maximum size of {self.max_bundle_size} bytes")

        duplicate = (
            self.db.query(ExtensionVersion.id)
            .filter(ExtensionVersion.extension_id == extension.id, ExtensionVersion.version == metadata.version)
            .first()
        )
        if duplicate:
            raise ConflictError(f"Version {metadata.version} already exists")

        self._check_exceeds_published(extension, metadata.version)

        bundle_hash = compute_bundle_hash(bundle)
        path = bundle_path(publisher.slug, extension.slug, metadata.version, self.bundle_extension)
        try:
            stored_path = self.storage.put(path, bundle)
        except StorageConflictError:
            raise ConflictError(f"A bundle for version {metadata.version} already exists")
        except StorageError as e:
            logger.error(f"Bundle upload failed for {extension.extension_id}@{metadata.version}: {e}")
            raise InternalError("Failed to upload bundle")

        version = ExtensionVersion(
            extension_id=extension.id,
            version=metadata.version,
            changelog=metadata.changelog,
            bundle_path=stored_path,
            bundle_size=len(bundle),
            bundle_hash=bundle_hash,
            # Historical snapshot, copied so later edits to the request object cannot leak in
            manifest=dict(metadata.manifest),
            min_app_version=metadata.min_app_version,
            max_app_version=metadata.max_app_version,
            permissions=list(metadata.permissions),
            status=VersionStatus.DRAFT,
            created_at=self.clock(),
        )
        self.db.add(version)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Version {metadata.version} already exists")
        self.db.refresh(version)

        self.metrics.record_version_created(len(bundle))
        logger.info(f"Created draft {extension.extension_id}@{version.version} ({bundle_hash[:12]})")
        return version

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------

    def publish(self, extension: Extension, version_string: str) -> PublishResult:
        """
        Publish a draft version and, on the first release, its extension.

        Both writes happen in one transaction. The version update only applies
        to a row still in draft, and the extension update only applies while the
        extension is draft and a published version exists, so concurrent or
        repeated calls cannot double-publish.

        Raises:
            NotFoundError: The version does not exist
            InvalidStateError: The version is not a draft
            InvalidInputError: A greater or equal version was published meanwhile
            InternalError: Any other failure; neither row is changed
        """
        version = (
            self.db.query(ExtensionVersion)
            .filter(ExtensionVersion.extension_id == extension.id, ExtensionVersion.version == version_string)
            .first()
        )
        if not version:
            raise NotFoundError("Version not found")
        if version.status != VersionStatus.DRAFT:
            raise InvalidStateError(f"Version {version_string} is not in draft status")

        self._check_exceeds_published(extension, version_string)

        now = self.clock()
        has_published_version = exists().where(
            ExtensionVersion.extension_id == extension.id,
            ExtensionVersion.status == VersionStatus.PUBLISHED,
        )
        try:
            result = self.db.execute(
                update(ExtensionVersion)
                .where(ExtensionVersion.id == version.id, ExtensionVersion.status == VersionStatus.DRAFT)
                .values(status=VersionStatus.PUBLISHED, published_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError(f"Version {version_string} is not in draft status")

            first_release = (
                self.db.execute(
                    update(Extension)
                    .where(
                        Extension.id == extension.id,
                        Extension.status == ExtensionStatus.DRAFT,
                        has_published_version,
                    )
                    .values(status=ExtensionStatus.PUBLISHED, published_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                ).rowcount
                == 1
            )
            if not first_release:
                self.db.execute(
                    update(Extension)
                    .where(Extension.id == extension.id)
                    .values(updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            self.db.commit()
        except MarketplaceError:
            self.db.rollback()
            raise
        except Exception as e:
            # Nothing from a failed publish may reach the database
            self.db.rollback()
            logger.error(f"Publish of {extension.extension_id}@{version_string} failed: {e}", exc_info=True)
            raise InternalError("Failed to publish version")

        self.db.refresh(version)
        self.db.refresh(extension)

        self.metrics.record_version_published(first_release)
        logger.info(
            f"Published {extension.extension_id}@{version_string}"
            + (" (first release)" if first_release else "")
        )
        return PublishResult(version=version, extension_status=extension.status, first_release=first_release)

    def _published_version_strings(self, extension: Extension) -> List[str]:
        rows = (
            self.db.query(ExtensionVersion.version)
            .filter(
                ExtensionVersion.extension_id == extension.id,
                ExtensionVersion.status == VersionStatus.PUBLISHED,
            )
            .all()
        )
        return [row.version for row in rows]

    def _check_exceeds_published(self, extension: Extension, version_string: str) -> None:
        newest = highest(self._published_version_strings(extension))
        if newest is not None and parse_version(newest) >= parse_version(version_string):
            raise InvalidInputError(
                f"Version {version_string} must be greater than the latest published version {newest}"
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_published(self, extension: Extension) -> List[ExtensionVersion]:
        """Published versions, highest version first."""
        rows = (
            self.db.query(ExtensionVersion)
            .filter(
                ExtensionVersion.extension_id == extension.id,
                ExtensionVersion.status == VersionStatus.PUBLISHED,
            )
            .all()
        )
        by_version = {row.version: row for row in rows}
        return [by_version[v] for v in sort_descending(by_version)]

    def list_all(self, extension: Extension) -> List[ExtensionVersion]:
        """Every version of an extension, for its owner."""
        return (
            self.db.query(ExtensionVersion)
            .filter(ExtensionVersion.extension_id == extension.id)
            .order_by(ExtensionVersion.created_at.desc())
            .all()
        )

    def resolve_download(self, extension: Extension, version_string: Optional[str] = None) -> ExtensionVersion:
        """
        The requested published version, or the latest published one.

        Raises:
            NotFoundError: No matching published version
        """
        if version_string:
            version = (
                self.db.query(ExtensionVersion)
                .filter(
                    ExtensionVersion.extension_id == extension.id,
                    ExtensionVersion.version == version_string,
                    ExtensionVersion.status == VersionStatus.PUBLISHED,
                )
                .first()
            )
        else:
            published = self.list_published(extension)
            version = published[0] if published else None

        if not version:
            raise NotFoundError("Version not found")
        return version

    def build_download(self, version: ExtensionVersion) -> DownloadResponse:
        """
        Signed, time-limited download URL plus the hash to verify it against.

        Raises:
            InternalError: The storage backend could not sign the URL
        """
        try:
            url = self.storage.signed_url(version.bundle_path, self.url_ttl_seconds)
        except StorageError as e:
            logger.error(f"Failed to sign download URL for {version.bundle_path}: {e}")
            raise InternalError("Failed to generate download URL")

        return DownloadResponse(
            download_url=url,
            version=version.version,
            bundle_size=version.bundle_size,
            bundle_hash=version.bundle_hash,
            expires_in=self.url_ttl_seconds,
        )
