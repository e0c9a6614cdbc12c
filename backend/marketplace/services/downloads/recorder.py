"""
Download Recorder

Appends a download event, then increments Extension.total_downloads and
ExtensionVersion.downloads with in-database "n = n + 1" updates. The event
and both increments commit together, so counters never move without an
event and concurrent downloads never lose an increment.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...database import Extension, ExtensionDownload, ExtensionVersion, utcnow
from ..metrics import get_metrics_instance

logger = logging.getLogger(__name__)

IP_HASH_LENGTH = 16


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """One-way, truncated hash of a client address"""
    if not ip_address:
        return None
    return hashlib.sha256(ip_address.encode()).hexdigest()[:IP_HASH_LENGTH]


@dataclass(frozen=True)
class ClientMetadata:
    """Coarse client details attached to a download event"""

    user_agent: Optional[str] = None
    platform: Optional[str] = None
    app_version: Optional[str] = None
    ip_hash: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], client_host: Optional[str] = None) -> "ClientMetadata":
        forwarded = headers.get("x-forwarded-for")
        platform = headers.get("x-platform")
        ip_address = forwarded.split(",")[0].strip() if forwarded else headers.get("x-real-ip") or client_host
        return cls(
            user_agent=headers.get("user-agent"),
            platform=platform[:50] if platform else None,
            app_version=headers.get("x-app-version"),
            ip_hash=hash_ip(ip_address),
        )


class DownloadRecorder:
    """Records download events and bumps download counters"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        extension_id: UUID,
        version_id: UUID,
        subject_id: Optional[str] = None,
        client: Optional[ClientMetadata] = None,
    ) -> None:
        """
        Append one download event and increment both counters by one.

        Any failure rolls back the whole unit, including the event.
        """
        client = client or ClientMetadata()
        try:
            self.db.add(
                ExtensionDownload(
                    extension_id=extension_id,
                    version_id=version_id,
                    user_id=subject_id,
                    ip_hash=client.ip_hash,
                    user_agent=client.user_agent,
                    platform=client.platform,
                    app_version=client.app_version,
                    created_at=utcnow(),
                )
            )
            self.db.flush()

            self.db.execute(
                update(Extension)
                .where(Extension.id == extension_id)
                .values(total_downloads=Extension.total_downloads + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(ExtensionVersion)
                .where(ExtensionVersion.id == version_id)
                .values(downloads=ExtensionVersion.downloads + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise


def record_detached(
    session_factory: Callable[[], Session],
    extension_id: UUID,
    version_id: UUID,
    subject_id: Optional[str] = None,
    client: Optional[ClientMetadata] = None,
) -> None:
    """
    Background-task entry point with its own session.

    Errors are logged and counted, never raised: the download response has
    already been sent by the time this runs.
    """
    metrics = get_metrics_instance()
    db = None
    try:
        db = session_factory()
        DownloadRecorder(db).record(extension_id, version_id, subject_id, client)
        metrics.record_download(success=True)
    except Exception as e:
        metrics.record_download(success=False)
        logger.error(f"Failed to record download of version {version_id}: {e}")
    finally:
        if db is not None:
            db.close()
