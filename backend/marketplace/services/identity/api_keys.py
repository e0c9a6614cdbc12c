"""
Publisher API Key Service

Creates, lists and revokes long-lived publisher credentials. Only a SHA-256
hash of each key is persisted; the plaintext is returned once, at creation.
"""

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ...database import Publisher, PublisherApiKey, utcnow
from ...exceptions import InvalidInputError, NotFoundError
from .models import ApiKeyCreated, ApiKeyInfo

logger = logging.getLogger(__name__)

KEY_PREFIX_DISPLAY_LENGTH = 12


def hash_api_key(api_key: str) -> str:
    """Deterministic one-way hash used to look keys up"""
    return hashlib.sha256(api_key.encode()).hexdigest()


def generate_api_key(prefix: str) -> Tuple[str, str]:
    """Generate a secure API key and its hash"""
    # 32 random bytes, base64url encoded
    api_key = f"{prefix}{secrets.token_urlsafe(32)}"
    return api_key, hash_api_key(api_key)


class ApiKeyService:
    """
    API key lifecycle for a single publisher.

    Args:
        db: Database session
        prefix: Literal prefix identifying marketplace API keys
        max_days: Upper bound on a key's lifetime
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        db: Session,
        prefix: str,
        max_days: int,
        clock: Optional[Callable] = None,
    ):
        self.db = db
        self.prefix = prefix
        self.max_days = max_days
        self.clock = clock or utcnow

    def create(self, publisher: Publisher, name: str, expires_in_days: int) -> ApiKeyCreated:
        """
        Create a key for a publisher.

        Returns:
            ApiKeyCreated: Metadata plus the plaintext key (shown only once)

        Raises:
            InvalidInputError: If the lifetime is outside 1..max_days
        """
        if not 1 <= expires_in_days <= self.max_days:
            raise InvalidInputError(f"expires_in_days must be between 1 and {self.max_days}")

        api_key, key_hash = generate_api_key(self.prefix)
        now = self.clock()

        row = PublisherApiKey(
            publisher_id=publisher.id,
            name=name,
            key_hash=key_hash,
            key_prefix=api_key[:KEY_PREFIX_DISPLAY_LENGTH],
            expires_at=now + timedelta(days=expires_in_days),
            created_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)

        logger.info(f"API key '{name}' created for publisher {publisher.slug}")
        return ApiKeyCreated(**ApiKeyInfo.model_validate(row).model_dump(), key=api_key)

    def list(self, publisher: Publisher) -> List[ApiKeyInfo]:
        rows = (
            self.db.query(PublisherApiKey)
            .filter(PublisherApiKey.publisher_id == publisher.id)
            .order_by(PublisherApiKey.created_at.desc())
            .all()
        )
        return [ApiKeyInfo.model_validate(row) for row in rows]

    def revoke(self, publisher: Publisher, key_id: UUID) -> str:
        """Delete a key owned by the publisher and return its name."""
        row = (
            self.db.query(PublisherApiKey)
            .filter(PublisherApiKey.id == key_id, PublisherApiKey.publisher_id == publisher.id)
            .first()
        )
        if not row:
            raise NotFoundError("API key not found")

        name = row.name
        self.db.delete(row)
        self.db.commit()
        logger.info(f"API key '{name}' revoked for publisher {publisher.slug}")
        return name
