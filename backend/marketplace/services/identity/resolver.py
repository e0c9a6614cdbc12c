"""
Identity Resolver

Turns a bearer credential into a CallerIdentity. Credentials that start with
the API key prefix are looked up by hash; everything else is treated as a
session token and handed to the identity provider.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...database import Publisher, PublisherApiKey, utcnow
from ...exceptions import UnauthenticatedError
from ..metrics import get_metrics_instance
from .api_keys import hash_api_key
from .models import AuthMethod, CallerIdentity
from .providers import IdentityProvider, IdentityProviderError

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolves session tokens and publisher API keys.

    Args:
        db: Database session
        provider: Session token verifier
        api_key_prefix: Literal prefix that marks a credential as an API key
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        db: Session,
        provider: IdentityProvider,
        api_key_prefix: str,
        clock: Optional[Callable] = None,
    ):
        self.db = db
        self.provider = provider
        self.api_key_prefix = api_key_prefix
        self.clock = clock or utcnow
        self.metrics = get_metrics_instance()

    def resolve(self, credential: Optional[str]) -> CallerIdentity:
        """
        Resolve a bearer credential.

        Raises:
            UnauthenticatedError: For missing, unknown, invalid or expired credentials
        """
        if not credential:
            raise UnauthenticatedError("Missing credentials")

        if credential.startswith(self.api_key_prefix):
            identity = self._resolve_api_key(credential)
            self.metrics.record_authentication_attempt("success", AuthMethod.API_KEY.value)
            return identity

        try:
            subject_id = self.provider.verify(credential)
        except IdentityProviderError as e:
            logger.debug(f"Session verification failed: {e}")
            self.metrics.record_authentication_attempt("failure", AuthMethod.SESSION.value)
            raise UnauthenticatedError()
        except Exception as e:
            # Provider outage is still an auth decision from the caller's side
            logger.error(f"Identity provider error: {e}")
            self.metrics.record_authentication_attempt("failure", AuthMethod.SESSION.value)
            raise UnauthenticatedError()

        self.metrics.record_authentication_attempt("success", AuthMethod.SESSION.value)
        return CallerIdentity(subject_id=subject_id, auth_method=AuthMethod.SESSION)

    def _resolve_api_key(self, credential: str) -> CallerIdentity:
        key_hash = hash_api_key(credential)
        row = (
            self.db.query(PublisherApiKey.id, Publisher.id, Publisher.user_id)
            .join(Publisher, Publisher.id == PublisherApiKey.publisher_id)
            .filter(PublisherApiKey.key_hash == key_hash, PublisherApiKey.expires_at > self.clock())
            .first()
        )

        if not row:
            # Same error for unknown and expired keys
            self.metrics.record_authentication_attempt("failure", AuthMethod.API_KEY.value)
            raise UnauthenticatedError()

        api_key_id, publisher_id, subject_id = row
        return CallerIdentity(
            subject_id=subject_id,
            auth_method=AuthMethod.API_KEY,
            publisher_id=publisher_id,
            api_key_id=api_key_id,
        )


def touch_api_key(session_factory: Callable[[], Session], api_key_id: UUID) -> None:
    """
    Stamp an API key's last-used time.

    Runs detached from the request that used the key; failures are logged
    and never raised.
    """
    db = None
    try:
        db = session_factory()
        db.execute(update(PublisherApiKey).where(PublisherApiKey.id == api_key_id).values(last_used_at=utcnow()))
        db.commit()
    except Exception as e:
        logger.warning(f"Failed to update last_used_at for API key {api_key_id}: {e}")
        if db is not None:
            db.rollback()
    finally:
        if db is not None:
            db.close()
