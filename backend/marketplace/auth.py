"""
Request authentication for the marketplace API
Resolves bearer session tokens and publisher API keys into caller identities
"""

import logging
from typing import Callable, Dict, Optional

from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import get_settings
from .database import Publisher, get_db, get_db_session
from .exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from .services.identity import (
    AuthMethod,
    CallerIdentity,
    IdentityProvider,
    IdentityResolver,
    JWTIdentityProvider,
    touch_api_key,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# Missing credentials are reported as UnauthenticatedError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


class SecurityAuditLogger:
    """Security event audit logging"""

    def __init__(self, log_file: Optional[str] = None):
        self.audit_logger = logging.getLogger("marketplace.audit")
        if log_file:
            handler = logging.FileHandler(log_file)
            formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            self.audit_logger.addHandler(handler)
        self.audit_logger.setLevel(logging.INFO)

    def log_api_key_action(
        self,
        user_id: str,
        action: str,
        api_key_id: str,
        api_key_name: str,
        details: Optional[Dict] = None,
    ):
        """Log API key related actions"""
        self.audit_logger.info(
            f"API_KEY_{action} - User: {user_id}, Key: {api_key_name} ({api_key_id}), Details: {details or {}}"
        )

    def log_authentication_failure(self, method: str, key_prefix: Optional[str] = None):
        """Log rejected credentials"""
        self.audit_logger.warning(f"AUTH_FAILED - Method: {method}, Key prefix: {key_prefix or '-'}")


audit_logger = SecurityAuditLogger(settings.audit_log_file)


def get_identity_provider() -> IdentityProvider:
    """Session token verifier configured from settings"""
    return JWTIdentityProvider(
        key=settings.auth_jwt_public_key or settings.auth_jwt_secret,
        algorithms=settings.auth_jwt_algorithms,
        audience=settings.auth_jwt_audience,
        issuer=settings.auth_jwt_issuer,
    )


def get_session_factory() -> Callable[[], Session]:
    """Session factory used by detached background jobs"""
    return get_db_session


def _resolve(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
    provider: IdentityProvider,
) -> CallerIdentity:
    token = credentials.credentials if credentials else None
    resolver = IdentityResolver(db, provider, api_key_prefix=settings.api_key_prefix)
    try:
        return resolver.resolve(token)
    except UnauthenticatedError:
        if token and token.startswith(settings.api_key_prefix):
            audit_logger.log_authentication_failure(AuthMethod.API_KEY.value, token[:8])
        raise


def get_current_identity(
    background_tasks: BackgroundTasks,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> CallerIdentity:
    """Get the authenticated caller from a session token or API key"""
    identity = _resolve(credentials, db, provider)

    if identity.api_key_id is not None:
        # Never part of the request's outcome
        background_tasks.add_task(touch_api_key, session_factory, identity.api_key_id)

    return identity


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[CallerIdentity]:
    """Caller identity for public endpoints; bad credentials count as anonymous"""
    if credentials is None:
        return None
    try:
        return _resolve(credentials, db, provider)
    except UnauthenticatedError:
        return None


def require_session_identity(identity: CallerIdentity = Depends(get_current_identity)) -> CallerIdentity:
    """Reject API key callers (used for API key management)"""
    if identity.auth_method == AuthMethod.API_KEY:
        raise ForbiddenError("API keys cannot be managed with an API key")
    return identity


def require_publisher(
    identity: CallerIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> Publisher:
    """Publisher owned by the caller, or bound to the caller's API key"""
    if identity.publisher_id is not None:
        publisher = db.get(Publisher, identity.publisher_id)
    else:
        publisher = db.query(Publisher).filter(Publisher.user_id == identity.subject_id).first()

    if not publisher:
        raise NotFoundError("Publisher profile not found")
    return publisher
