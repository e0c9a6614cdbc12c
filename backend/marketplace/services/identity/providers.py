"""
Session token verification

The identity provider is an external collaborator: it issues bearer session
tokens and is the only party that can vouch for them. The marketplace only
asks it one question, "which subject does this token belong to?".
"""

import logging
from typing import List, Optional, Protocol

import jwt

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the provider cannot vouch for a token."""

    pass


class IdentityProvider(Protocol):
    def verify(self, token: str) -> str:
        """Return the stable subject id for a valid token.

        Raises:
            IdentityProviderError: If the token is missing, invalid or expired
        """
        ...


class JWTIdentityProvider:
    """
    Verifies provider-issued JWT access tokens locally.

    Supports shared-secret (HS256) and public-key (RS256/ES256) signing, which
    covers Supabase, Auth0 and most OIDC providers.

    Args:
        key: Shared secret or PEM-encoded public key
        algorithms: Accepted signing algorithms
        audience: Expected "aud" claim, or None to skip the check
        issuer: Expected "iss" claim, or None to skip the check
    """

    def __init__(
        self,
        key: Optional[str],
        algorithms: List[str],
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.key = key
        self.algorithms = algorithms
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> str:
        if not token:
            raise IdentityProviderError("Missing token")
        if not self.key:
            raise IdentityProviderError("No verification key configured")

        try:
            payload = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": self.audience is not None,
                    "verify_iss": self.issuer is not None,
                },
            )
        except jwt.ExpiredSignatureError:
            raise IdentityProviderError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session token: {e}")
            raise IdentityProviderError("Invalid token") from e

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise IdentityProviderError("Token has no subject")
        return subject
