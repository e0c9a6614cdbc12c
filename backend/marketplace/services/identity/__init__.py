"""
Identity Module

Authenticates marketplace callers:
- Session tokens verified by the external identity provider
- Publisher API keys stored as SHA-256 hashes
- API key lifecycle (create, list, revoke)

Usage:
    from marketplace.services.identity import IdentityResolver, JWTIdentityProvider

    resolver = IdentityResolver(db, provider, api_key_prefix="mpk_")
    identity = resolver.resolve(bearer_token)
"""

from .api_keys import ApiKeyService, generate_api_key, hash_api_key  # noqa: F401
from .models import ApiKeyCreated, ApiKeyInfo, AuthMethod, CallerIdentity  # noqa: F401
from .providers import IdentityProvider, IdentityProviderError, JWTIdentityProvider  # noqa: F401
from .resolver import IdentityResolver, touch_api_key  # noqa: F401

__all__ = [
    "ApiKeyCreated",
    "ApiKeyInfo",
    "ApiKeyService",
    "AuthMethod",
    "CallerIdentity",
    "IdentityProvider",
    "IdentityProviderError",
    "IdentityResolver",
    "JWTIdentityProvider",
    "generate_api_key",
    "hash_api_key",
    "touch_api_key",
]
