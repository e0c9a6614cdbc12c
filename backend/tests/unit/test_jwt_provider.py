"""
Unit tests for the JWT session token verifier.
"""

import time

import jwt
import pytest

from marketplace.services.identity import IdentityProviderError, JWTIdentityProvider

SECRET = "provider-shared-secret-for-tests"  # pragma: allowlist secret


def _token(claims=None, secret=SECRET, **overrides):
    payload = {"sub": "user-alice", "aud": "authenticated", "exp": int(time.time()) + 300}
    payload.update(claims or {})
    for key, value in overrides.items():
        if value is None:
            payload.pop(key, None)
        else:
            payload[key] = value
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def provider():
    return JWTIdentityProvider(key=SECRET, algorithms=["HS256"], audience="authenticated")


@pytest.mark.unit
class TestJWTIdentityProvider:
    def test_returns_subject(self, provider):
        assert provider.verify(_token()) == "user-alice"

    def test_expired_token(self, provider):
        with pytest.raises(IdentityProviderError):
            provider.verify(_token(exp=int(time.time()) - 10))

    def test_wrong_signature(self, provider):
        with pytest.raises(IdentityProviderError):
            provider.verify(_token(secret="some-other-secret-value-000000"))

    def test_wrong_audience(self, provider):
        with pytest.raises(IdentityProviderError):
            provider.verify(_token(aud="anon"))

    def test_missing_subject(self, provider):
        with pytest.raises(IdentityProviderError):
            provider.verify(_token(sub=None))

    def test_garbage_token(self, provider):
        with pytest.raises(IdentityProviderError):
            provider.verify("not-a-jwt")

    def test_no_key_configured(self):
        provider = JWTIdentityProvider(key=None, algorithms=["HS256"])
        with pytest.raises(IdentityProviderError):
            provider.verify(_token())

    def test_issuer_checked_when_configured(self):
        provider = JWTIdentityProvider(
            key=SECRET, algorithms=["HS256"], audience="authenticated", issuer="https://auth.example.com"
        )
        assert provider.verify(_token(iss="https://auth.example.com")) == "user-alice"
        with pytest.raises(IdentityProviderError):
            provider.verify(_token(iss="https://evil.example.com"))
