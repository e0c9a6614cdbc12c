"""
Unit tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from marketplace.config import Settings

LOCAL_KEY = "x" * 32


def _settings(**overrides):
    values = {"database_url": "sqlite://", "storage_signing_key": LOCAL_KEY}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        settings = _settings()
        assert settings.api_key_prefix == "mpk_"
        assert settings.download_url_ttl_seconds == 300
        assert settings.bundle_extension == "mpext"
        assert settings.storage_backend == "local"

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("MARKETPLACE_API_KEY_PREFIX", "ext_")
        monkeypatch.setenv("MARKETPLACE_DOWNLOAD_URL_TTL_SECONDS", "60")
        settings = _settings()
        assert settings.api_key_prefix == "ext_"
        assert settings.download_url_ttl_seconds == 60

    def test_local_backend_needs_strong_signing_key(self):
        with pytest.raises(ValidationError):
            _settings(storage_signing_key="short")

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            _settings(storage_backend="s3")

    def test_supabase_backend_needs_credentials(self):
        with pytest.raises(ValidationError):
            _settings(storage_backend="supabase")
        settings = _settings(
            storage_backend="supabase",
            supabase_url="https://project.supabase.co",
            supabase_service_key="service-role-key",  # pragma: allowlist secret
        )
        assert settings.storage_bucket == "extensions"

    @pytest.mark.parametrize("prefix", ["", "has space"])
    def test_api_key_prefix_validation(self, prefix):
        with pytest.raises(ValidationError):
            _settings(api_key_prefix=prefix)

    def test_default_key_lifetime_within_max(self):
        with pytest.raises(ValidationError):
            _settings(api_key_default_days=400, api_key_max_days=365)
