"""
Marketplace Application Configuration
Environment-driven settings for the database, identity provider and bundle storage
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from MARKETPLACE_* environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MARKETPLACE_", extra="ignore")

    # Application
    app_name: str = "Extension Marketplace"
    app_version: str = "0.3.0"
    debug: bool = False
    log_level: str = "INFO"
    audit_log_file: Optional[str] = None

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # Session tokens issued by the external identity provider
    auth_jwt_secret: Optional[str] = None
    auth_jwt_public_key: Optional[str] = None
    auth_jwt_algorithms: List[str] = Field(default_factory=lambda: ["HS256"])
    auth_jwt_audience: Optional[str] = "authenticated"
    auth_jwt_issuer: Optional[str] = None

    # Publisher API keys
    api_key_prefix: str = "mpk_"
    api_key_default_days: int = 90
    api_key_max_days: int = 365

    # Bundle storage
    storage_backend: str = "local"
    storage_local_root: str = os.getenv("MARKETPLACE_STORAGE_LOCAL_ROOT", "/app/data/bundles")
    storage_public_base_url: str = "http://localhost:8000/api/storage"
    storage_signing_key: Optional[str] = None
    storage_bucket: str = "extensions"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    bundle_extension: str = "mpext"
    download_url_ttl_seconds: int = 300
    max_bundle_size: int = 50 * 1024 * 1024  # 50MB
    max_image_size: int = 2 * 1024 * 1024  # 2MB
    max_screenshots: int = 10

    # CORS
    allowed_origins: List[str] = Field(
        default_factory=lambda: os.getenv("MARKETPLACE_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    )

    @field_validator("storage_backend")
    @classmethod
    def storage_backend_must_be_known(cls, v: str) -> str:
        if v not in ("local", "supabase"):
            raise ValueError("storage_backend must be 'local' or 'supabase'")
        return v

    @field_validator("api_key_prefix")
    @classmethod
    def api_key_prefix_must_be_printable(cls, v: str) -> str:
        if not v or not v.isprintable() or " " in v:
            raise ValueError("API key prefix must be a non-empty printable string without spaces")
        return v

    @model_validator(mode="after")
    def check_storage_credentials(self) -> "Settings":
        if self.storage_backend == "local":
            if not self.storage_signing_key or len(self.storage_signing_key) < 32:
                raise ValueError("storage_signing_key must be at least 32 characters for the local backend")
        elif not (self.supabase_url and self.supabase_service_key):
            raise ValueError("supabase_url and supabase_service_key are required for the supabase backend")
        if self.api_key_default_days > self.api_key_max_days:
            raise ValueError("api_key_default_days cannot exceed api_key_max_days")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()
