"""
Bundle storage backends

Usage:
    from marketplace.services.storage import create_bundle_storage, bundle_path

    storage = create_bundle_storage(get_settings())
    storage.put(bundle_path("acme", "tool", "1.0.0", "mpext"), data)
"""

from functools import lru_cache

from ...config import Settings, get_settings
from .base import MEDIA_PREFIX, BundleStorage, StorageConflictError, StorageError, bundle_path, media_path
from .local import LocalBundleStorage
from .supabase import SupabaseBundleStorage


def create_bundle_storage(settings: Settings) -> BundleStorage:
    """Build the storage backend selected by settings.storage_backend."""
    if settings.storage_backend == "supabase":
        return SupabaseBundleStorage(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
        )
    return LocalBundleStorage(
        root=settings.storage_local_root,
        public_base_url=settings.storage_public_base_url,
        signing_key=settings.storage_signing_key,
    )


@lru_cache()
def get_bundle_storage() -> BundleStorage:
    """FastAPI dependency returning the process-wide storage backend"""
    return create_bundle_storage(get_settings())


__all__ = [
    "MEDIA_PREFIX",
    "BundleStorage",
    "LocalBundleStorage",
    "StorageConflictError",
    "StorageError",
    "SupabaseBundleStorage",
    "bundle_path",
    "create_bundle_storage",
    "get_bundle_storage",
    "media_path",
]
