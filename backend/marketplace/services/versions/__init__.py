"""
Version Pipeline Module

Bundle hashing, semantic version ordering and the publish transition.

Usage:
    from marketplace.services.versions import VersionPipeline

    pipeline = VersionPipeline(db, storage)
    draft = pipeline.create_version(publisher, extension, bundle_bytes, metadata)
    result = pipeline.publish(extension, draft.version)
"""

from .pipeline import PublishResult, VersionPipeline, compute_bundle_hash  # noqa: F401
from .semver_utils import highest, is_valid_version, parse_version, sort_descending  # noqa: F401

__all__ = [
    "PublishResult",
    "VersionPipeline",
    "compute_bundle_hash",
    "highest",
    "is_valid_version",
    "parse_version",
    "sort_descending",
]
