"""
Download Recorder Module

Usage:
    from marketplace.services.downloads import ClientMetadata, record_detached

    background_tasks.add_task(
        record_detached, session_factory, extension.id, version.id, None, ClientMetadata()
    )
"""

from .recorder import ClientMetadata, DownloadRecorder, hash_ip, record_detached  # noqa: F401

__all__ = ["ClientMetadata", "DownloadRecorder", "hash_ip", "record_detached"]
