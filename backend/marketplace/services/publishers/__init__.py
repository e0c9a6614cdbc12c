"""
Publisher Registry Module

Usage:
    from marketplace.services.publishers import PublisherRegistry

    registry = PublisherRegistry(db)
    publisher = registry.register(identity.subject_id, profile)
"""

from .registry import PublisherRegistry  # noqa: F401

__all__ = ["PublisherRegistry"]
