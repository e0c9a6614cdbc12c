"""
Rating Aggregator Module

Usage:
    from marketplace.services.reviews import RatingAggregator

    aggregator = RatingAggregator(db)
    review, created = aggregator.upsert_review(extension, identity.subject_id, rating=5)
"""

from .aggregator import MAX_PAGE_SIZE, RatingAggregator, scaled_average  # noqa: F401

__all__ = ["MAX_PAGE_SIZE", "RatingAggregator", "scaled_average"]
