"""
Rating Aggregator

Reviews are the source of truth; Extension.average_rating and
Extension.review_count are a denormalized cache recomputed from the full
review set after every review mutation, before the request returns.
"""

import logging
import math
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import Extension, ExtensionReview, utcnow
from ...exceptions import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


def scaled_average(average: Optional[float]) -> Optional[int]:
    """Mean rating scaled by 100, rounded half away from zero like SQL ROUND."""
    if average is None:
        return None
    return int(math.floor(float(average) * 100 + 0.5))


class RatingAggregator:
    """Review upserts plus the rating statistics derived from them"""

    def __init__(self, db: Session):
        self.db = db

    def upsert_review(
        self,
        extension: Extension,
        subject_id: str,
        rating: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Tuple[ExtensionReview, bool]:
        """
        Create the caller's review, or overwrite it if one exists.

        Returns:
            (review, created) where created is False for an overwrite

        Raises:
            InvalidInputError: If rating is not an integer from 1 to 5
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputError("Rating must be an integer between 1 and 5")

        review = self._get(extension.id, subject_id)
        created = review is None

        if created:
            now = utcnow()
            review = ExtensionReview(
                extension_id=extension.id,
                user_id=subject_id,
                rating=rating,
                title=title,
                content=content,
                created_at=now,
                updated_at=now,
            )
            self.db.add(review)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent first review by the same identity was inserted first
                self.db.rollback()
                review = self._get(extension.id, subject_id)
                if review is None:
                    raise
                created = False
                self._overwrite(review, rating, title, content)
        else:
            self._overwrite(review, rating, title, content)
        self.db.refresh(review)

        self.recompute(extension.id)
        return review, created

    def delete_review(self, extension: Extension, subject_id: str) -> None:
        """
        Raises:
            NotFoundError: If the caller has no review on this extension
        """
        review = self._get(extension.id, subject_id)
        if not review:
            raise NotFoundError("Review not found")

        self.db.delete(review)
        self.db.commit()
        self.recompute(extension.id)

    def list_reviews(self, extension: Extension, page: int = 1, limit: int = 20) -> Tuple[List[ExtensionReview], int]:
        """Newest reviews first. Returns the page and the total review count."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = self.db.query(ExtensionReview).filter(ExtensionReview.extension_id == extension.id)
        total = query.count()
        reviews = (
            query.order_by(ExtensionReview.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return reviews, total

    def recompute(self, extension_id: UUID) -> None:
        """Rewrite the extension's rating statistics from its reviews."""
        average, count = (
            self.db.query(func.avg(ExtensionReview.rating), func.count(ExtensionReview.id))
            .filter(ExtensionReview.extension_id == extension_id)
            .one()
        )
        self.db.execute(
            update(Extension)
            .where(Extension.id == extension_id)
            .values(average_rating=scaled_average(average) if count else None, review_count=count)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        logger.debug(f"Recomputed rating for extension {extension_id}: avg={average} count={count}")

    def _overwrite(
        self, review: ExtensionReview, rating: int, title: Optional[str], content: Optional[str]
    ) -> None:
        review.rating = rating
        review.title = title
        review.content = content
        review.updated_at = utcnow()
        self.db.commit()

    def _get(self, extension_id: UUID, subject_id: str) -> Optional[ExtensionReview]:
        return (
            self.db.query(ExtensionReview)
            .filter(ExtensionReview.extension_id == extension_id, ExtensionReview.user_id == subject_id)
            .first()
        )
