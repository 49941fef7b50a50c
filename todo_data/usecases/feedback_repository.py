from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable

from todo_data.domain.entities import Feedback, FeedbackCategory
from todo_data.domain.outcome import Outcome, Success
from todo_data.domain.params import SubmitFeedbackParams
from todo_data.domain.validation import RATING_MAX, RATING_MIN
from todo_data.usecases.cache_aside import CacheAsideRepository


@dataclass(frozen=True)
class FeedbackAnalytics:
    total: int
    average_rating: float
    rating_distribution: Dict[int, int] = field(default_factory=dict)
    category_distribution: Dict[FeedbackCategory, int] = field(default_factory=dict)

    @classmethod
    def from_feedback(cls, items: Iterable[Feedback]) -> "FeedbackAnalytics":
        items = list(items)
        ratings = {rating: 0 for rating in range(RATING_MIN, RATING_MAX + 1)}
        categories = {category: 0 for category in FeedbackCategory}
        for item in items:
            ratings[item.rating] = ratings.get(item.rating, 0) + 1
            categories[item.category] += 1
        average = sum(item.rating for item in items) / len(items) if items else 0.0
        return cls(
            total=len(items),
            average_rating=average,
            rating_distribution=ratings,
            category_distribution=categories,
        )


class FeedbackRepository(CacheAsideRepository[Feedback]):
    """Submitted feedback, newest first."""

    collection = "feedback"

    async def submit(self, params: SubmitFeedbackParams) -> Outcome[Feedback]:
        return await self.create(params)

    def analytics(self) -> Outcome[FeedbackAnalytics]:
        now = self._clock()
        ttl = self.config.cache_expiry
        entries = self.store.all(self.collection)
        stale = any(not entry.is_fresh(now, ttl) for entry in entries)
        return Success(
            FeedbackAnalytics.from_feedback(entry.entity for entry in entries),
            stale=stale,
        )


__all__ = ["FeedbackAnalytics", "FeedbackRepository"]
