"""
Scoring model — CandidateCard and the popularity / recency formulas.

Contains:
- ClassMetrics: per-class aggregates from attendance and booking history
- popularity_score, recency_score, days_since: pure helpers used by ranking
- CandidateCard: a class with all of its recommendation scores
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from .gym_class import GymClass
from .results import RecommendedClass

# Counts at which attendance / bookings saturate the popularity factor
POPULARITY_COUNT_CAP = 100

# Recency curve anchor points (days since last occurrence)
RECENCY_FULL_DAYS = 7
RECENCY_DECAY_DAYS = 30
RECENCY_FLOOR_DAYS = 90
RECENCY_AT_DECAY_END = 0.2
RECENCY_FLOOR = 0.1
RECENCY_NO_HISTORY = 0.5


class ClassMetrics(BaseModel):
    """Historical aggregates for one class."""

    class_id: str
    attendance_count: int = 0
    booking_count: int = 0
    average_rating: float = 0.0
    last_occurrence: Optional[datetime] = None

    @property
    def completion_rate(self) -> float:
        """attendance / bookings, 0 when there are no bookings."""
        if self.booking_count <= 0:
            return 0.0
        return self.attendance_count / self.booking_count


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _norm(count: float, cap: float = POPULARITY_COUNT_CAP) -> float:
    if count <= 0:
        return 0.0
    return min(count / cap, 1.0)


def popularity_score(
    attendance_count: int,
    booking_count: int,
    average_rating: float,
    completion_rate: float,
) -> float:
    """
    Popularity in [0, 1].

    0.3 * norm(attendance) + 0.2 * norm(bookings) + 0.3 * (rating-1)/4 + 0.2 * min(completion, 1).
    An unrated class (average_rating 0) contributes nothing from the rating term.
    """
    rating_term = _clamp((average_rating - 1) / 4) if average_rating > 0 else 0.0
    score = (
        0.3 * _norm(attendance_count)
        + 0.2 * _norm(booking_count)
        + 0.3 * rating_term
        + 0.2 * _clamp(completion_rate)
    )
    return _clamp(score)


def metrics_popularity(metrics: ClassMetrics) -> float:
    return popularity_score(
        metrics.attendance_count,
        metrics.booking_count,
        metrics.average_rating,
        metrics.completion_rate,
    )


def days_since(moment: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    """Days elapsed since a timestamp (naive timestamps are treated as UTC)."""
    if moment is None:
        return None
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 86400.0


def recency_score(days_since_last: Optional[float]) -> float:
    """
    Recency of a class's last occurrence.

    1.0 up to 7 days; linear to 0.2 at 30 days; linear to the 0.1 floor at 90 days;
    0.1 beyond. 0.5 when the class has no occurrence history.
    """
    if days_since_last is None:
        return RECENCY_NO_HISTORY
    days = max(0.0, days_since_last)
    if days <= RECENCY_FULL_DAYS:
        return 1.0
    if days <= RECENCY_DECAY_DAYS:
        span = RECENCY_DECAY_DAYS - RECENCY_FULL_DAYS
        return 1.0 - (1.0 - RECENCY_AT_DECAY_END) * (days - RECENCY_FULL_DAYS) / span
    if days <= RECENCY_FLOOR_DAYS:
        span = RECENCY_FLOOR_DAYS - RECENCY_DECAY_DAYS
        return RECENCY_AT_DECAY_END - (RECENCY_AT_DECAY_END - RECENCY_FLOOR) * (
            days - RECENCY_DECAY_DAYS
        ) / span
    return RECENCY_FLOOR


def metrics_recency(metrics: ClassMetrics, now: Optional[datetime] = None) -> float:
    return recency_score(days_since(metrics.last_occurrence, now))


class CandidateCard(BaseModel):
    """A class with all its scoring components, built fresh per request."""

    gym_class: GymClass
    similarity: float
    popularity: float
    recency: float
    diversity: float
    final_score: float
    retrieval_rank: int = 0

    def to_recommended(self, reason: Optional[str] = None) -> RecommendedClass:
        """Typed response entry with rounded scores."""
        c = self.gym_class
        return RecommendedClass(
            class_id=c.id,
            name=c.name,
            category=c.category,
            difficulty=c.difficulty,
            description=c.description,
            duration=c.duration,
            similarity=round(self.similarity, 4),
            popularity=round(self.popularity, 4),
            recency=round(self.recency, 4),
            diversity=round(self.diversity, 4),
            final_score=round(self.final_score, 4),
            reason=reason,
        )
