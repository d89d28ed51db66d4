"""
Schedule-slot suggestions: choose bookable occurrences and explain the top ones.

select_available_schedules applies the availability rules to raw occurrences;
rule_based_suggestions turns the highest scored ones into ScheduleSuggestions
with a human-readable reason and a priority.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig
from recommender.models.results import Priority, RoomRef, SchedulePatterns, ScheduleSuggestion, TrainerRef
from recommender.models.schedule import ScheduleOccurrence, ScheduleStatus

from .patterns import local_time


def is_bookable(schedule: ScheduleOccurrence, config: RecommendationConfig = DEFAULT_CONFIG) -> bool:
    """Free spots, or a waitlist that is still short enough to join."""
    return schedule.spots_left > 0 or schedule.waitlist_count < config.max_waitlist


def select_available_schedules(
    schedules: Iterable[ScheduleOccurrence],
    now: datetime,
    date_range_days: int,
    booked_schedule_ids: Set[str] = frozenset(),
    class_id: Optional[str] = None,
    category: Optional[str] = None,
    trainer_id: Optional[str] = None,
    config: RecommendationConfig = DEFAULT_CONFIG,
) -> List[ScheduleOccurrence]:
    """
    Occurrences in [now, now + date_range_days], SCHEDULED, not already booked
    by the member, matching the optional filters, earliest first.

    The window is capped at available_schedule_limit before the bookable check.
    """
    end = now + timedelta(days=date_range_days)
    window = []
    for s in schedules:
        start = local_time(s.start_time)
        if start < local_time(now) or start > local_time(end):
            continue
        if s.status != ScheduleStatus.SCHEDULED:
            continue
        if s.id in booked_schedule_ids:
            continue
        if class_id and s.class_id != class_id:
            continue
        if category and (s.category is None or s.category.value != category):
            continue
        if trainer_id and (s.trainer is None or s.trainer.id != trainer_id):
            continue
        window.append(s)
    window.sort(key=lambda s: local_time(s.start_time))
    window = window[: config.available_schedule_limit]
    return [s for s in window if is_bookable(s, config)]


def _reason_and_priority(
    schedule: ScheduleOccurrence,
    patterns: SchedulePatterns,
    tz,
) -> Tuple[str, Priority]:
    reasons = []
    priority = Priority.MEDIUM
    hour = local_time(schedule.start_time, tz).hour

    if patterns.preferred_hours.get(hour):
        reasons.append(f"Matches your preferred time ({hour}:00).")
        priority = Priority.HIGH
    if schedule.category is not None and patterns.preferred_categories.get(schedule.category.value):
        reasons.append(f"You often attend {schedule.category.value} classes.")
        priority = Priority.HIGH
    if schedule.trainer is not None and patterns.preferred_trainers.get(schedule.trainer.id):
        reasons.append("Your favorite trainer is teaching.")
        priority = Priority.HIGH

    ratio = schedule.availability_ratio
    if ratio > 0.5:
        reasons.append("Plenty of spots available.")
    elif ratio < 0.2:
        reasons.append("Limited spots - book soon!")
        priority = Priority.HIGH

    if not reasons:
        return "Good match based on your preferences.", priority
    return " ".join(reasons), priority


def to_suggestion(
    schedule: ScheduleOccurrence,
    score: int,
    reason: str,
    priority: Priority,
) -> ScheduleSuggestion:
    return ScheduleSuggestion(
        schedule_id=schedule.id,
        class_name=schedule.gym_class.name if schedule.gym_class else "Unknown",
        category=schedule.category.value if schedule.category else "Unknown",
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        trainer=(
            TrainerRef(
                id=schedule.trainer.id,
                name=schedule.trainer.full_name,
                avatar=schedule.trainer.profile_photo,
            )
            if schedule.trainer
            else None
        ),
        room=(
            RoomRef(id=schedule.room.id, name=schedule.room.name, capacity=schedule.room.capacity)
            if schedule.room
            else None
        ),
        spots_left=schedule.spots_left,
        max_capacity=schedule.max_capacity,
        score=score,
        priority=priority,
        reason=reason,
        is_waitlist=schedule.spots_left <= 0,
    )


def rule_based_suggestions(
    ranked: Sequence[Tuple[ScheduleOccurrence, int]],
    patterns: SchedulePatterns,
    tz=None,
    limit: int = 5,
) -> List[ScheduleSuggestion]:
    """Top `limit` scored occurrences with reasons drawn from the member's patterns."""
    suggestions = []
    for schedule, score in list(ranked)[:limit]:
        reason, priority = _reason_and_priority(schedule, patterns, tz)
        suggestions.append(to_suggestion(schedule, score, reason, priority))
    return suggestions
