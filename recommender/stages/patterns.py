"""
Pattern analysis: mine attendance / booking history for scheduling preferences.

Produces SchedulePatterns (preferred hour, day-of-week, category and trainer
frequency maps plus attendance, cancellation and no-show rates) and scores
candidate schedule occurrences against them.

Hours and days are evaluated in the gym's timezone. Day-of-week uses
0 = Sunday .. 6 = Saturday.
"""

import math
from datetime import datetime, timezone, tzinfo
from typing import Dict, List, Optional, Sequence

from recommender.models.history import AttendanceRecord, BookingRecord
from recommender.models.results import ConflictRef, SchedulePatterns
from recommender.models.schedule import ScheduleOccurrence

# Time-of-day bands (start hour inclusive, end hour exclusive)
TIME_BANDS = {
    "morning": (6, 12),
    "afternoon": (12, 18),
    "evening": (18, 22),
}

# (max points, count at which the points saturate)
HOUR_POINTS = (20, 5)
DAY_POINTS = (15, 3)
CATEGORY_POINTS = (25, 10)
TRAINER_POINTS = (30, 5)
BAND_BONUS = 5


def local_time(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert to the gym timezone; naive timestamps are treated as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or timezone.utc)


def day_of_week(moment: datetime) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return moment.isoweekday() % 7


def time_band(hour: int) -> Optional[str]:
    for name, (start, end) in TIME_BANDS.items():
        if start <= hour < end:
            return name
    return None


def _bump(freq: Dict, key) -> None:
    freq[key] = freq.get(key, 0) + 1


def _rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator * 100


def analyze_patterns(
    attendance: Sequence[AttendanceRecord],
    bookings: Sequence[BookingRecord],
    upcoming_bookings: Sequence[BookingRecord] = (),
    tz: Optional[tzinfo] = None,
    history_limit: int = 100,
) -> SchedulePatterns:
    """
    Build SchedulePatterns from recent history (most recent first).

    Only the first history_limit attendance and booking records are used.
    Records without an attached occurrence are skipped for the frequency maps
    and the booking window but still count toward the rates.
    """
    attendance = list(attendance)[:history_limit]
    bookings = list(bookings)[:history_limit]
    patterns = SchedulePatterns()

    for record in attendance:
        schedule = record.schedule
        if schedule is None:
            continue
        start = local_time(schedule.start_time, tz)
        _bump(patterns.preferred_hours, start.hour)
        _bump(patterns.preferred_days, day_of_week(start))
        if schedule.gym_class is not None:
            _bump(patterns.preferred_categories, schedule.gym_class.category.value)
        if schedule.trainer is not None:
            _bump(patterns.preferred_trainers, schedule.trainer.id)

    # Exponentially smoothed lead time, seeded with the first delta
    window: Optional[float] = None
    for booking in bookings:
        if booking.schedule is None:
            continue
        delta = (
            local_time(booking.schedule.start_time) - local_time(booking.booked_at)
        ).total_seconds() / 3600.0
        window = delta if window is None else (window + delta) / 2
    patterns.typical_booking_window = window or 0.0

    total_bookings = len(bookings)
    patterns.average_attendance_rate = _rate(len(attendance), total_bookings)
    patterns.cancellation_rate = _rate(sum(1 for b in bookings if b.is_cancelled), total_bookings)

    booked_ids = {b.schedule_id for b in bookings}
    attended_ids = {a.schedule_id for a in attendance}
    patterns.no_show_rate = _rate(len(booked_ids - attended_ids), total_bookings)

    patterns.conflicts = [
        ConflictRef(
            schedule_id=b.schedule_id,
            class_name=b.schedule.gym_class.name if b.schedule.gym_class else "Unknown",
            start_time=b.schedule.start_time,
            end_time=b.schedule.end_time,
        )
        for b in upcoming_bookings
        if b.schedule is not None
    ]
    return patterns


def _scaled(points: tuple, count: int) -> float:
    max_points, saturation = points
    if count <= 0:
        return 0.0
    return max_points * min(count / saturation, 1.0)


def score_schedule(
    schedule: ScheduleOccurrence,
    patterns: SchedulePatterns,
    tz: Optional[tzinfo] = None,
) -> int:
    """
    Score one occurrence against the member's patterns (higher is better).

    Hour, day, category and trainer matches scale with how often they appear in
    history; availability and a matching time-of-day band add fixed bonuses.
    """
    start = local_time(schedule.start_time, tz)
    hour = start.hour
    score = 0.0

    score += _scaled(HOUR_POINTS, patterns.preferred_hours.get(hour, 0))
    score += _scaled(DAY_POINTS, patterns.preferred_days.get(day_of_week(start), 0))
    if schedule.gym_class is not None:
        score += _scaled(
            CATEGORY_POINTS,
            patterns.preferred_categories.get(schedule.gym_class.category.value, 0),
        )
    if schedule.trainer is not None:
        score += _scaled(TRAINER_POINTS, patterns.preferred_trainers.get(schedule.trainer.id, 0))

    ratio = schedule.availability_ratio
    if ratio > 0.5:
        score += 10
    elif ratio > 0.2:
        score += 5

    band = time_band(hour)
    if band is not None and any(time_band(h) == band for h in patterns.preferred_hours):
        score += BAND_BONUS

    # Round half up
    return int(math.floor(score + 0.5))


def rank_schedules(
    schedules: Sequence[ScheduleOccurrence],
    patterns: SchedulePatterns,
    tz: Optional[tzinfo] = None,
) -> List[tuple]:
    """(occurrence, score) pairs sorted by score; equal scores keep start-time order."""
    scored = [(s, score_schedule(s, patterns, tz)) for s in schedules]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
