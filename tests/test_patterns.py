"""
Pattern analysis and schedule-slot suggestion tests.

Run:
    pytest tests/test_patterns.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from recommender.models.config import RecommendationConfig
from recommender.models.history import AttendanceRecord, BookingRecord, BookingStatus
from recommender.models.results import Priority, SchedulePatterns
from recommender.models.schedule import ClassSummary, ScheduleOccurrence, TrainerSummary
from recommender.stages.patterns import analyze_patterns, day_of_week, rank_schedules, score_schedule
from recommender.stages.schedule_suggestions import rule_based_suggestions, select_available_schedules

from conftest import NOW, at


def occurrence(schedule_id, start, category="YOGA", trainer_id="t-1", capacity=20, booked=0, **extra):
    return ScheduleOccurrence(
        id=schedule_id,
        class_id=f"c-{category.lower()}",
        gym_class=ClassSummary(id=f"c-{category.lower()}", name=f"{category.title()} Class", category=category),
        trainer=TrainerSummary(id=trainer_id, full_name=trainer_id),
        start_time=start,
        end_time=start + timedelta(hours=1),
        max_capacity=capacity,
        current_bookings=booked,
        **extra,
    )


def attended(schedule, rating=None):
    return AttendanceRecord(member_id="m", schedule_id=schedule.id, schedule=schedule, rating=rating)


def booked(schedule, hours_before, status=BookingStatus.COMPLETED, cancelled=False):
    return BookingRecord(
        member_id="m",
        schedule_id=schedule.id,
        schedule=schedule,
        status=BookingStatus.CANCELLED if cancelled else status,
        booked_at=schedule.start_time - timedelta(hours=hours_before),
        cancelled_at=schedule.start_time - timedelta(hours=1) if cancelled else None,
    )


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert day_of_week(datetime(2026, 5, 31, tzinfo=timezone.utc)) == 0

    def test_saturday_is_six(self):
        assert day_of_week(datetime(2026, 6, 6, tzinfo=timezone.utc)) == 6

    def test_monday_is_one(self):
        assert day_of_week(NOW) == 1


class TestAnalyzePatterns:
    def test_empty_history_has_zero_rates(self):
        patterns = analyze_patterns([], [])
        assert patterns.average_attendance_rate == 0.0
        assert patterns.cancellation_rate == 0.0
        assert patterns.no_show_rate == 0.0
        assert patterns.typical_booking_window == 0.0
        assert patterns.preferred_hours == {}

    def test_frequency_maps(self):
        a = occurrence("a", at(-10))
        b = occurrence("b", at(-3))
        c = occurrence("c", at(-5, hour=18), category="STRENGTH", trainer_id="t-2")
        patterns = analyze_patterns([attended(a), attended(b), attended(c)], [])
        assert patterns.preferred_hours == {7: 2, 18: 1}
        assert patterns.preferred_categories == {"YOGA": 2, "STRENGTH": 1}
        assert patterns.preferred_trainers == {"t-1": 2, "t-2": 1}
        assert sum(patterns.preferred_days.values()) == 3

    def test_rates(self):
        schedules = [occurrence(f"s{i}", at(-i - 1)) for i in range(4)]
        bookings = [
            booked(schedules[0], 24),
            booked(schedules[1], 24),
            booked(schedules[2], 24, cancelled=True),
            booked(schedules[3], 24, status=BookingStatus.CONFIRMED),
        ]
        attendance = [attended(schedules[0]), attended(schedules[1])]
        patterns = analyze_patterns(attendance, bookings)
        assert patterns.average_attendance_rate == pytest.approx(50.0)
        assert patterns.cancellation_rate == pytest.approx(25.0)
        # Two booked occurrences were never attended
        assert patterns.no_show_rate == pytest.approx(50.0)

    def test_cancelled_without_timestamp_not_counted(self):
        s = occurrence("s", at(-1))
        booking = BookingRecord(member_id="m", schedule_id="s", schedule=s,
                                status=BookingStatus.CANCELLED, booked_at=at(-2))
        assert analyze_patterns([], [booking]).cancellation_rate == 0.0

    def test_booking_window_is_smoothed(self):
        first = occurrence("a", at(-3))
        second = occurrence("b", at(-2))
        third = occurrence("c", at(-1))
        patterns = analyze_patterns([], [booked(first, 24), booked(second, 48), booked(third, 12)])
        # ((24 + 48) / 2 + 12) / 2
        assert patterns.typical_booking_window == pytest.approx(24.0)

    def test_history_limit(self):
        schedules = [occurrence(f"s{i}", at(-i - 1)) for i in range(10)]
        patterns = analyze_patterns([attended(s) for s in schedules], [], history_limit=4)
        assert sum(patterns.preferred_hours.values()) == 4

    def test_conflicts_from_upcoming_bookings(self):
        upcoming = occurrence("next", at(3))
        patterns = analyze_patterns([], [], upcoming_bookings=[booked(upcoming, 24, status=BookingStatus.CONFIRMED)])
        assert [c.schedule_id for c in patterns.conflicts] == ["next"]
        assert patterns.summary()["conflicts"] == 1


class TestScoreSchedule:
    def setup_method(self):
        history = [occurrence(f"h{i}", at(-7 * i - 3)) for i in range(5)]
        self.patterns = analyze_patterns([attended(h) for h in history], [])

    def test_full_match_scores_highest(self):
        match = occurrence("match", at(4))
        other = occurrence("other", at(5, hour=13), category="CARDIO", trainer_id="t-9", booked=19)
        assert score_schedule(match, self.patterns) > score_schedule(other, self.patterns)

    def test_saturated_match_value(self):
        # Five Friday 07:00 yoga classes with t-1: hour 20, day 15, category 12.5,
        # trainer 30, availability 10, band 5
        match = occurrence("match", at(4))
        assert score_schedule(match, self.patterns) == 93

    def test_no_history_scores_only_availability(self):
        empty = SchedulePatterns()
        assert score_schedule(occurrence("s", at(1), booked=0), empty) == 10
        assert score_schedule(occurrence("s", at(1), booked=12), empty) == 5
        assert score_schedule(occurrence("s", at(1), booked=19), empty) == 0

    def test_rank_keeps_start_order_for_ties(self):
        empty = SchedulePatterns()
        items = [occurrence(f"s{i}", at(i + 1)) for i in range(4)]
        assert [s.id for s, _ in rank_schedules(items, empty)] == ["s0", "s1", "s2", "s3"]


class TestSelectAvailable:
    def test_window_status_and_booked(self):
        items = [
            occurrence("past", at(-1)),
            occurrence("soon", at(1)),
            occurrence("booked", at(2)),
            occurrence("cancelled", at(3), status="CANCELLED"),
            occurrence("far", at(45)),
        ]
        chosen = select_available_schedules(items, NOW, 30, booked_schedule_ids={"booked"})
        assert [s.id for s in chosen] == ["soon"]

    def test_filters(self):
        items = [
            occurrence("yoga", at(1)),
            occurrence("cardio", at(2), category="CARDIO", trainer_id="t-2"),
        ]
        assert [s.id for s in select_available_schedules(items, NOW, 30, category="CARDIO")] == ["cardio"]
        assert [s.id for s in select_available_schedules(items, NOW, 30, trainer_id="t-1")] == ["yoga"]
        assert [s.id for s in select_available_schedules(items, NOW, 30, class_id="c-yoga")] == ["yoga"]

    def test_full_with_long_waitlist_excluded(self):
        items = [
            occurrence("full-short", at(1), capacity=10, booked=10, waitlist_count=2),
            occurrence("full-long", at(2), capacity=10, booked=10, waitlist_count=10),
        ]
        assert [s.id for s in select_available_schedules(items, NOW, 30)] == ["full-short"]

    def test_earliest_first_and_capped(self):
        items = [occurrence(f"s{i}", at(10 - i)) for i in range(8)]
        config = RecommendationConfig(available_schedule_limit=3)
        chosen = select_available_schedules(items, NOW, 30, config=config)
        assert [s.id for s in chosen] == ["s7", "s6", "s5"]


class TestRuleBasedSuggestions:
    def test_reason_and_priority(self):
        history = occurrence("h", at(-3))
        patterns = analyze_patterns([attended(history)], [])
        ranked = rank_schedules([occurrence("a", at(4)), occurrence("b", at(5, hour=13), category="CARDIO",
                                                                    trainer_id="t-9", booked=10)], patterns)
        suggestions = rule_based_suggestions(ranked, patterns)
        top = suggestions[0]
        assert top.schedule_id == "a"
        assert top.priority == Priority.HIGH
        assert top.reason.startswith("Matches your preferred time (7:00).")
        assert "Plenty of spots available." in top.reason
        assert suggestions[1].priority == Priority.MEDIUM
        assert suggestions[1].reason == "Good match based on your preferences."

    def test_limited_spots_is_urgent(self):
        ranked = [(occurrence("a", at(1), booked=19), 0)]
        [suggestion] = rule_based_suggestions(ranked, SchedulePatterns())
        assert suggestion.priority == Priority.HIGH
        assert suggestion.reason == "Limited spots - book soon!"

    def test_waitlist_flag_and_limit(self):
        ranked = [(occurrence(f"s{i}", at(i + 1), capacity=5, booked=5), 0) for i in range(8)]
        suggestions = rule_based_suggestions(ranked, SchedulePatterns(), limit=5)
        assert len(suggestions) == 5
        assert all(s.is_waitlist and s.spots_left == 0 for s in suggestions)
