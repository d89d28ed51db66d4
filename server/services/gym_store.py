"""
Gym Store abstraction.

Supplies members, classes, schedule occurrences and booking / attendance
history to the orchestrator. Implementations: JSON fixtures (local, tests),
Postgres (production, see sql_store). Swap via DATA_SOURCE.
"""

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from recommender.models.gym_class import GymClass, ensure_classes
from recommender.models.history import (
    AttendanceRecord,
    BookingRecord,
    BookingStatus,
    ensure_attendance,
    ensure_bookings,
)
from recommender.models.member import MemberProfile
from recommender.models.schedule import (
    ClassSummary,
    RoomSummary,
    ScheduleOccurrence,
    ScheduleStatus,
    TrainerSummary,
)
from recommender.models.scoring import ClassMetrics

ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.WAITLIST)

# Bookings that count toward "popular" for cache warming
POPULARITY_BOOKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class GymStore(Protocol):
    """Protocol for gym data reads (and embedding writes). Implement for JSON or Postgres."""

    async def get_member(self, member_id: str) -> Optional[MemberProfile]:
        ...

    async def get_class(self, class_id: str) -> Optional[GymClass]:
        ...

    async def get_classes(self, class_ids: Sequence[str]) -> List[GymClass]:
        """Classes for the given ids, in the same order; unknown ids are skipped."""
        ...

    async def list_active_classes(self) -> List[GymClass]:
        ...

    async def attendance_history(self, member_id: str, limit: int = 100) -> List[AttendanceRecord]:
        """Most recent first."""
        ...

    async def booking_history(self, member_id: str, limit: int = 100) -> List[BookingRecord]:
        """Most recent first (by booked_at)."""
        ...

    async def upcoming_bookings(self, member_id: str, now: datetime) -> List[BookingRecord]:
        """CONFIRMED / WAITLIST bookings whose occurrence starts at or after now."""
        ...

    async def list_schedules(
        self,
        start: datetime,
        end: datetime,
        *,
        class_id: Optional[str] = None,
        category: Optional[str] = None,
        trainer_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
        limit: int = 50,
    ) -> List[ScheduleOccurrence]:
        """SCHEDULED occurrences starting in [start, end], earliest first."""
        ...

    async def class_metrics(self, class_id: str, now: datetime) -> ClassMetrics:
        ...

    async def popular_class_ids(self, since: datetime, limit: int = 50) -> List[str]:
        """Class ids ordered by CONFIRMED / COMPLETED bookings made since `since`."""
        ...

    async def update_class_embedding(self, class_id: str, vector: List[float]) -> None:
        ...

    async def update_member_embedding(self, member_id: str, vector: List[float]) -> None:
        ...


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class JsonGymStore:
    """
    Gym store backed by in-memory lists, loaded from a JSON fixture file or dicts.
    Used for local development and tests.

    Fixture layout: {"members": [...], "classes": [...], "trainers": [...],
    "rooms": [...], "schedules": [...], "bookings": [...], "attendance": [...]}.
    Schedules reference class_id / trainer_id / room_id; summaries are attached
    on read.
    """

    def __init__(self, data: Dict[str, List[Dict[str, Any]]]):
        self._members: Dict[str, MemberProfile] = {
            m["id"]: MemberProfile.model_validate(m) for m in data.get("members", [])
        }
        self._classes: Dict[str, GymClass] = {
            c.id: c for c in ensure_classes(data.get("classes", []))
        }
        self._trainers: Dict[str, TrainerSummary] = {
            t["id"]: TrainerSummary.model_validate(t) for t in data.get("trainers", [])
        }
        self._rooms: Dict[str, RoomSummary] = {
            r["id"]: RoomSummary.model_validate(r) for r in data.get("rooms", [])
        }
        self._schedule_rows: Dict[str, Dict[str, Any]] = {
            s["id"]: dict(s) for s in data.get("schedules", [])
        }
        self._booking_rows: List[Dict[str, Any]] = [dict(b) for b in data.get("bookings", [])]
        self._attendance_rows: List[Dict[str, Any]] = [dict(a) for a in data.get("attendance", [])]

    @classmethod
    def from_file(cls, path: Path) -> "JsonGymStore":
        with open(path, "r", encoding="utf-8") as f:
            return cls(json.load(f))

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def _confirmed_count(self, schedule_id: str) -> int:
        return sum(
            1
            for b in self._booking_rows
            if b["schedule_id"] == schedule_id
            and b.get("status", BookingStatus.CONFIRMED.value) == BookingStatus.CONFIRMED.value
        )

    def _schedule(self, schedule_id: str) -> Optional[ScheduleOccurrence]:
        row = self._schedule_rows.get(schedule_id)
        if row is None:
            return None
        gym_class = self._classes.get(row["class_id"])
        occurrence = dict(row)
        occurrence["gym_class"] = (
            ClassSummary(
                id=gym_class.id,
                name=gym_class.name,
                category=gym_class.category,
                difficulty=gym_class.difficulty,
                duration=gym_class.duration,
            )
            if gym_class
            else None
        )
        occurrence["trainer"] = self._trainers.get(row.get("trainer_id"))
        occurrence["room"] = self._rooms.get(row.get("room_id"))
        occurrence.setdefault(
            "max_capacity", gym_class.max_capacity if gym_class else 0
        )
        occurrence["confirmed_bookings"] = self._confirmed_count(schedule_id)
        return ScheduleOccurrence.model_validate(occurrence)

    def _with_schedule(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {**row, "schedule": self._schedule(row["schedule_id"])}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_member(self, member_id: str) -> Optional[MemberProfile]:
        return self._members.get(member_id)

    async def get_class(self, class_id: str) -> Optional[GymClass]:
        return self._classes.get(class_id)

    async def get_classes(self, class_ids: Sequence[str]) -> List[GymClass]:
        return [self._classes[i] for i in class_ids if i in self._classes]

    async def list_active_classes(self) -> List[GymClass]:
        return [c for c in self._classes.values() if c.is_active is not False]

    async def attendance_history(self, member_id: str, limit: int = 100) -> List[AttendanceRecord]:
        rows = [self._with_schedule(a) for a in self._attendance_rows if a["member_id"] == member_id]
        records = ensure_attendance(rows)
        records.sort(
            key=lambda r: _aware(r.created_at) if r.created_at else datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return records[:limit]

    async def booking_history(self, member_id: str, limit: int = 100) -> List[BookingRecord]:
        rows = [self._with_schedule(b) for b in self._booking_rows if b["member_id"] == member_id]
        records = ensure_bookings(rows)
        records.sort(key=lambda r: _aware(r.booked_at), reverse=True)
        return records[:limit]

    async def upcoming_bookings(self, member_id: str, now: datetime) -> List[BookingRecord]:
        records = await self.booking_history(member_id, limit=len(self._booking_rows))
        return [
            r
            for r in records
            if r.status in ACTIVE_BOOKING_STATUSES
            and r.schedule is not None
            and _aware(r.schedule.start_time) >= _aware(now)
        ]

    async def list_schedules(
        self,
        start: datetime,
        end: datetime,
        *,
        class_id: Optional[str] = None,
        category: Optional[str] = None,
        trainer_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
        limit: int = 50,
    ) -> List[ScheduleOccurrence]:
        excluded = set(exclude_ids)
        found = []
        for schedule_id in self._schedule_rows:
            if schedule_id in excluded:
                continue
            s = self._schedule(schedule_id)
            if s is None or s.status != ScheduleStatus.SCHEDULED:
                continue
            if not (_aware(start) <= _aware(s.start_time) <= _aware(end)):
                continue
            if class_id and s.class_id != class_id:
                continue
            if category and (s.category is None or s.category.value != category):
                continue
            if trainer_id and (s.trainer is None or s.trainer.id != trainer_id):
                continue
            found.append(s)
        found.sort(key=lambda s: _aware(s.start_time))
        return found[:limit]

    async def class_metrics(self, class_id: str, now: datetime) -> ClassMetrics:
        schedule_ids = {sid for sid, row in self._schedule_rows.items() if row["class_id"] == class_id}
        attendance = [a for a in self._attendance_rows if a["schedule_id"] in schedule_ids]
        bookings = [b for b in self._booking_rows if b["schedule_id"] in schedule_ids]
        ratings = [a["rating"] for a in attendance if a.get("rating")]
        past_starts = [
            _aware(s.start_time)
            for s in (self._schedule(sid) for sid in schedule_ids)
            if s is not None and _aware(s.start_time) <= _aware(now)
        ]
        return ClassMetrics(
            class_id=class_id,
            attendance_count=len(attendance),
            booking_count=len(bookings),
            average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
            last_occurrence=max(past_starts) if past_starts else None,
        )

    async def popular_class_ids(self, since: datetime, limit: int = 50) -> List[str]:
        counts: Counter = Counter()
        for b in self._booking_rows:
            row = self._schedule_rows.get(b["schedule_id"])
            if row is None:
                continue
            record = BookingRecord.model_validate({**b, "schedule": None})
            if record.status not in POPULARITY_BOOKING_STATUSES:
                continue
            if _aware(record.booked_at) >= _aware(since):
                counts[row["class_id"]] += 1
        return [class_id for class_id, _ in counts.most_common(limit)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_class_embedding(self, class_id: str, vector: List[float]) -> None:
        c = self._classes.get(class_id)
        if c is not None:
            self._classes[class_id] = c.model_copy(update={"embedding": vector})

    async def update_member_embedding(self, member_id: str, vector: List[float]) -> None:
        m = self._members.get(member_id)
        if m is not None:
            self._members[member_id] = m.model_copy(update={"embedding": vector})

