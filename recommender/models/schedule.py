"""
Schedule occurrence model: a concrete, time-boxed instance of a class.

confirmed_bookings is derived from booking records. current_bookings is the
denormalized counter stored on the occurrence; it is used when present, but it
is never the only source of truth.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from .gym_class import ClassCategory, Difficulty


class ScheduleStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ClassSummary(BaseModel):
    id: str
    name: str
    category: ClassCategory
    difficulty: Optional[Difficulty] = None
    duration: Optional[int] = None


class TrainerSummary(BaseModel):
    id: str
    full_name: Optional[str] = None
    profile_photo: Optional[str] = None


class RoomSummary(BaseModel):
    id: str
    name: Optional[str] = None
    capacity: Optional[int] = None


class ScheduleOccurrence(BaseModel):
    """One scheduled class occurrence with trainer, room and booking counts."""

    model_config = ConfigDict(extra="allow")

    id: str
    class_id: str
    gym_class: Optional[ClassSummary] = None
    trainer: Optional[TrainerSummary] = None
    room: Optional[RoomSummary] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    max_capacity: int
    confirmed_bookings: int = 0
    current_bookings: Optional[int] = None
    waitlist_count: int = 0
    status: ScheduleStatus = ScheduleStatus.SCHEDULED

    @property
    def booked_count(self) -> int:
        """current_bookings when stored, otherwise the confirmed booking records."""
        if self.current_bookings is not None:
            return self.current_bookings
        return self.confirmed_bookings

    @property
    def spots_left(self) -> int:
        return self.max_capacity - self.booked_count

    @property
    def availability_ratio(self) -> float:
        if self.max_capacity <= 0:
            return 0.0
        return self.spots_left / self.max_capacity

    @property
    def category(self) -> Optional[ClassCategory]:
        return self.gym_class.category if self.gym_class else None

    def summary(self) -> Dict[str, Any]:
        """Compact dict used by cache warming and AI prompts."""
        return {
            "id": self.id,
            "class_name": self.gym_class.name if self.gym_class else None,
            "category": self.category.value if self.category else None,
            "start_time": self.start_time.isoformat(),
            "trainer": self.trainer.full_name if self.trainer else None,
            "spots_left": self.spots_left,
        }
