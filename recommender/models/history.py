"""
Attendance and booking history: inputs to metrics and pattern analysis.

AttendanceRecord is an immutable historical fact (frozen model).
BookingRecord carries its lifecycle status and the booked_at timestamp used for
the typical booking lead time.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .schedule import ScheduleOccurrence


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    WAITLIST = "WAITLIST"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class AttendanceRecord(BaseModel):
    """Member attended a specific occurrence, optionally rating it 1-5."""

    model_config = ConfigDict(frozen=True, extra="allow")

    member_id: str
    schedule_id: str
    schedule: Optional[ScheduleOccurrence] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    created_at: Optional[datetime] = None


class BookingRecord(BaseModel):
    """Member reserved a specific occurrence."""

    model_config = ConfigDict(extra="allow")

    member_id: str
    schedule_id: str
    schedule: Optional[ScheduleOccurrence] = None
    status: BookingStatus = BookingStatus.CONFIRMED
    booked_at: datetime
    cancelled_at: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED and self.cancelled_at is not None


def ensure_attendance(
    items: List[Union[Dict[str, Any], "AttendanceRecord"]],
) -> List["AttendanceRecord"]:
    """Convert list of dicts or AttendanceRecords to models."""
    return [
        AttendanceRecord.model_validate(a) if isinstance(a, dict) else a
        for a in items
    ]


def ensure_bookings(
    items: List[Union[Dict[str, Any], "BookingRecord"]],
) -> List["BookingRecord"]:
    """Convert list of dicts or BookingRecords to models."""
    return [
        BookingRecord.model_validate(b) if isinstance(b, dict) else b
        for b in items
    ]
