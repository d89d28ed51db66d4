"""
Recommendation result variants and schedule-suggestion payloads.

RecommendationResult is a tagged union on `method`; each variant carries its own
typed payload so callers never inspect loosely shaped dicts.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .gym_class import ClassCategory, Difficulty


class RecommendationMethod(str, Enum):
    VECTOR_EMBEDDING = "vector_embedding"
    AI_BASED = "ai_based"
    RULE_BASED = "rule_based"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RecommendedClass(BaseModel):
    """A ranked class with its score breakdown."""

    class_id: str
    name: str
    category: ClassCategory
    difficulty: Difficulty
    description: Optional[str] = None
    duration: Optional[int] = None
    similarity: float = 0.0
    popularity: float = 0.0
    recency: float = 0.0
    diversity: float = 0.0
    final_score: float = 0.0
    reason: Optional[str] = None


class AIRecommendation(BaseModel):
    """One entry of an AI re-ranking; class_id always refers to a scored candidate."""

    class_id: str
    name: str
    category: ClassCategory
    reason: str = ""
    priority: Priority = Priority.MEDIUM
    final_score: float = 0.0


class VectorBasedResult(BaseModel):
    method: Literal["vector_embedding"] = "vector_embedding"
    recommendations: List[RecommendedClass]
    candidates_retrieved: int = 0
    candidates_filtered: int = 0


class AIBasedResult(BaseModel):
    method: Literal["ai_based"] = "ai_based"
    recommendations: List[AIRecommendation]
    model: Optional[str] = None


class RuleBasedResult(BaseModel):
    method: Literal["rule_based"] = "rule_based"
    recommendations: List[RecommendedClass]
    cold_start: bool = False


RecommendationResult = Annotated[
    Union[VectorBasedResult, AIBasedResult, RuleBasedResult],
    Field(discriminator="method"),
]


class CachedRecommendation(BaseModel):
    """What the cache stores for a recommendation request."""

    result: RecommendationResult
    generated_at: datetime


# ---------------------------------------------------------------------------
# Schedule suggestions
# ---------------------------------------------------------------------------


class TrainerRef(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class RoomRef(BaseModel):
    id: str
    name: Optional[str] = None
    capacity: Optional[int] = None


class ScheduleSuggestion(BaseModel):
    schedule_id: str
    class_name: str = "Unknown"
    category: str = "Unknown"
    start_time: datetime
    end_time: Optional[datetime] = None
    trainer: Optional[TrainerRef] = None
    room: Optional[RoomRef] = None
    spots_left: int
    max_capacity: int
    score: int = 0
    priority: Priority = Priority.MEDIUM
    reason: str = ""
    is_waitlist: bool = False


class ConflictRef(BaseModel):
    """An upcoming booking of the member, reported alongside suggestions."""

    schedule_id: str
    class_name: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None


class SchedulePatterns(BaseModel):
    """Behavioral summary mined from a member's recent history."""

    preferred_hours: Dict[int, int] = Field(default_factory=dict)
    preferred_days: Dict[int, int] = Field(default_factory=dict)
    preferred_categories: Dict[str, int] = Field(default_factory=dict)
    preferred_trainers: Dict[str, int] = Field(default_factory=dict)
    average_attendance_rate: float = 0.0
    cancellation_rate: float = 0.0
    no_show_rate: float = 0.0
    typical_booking_window: float = 0.0
    conflicts: List[ConflictRef] = Field(default_factory=list)

    def top_hours(self, n: int = 5) -> List[int]:
        return [h for h, _ in _top(self.preferred_hours, n)]

    def top_days(self, n: int = 3) -> List[int]:
        return [d for d, _ in _top(self.preferred_days, n)]

    def top_categories(self, n: int = 5) -> List[str]:
        return [c for c, _ in _top(self.preferred_categories, n)]

    def summary(self) -> Dict:
        """Short form returned to API callers and handed to the AI prompt."""
        return {
            "preferred_hours": self.top_hours(),
            "preferred_days": self.top_days(),
            "preferred_categories": self.top_categories(),
            "average_attendance_rate": self.average_attendance_rate,
            "cancellation_rate": self.cancellation_rate,
            "no_show_rate": self.no_show_rate,
            "typical_booking_window": self.typical_booking_window,
            "conflicts": len(self.conflicts),
        }


def _top(freq: Dict, n: int):
    # Highest count first; equal counts keep insertion order
    return sorted(freq.items(), key=lambda kv: kv[1], reverse=True)[:n]
