"""
GymClass model — a bookable class type with its (optional) description embedding.

Used by the candidate filter, ranking and embedding stages instead of raw dicts.
Built from database rows / fixture dicts via GymClass.model_validate(d).
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ClassCategory(str, Enum):
    CARDIO = "CARDIO"
    STRENGTH = "STRENGTH"
    YOGA = "YOGA"
    PILATES = "PILATES"
    DANCE = "DANCE"
    MARTIAL_ARTS = "MARTIAL_ARTS"
    AQUA = "AQUA"
    FUNCTIONAL = "FUNCTIONAL"
    RECOVERY = "RECOVERY"
    SPECIALIZED = "SPECIALIZED"


class Difficulty(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    ALL_LEVELS = "ALL_LEVELS"


# Highest difficulty tier (used by the medical contraindication filter)
HIGHEST_DIFFICULTY = Difficulty.ADVANCED

# Categories treated as high intensity for cardio-relevant medical conditions
HIGH_INTENSITY_CATEGORIES = frozenset(
    {
        ClassCategory.CARDIO,
        ClassCategory.STRENGTH,
        ClassCategory.FUNCTIONAL,
        ClassCategory.MARTIAL_ARTS,
    }
)


class GymClass(BaseModel):
    """
    Class payload used across the ranking stages.

    embedding is None until generated after create/update of description-relevant fields.
    """

    model_config = ConfigDict(extra="allow", use_enum_values=False)

    id: str
    name: str
    description: Optional[str] = None
    category: ClassCategory
    difficulty: Difficulty = Difficulty.ALL_LEVELS
    max_capacity: int = 20
    is_active: Optional[bool] = True
    equipment_needed: List[str] = Field(default_factory=list)
    duration: Optional[int] = None
    embedding: Optional[List[float]] = None

    def summary(self) -> Dict[str, Any]:
        """Compact dict for API responses and AI prompts (no embedding)."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "difficulty": self.difficulty.value,
            "duration": self.duration,
            "max_capacity": self.max_capacity,
        }


def ensure_classes(items: List[Union[Dict[str, Any], "GymClass"]]) -> List["GymClass"]:
    """Convert list of dicts or GymClasses to list of GymClass models for the pipeline."""
    return [
        GymClass.model_validate(c) if isinstance(c, dict) else c
        for c in items
    ]
