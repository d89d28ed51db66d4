"""
Member profile model: the subject of a recommendation request.

embedding: optional profile vector; absence disables the vector path for this member.
membership_type + ai_class_recommendations_enabled gate the AI-assisted path.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MembershipType(str, Enum):
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    VIP = "VIP"
    STUDENT = "STUDENT"


AI_ELIGIBLE_TIERS = frozenset({MembershipType.PREMIUM, MembershipType.VIP})


class EmbeddingDimensionError(ValueError):
    """A stored embedding does not have the provider's fixed dimensionality."""

    def __init__(self, entity_id: str, actual: int, expected: int):
        self.entity_id = entity_id
        self.actual = actual
        self.expected = expected
        super().__init__(
            f"Embedding for {entity_id} has {actual} dimensions, expected {expected}"
        )


class MemberProfile(BaseModel):
    """A gym member as seen by the recommendation engine."""

    model_config = ConfigDict(extra="allow")

    id: str
    full_name: Optional[str] = None
    embedding: Optional[List[float]] = None
    fitness_goals: List[str] = Field(default_factory=list)
    medical_conditions: List[str] = Field(default_factory=list)
    membership_type: MembershipType = MembershipType.BASIC
    ai_class_recommendations_enabled: bool = False

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def ai_allowed(self) -> bool:
        """True when tier and opt-in flag both permit the AI path."""
        return (
            self.membership_type in AI_ELIGIBLE_TIERS
            and self.ai_class_recommendations_enabled
        )

    def checked_embedding(self, expected_dimensions: int) -> Optional[List[float]]:
        """
        Return the embedding, or None when absent.

        Raises EmbeddingDimensionError when the stored vector has the wrong length;
        it is never truncated or padded.
        """
        if not self.embedding:
            return None
        if len(self.embedding) != expected_dimensions:
            raise EmbeddingDimensionError(self.id, len(self.embedding), expected_dimensions)
        return self.embedding
