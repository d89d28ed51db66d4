"""Data models for the recommendation engine."""

from .config import DEFAULT_CONFIG, RecommendationConfig, ScoringWeights, normalize_weights, resolve_config
from .gym_class import ClassCategory, Difficulty, GymClass, ensure_classes
from .history import AttendanceRecord, BookingRecord, BookingStatus, ensure_attendance, ensure_bookings
from .member import EmbeddingDimensionError, MemberProfile, MembershipType
from .results import (
    AIBasedResult,
    AIRecommendation,
    Priority,
    RecommendationMethod,
    RecommendationResult,
    RecommendedClass,
    RuleBasedResult,
    SchedulePatterns,
    ScheduleSuggestion,
    VectorBasedResult,
)
from .schedule import ScheduleOccurrence, ScheduleStatus
from .scoring import CandidateCard, ClassMetrics

__all__ = [
    "AIBasedResult",
    "AIRecommendation",
    "AttendanceRecord",
    "BookingRecord",
    "BookingStatus",
    "CandidateCard",
    "ClassCategory",
    "ClassMetrics",
    "DEFAULT_CONFIG",
    "Difficulty",
    "EmbeddingDimensionError",
    "GymClass",
    "MemberProfile",
    "MembershipType",
    "Priority",
    "RecommendationConfig",
    "RecommendationMethod",
    "RecommendationResult",
    "RecommendedClass",
    "RuleBasedResult",
    "ScheduleOccurrence",
    "SchedulePatterns",
    "ScheduleStatus",
    "ScheduleSuggestion",
    "ScoringWeights",
    "VectorBasedResult",
    "ensure_attendance",
    "ensure_bookings",
    "ensure_classes",
    "normalize_weights",
    "resolve_config",
]
