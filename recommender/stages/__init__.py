"""Pipeline stages: candidate filter, ranking, pattern analysis, schedule suggestions, cold start."""

from .candidate_filter import filter_candidates, has_cardio_condition
from .cold_start import getting_started_set
from .patterns import analyze_patterns, rank_schedules, score_schedule
from .pipeline import affinity_bonus, rank_recommendations, rule_based_candidates
from .ranking import diversity_score, score_and_rank_classes, score_candidate
from .schedule_suggestions import rule_based_suggestions, select_available_schedules

__all__ = [
    "affinity_bonus",
    "analyze_patterns",
    "diversity_score",
    "filter_candidates",
    "getting_started_set",
    "has_cardio_condition",
    "rank_recommendations",
    "rank_schedules",
    "rule_based_candidates",
    "rule_based_suggestions",
    "score_and_rank_classes",
    "score_candidate",
    "score_schedule",
    "select_available_schedules",
]
