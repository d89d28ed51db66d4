"""
Gym class recommendation engine — pure scoring and analysis.

Single entry point for the recommender package:
- models/: RecommendationConfig, GymClass, MemberProfile, history records, result variants
- stages/: candidate_filter, ranking, patterns, schedule_suggestions, cold_start, pipeline
- embedding/: build_class_text, build_member_profile_text, model constants

Nothing here performs I/O; the server package supplies data and clients.
"""

from recommender.embedding import EMBEDDING_DIMENSIONS, EMBEDDING_MODEL, STRATEGY_VERSION
from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig, resolve_config
from recommender.stages.pipeline import rank_recommendations

__all__ = [
    "DEFAULT_CONFIG",
    "EMBEDDING_DIMENSIONS",
    "EMBEDDING_MODEL",
    "RecommendationConfig",
    "STRATEGY_VERSION",
    "rank_recommendations",
    "resolve_config",
]
