"""
Cold start: a fixed "getting started" set for members with no history and no embedding.

Picks beginner-friendly active classes round-robin across STARTER_CATEGORIES so
the set spans several kinds of training. When no such class exists a static set
of generic suggestions is returned, never an empty list.
"""

from typing import Dict, List

from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig
from recommender.models.gym_class import ClassCategory, Difficulty, GymClass
from recommender.models.member import MemberProfile
from recommender.models.results import RecommendedClass

from .candidate_filter import filter_candidates

STARTER_CATEGORIES = (
    ClassCategory.YOGA,
    ClassCategory.CARDIO,
    ClassCategory.STRENGTH,
    ClassCategory.PILATES,
    ClassCategory.FUNCTIONAL,
    ClassCategory.DANCE,
    ClassCategory.AQUA,
    ClassCategory.RECOVERY,
)

STARTER_DIFFICULTIES = frozenset({Difficulty.BEGINNER, Difficulty.ALL_LEVELS})

STARTER_REASON = "Great first class for new members."

GENERIC_STARTERS = (
    RecommendedClass(
        class_id="getting-started-yoga",
        name="Beginner Yoga",
        category=ClassCategory.YOGA,
        difficulty=Difficulty.BEGINNER,
        description="Gentle introduction to breathing, balance and flexibility.",
        reason="Low-impact start to build flexibility and body awareness.",
    ),
    RecommendedClass(
        class_id="getting-started-cardio",
        name="Intro Cardio",
        category=ClassCategory.CARDIO,
        difficulty=Difficulty.BEGINNER,
        description="Steady-paced cardio session for building base fitness.",
        reason="Builds endurance at a comfortable pace.",
    ),
    RecommendedClass(
        class_id="getting-started-strength",
        name="Strength Foundations",
        category=ClassCategory.STRENGTH,
        difficulty=Difficulty.BEGINNER,
        description="Learn the basic lifts with light weights and coaching on form.",
        reason="Teaches safe technique before heavier training.",
    ),
)


def getting_started_set(
    classes: List[GymClass],
    member: MemberProfile,
    config: RecommendationConfig = DEFAULT_CONFIG,
) -> List[RecommendedClass]:
    """Beginner-friendly classes, one category at a time, up to recommendation_limit."""
    safe = filter_candidates(classes, member)
    by_category: Dict[ClassCategory, List[GymClass]] = {c: [] for c in STARTER_CATEGORIES}
    for gym_class in safe:
        if gym_class.difficulty in STARTER_DIFFICULTIES and gym_class.category in by_category:
            by_category[gym_class.category].append(gym_class)

    selected: List[GymClass] = []
    limit = config.recommendation_limit
    while len(selected) < limit and any(by_category.values()):
        for category in STARTER_CATEGORIES:
            if by_category[category] and len(selected) < limit:
                selected.append(by_category[category].pop(0))

    if not selected:
        return [r.model_copy() for r in GENERIC_STARTERS]
    return [
        RecommendedClass(
            class_id=c.id,
            name=c.name,
            category=c.category,
            difficulty=c.difficulty,
            description=c.description,
            duration=c.duration,
            reason=STARTER_REASON,
        )
        for c in selected
    ]
