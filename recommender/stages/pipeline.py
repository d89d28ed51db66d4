"""
Pipeline — filter, score and rank a candidate set into a recommendation list.

Used by both the vector path (candidates come from nearest-neighbour retrieval
with their cosine similarity) and the rule-based path (every active class with
similarity 0 plus an affinity bonus for categories the member cares about).
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from recommender.models.config import RecommendationConfig, resolve_config
from recommender.models.gym_class import ClassCategory, GymClass
from recommender.models.member import MemberProfile
from recommender.models.scoring import CandidateCard, ClassMetrics

from .candidate_filter import filter_candidates
from .ranking import score_and_rank_classes

logger = logging.getLogger(__name__)

# Free-text goal fragments (lower case) mapped to the categories that serve them
GOAL_CATEGORY_HINTS: Dict[str, Tuple[ClassCategory, ...]] = {
    "weight": (ClassCategory.CARDIO, ClassCategory.FUNCTIONAL, ClassCategory.DANCE),
    "fat": (ClassCategory.CARDIO, ClassCategory.FUNCTIONAL),
    "endurance": (ClassCategory.CARDIO, ClassCategory.AQUA),
    "muscle": (ClassCategory.STRENGTH, ClassCategory.FUNCTIONAL),
    "strength": (ClassCategory.STRENGTH,),
    "flexib": (ClassCategory.YOGA, ClassCategory.PILATES),
    "mobility": (ClassCategory.YOGA, ClassCategory.PILATES, ClassCategory.RECOVERY),
    "stress": (ClassCategory.YOGA, ClassCategory.RECOVERY),
    "recovery": (ClassCategory.RECOVERY, ClassCategory.AQUA),
    "rehab": (ClassCategory.RECOVERY, ClassCategory.AQUA),
    "self-defense": (ClassCategory.MARTIAL_ARTS,),
}


def goal_categories(fitness_goals: Iterable[str]) -> Set[ClassCategory]:
    """Categories implied by a member's free-text fitness goals."""
    found: Set[ClassCategory] = set()
    for goal in fitness_goals or ():
        text = (goal or "").lower()
        for category in ClassCategory:
            if category.value.lower().replace("_", " ") in text.replace("_", " "):
                found.add(category)
        for fragment, categories in GOAL_CATEGORY_HINTS.items():
            if fragment in text:
                found.update(categories)
    return found


def affinity_bonus(
    classes: Sequence[GymClass],
    member: MemberProfile,
    attended_categories: Iterable[str],
    config: RecommendationConfig,
) -> Dict[str, float]:
    """Popularity bonus for classes in goal or frequently attended categories."""
    wanted = goal_categories(member.fitness_goals)
    wanted.update(ClassCategory(c) for c in attended_categories if c in ClassCategory.__members__)
    return {
        c.id: config.rule_based_affinity_bonus
        for c in classes
        if c.category in wanted
    }


def rank_recommendations(
    candidates: Sequence[Tuple[GymClass, float]],
    member: MemberProfile,
    metrics_by_id: Dict[str, ClassMetrics],
    recent_categories: Sequence[ClassCategory] = (),
    config: Optional[RecommendationConfig] = None,
    now: Optional[datetime] = None,
    bonus_by_id: Optional[Dict[str, float]] = None,
) -> Tuple[List[CandidateCard], int]:
    """
    FILTER → SCORE → RANK → limit.

    Returns:
        cards: at most recommendation_limit CandidateCards, best first
        filtered_out: how many candidates the hard constraints removed
    """
    config = resolve_config(config)
    similarity_by_id = {c.id: sim for c, sim in candidates}
    kept = filter_candidates([c for c, _ in candidates], member)
    filtered_out = len(candidates) - len(kept)

    # Filtering preserves order, so retrieval rank survives into the tie rule
    pairs = [(c, similarity_by_id[c.id]) for c in kept]
    cards = score_and_rank_classes(
        pairs,
        metrics_by_id,
        recent_categories,
        config,
        now=now,
        bonus_by_id=bonus_by_id,
    )
    if filtered_out:
        logger.info(
            "[pipeline] FILTERED member_id=%s removed=%d kept=%d",
            member.id, filtered_out, len(kept),
        )
    return cards[: config.recommendation_limit], filtered_out


def rule_based_candidates(classes: Sequence[GymClass]) -> List[Tuple[GymClass, float]]:
    """Every class with neutral similarity 0 (maps to 0.5 after (sim+1)/2)."""
    return [(c, 0.0) for c in classes]
