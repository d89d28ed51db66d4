"""
Candidate filter: hard constraints applied before scoring.

Filters: medical contraindication (highest difficulty + high-intensity category
for a member with a cardio-relevant condition), explicitly inactive classes.
Each check looks at one candidate only, so the surviving set never depends on
input order.

The public entry point is filter_candidates.
"""

import logging
from typing import List, Sequence

from recommender.models.gym_class import HIGH_INTENSITY_CATEGORIES, HIGHEST_DIFFICULTY, GymClass
from recommender.models.member import MemberProfile

logger = logging.getLogger(__name__)

# Lower-cased substrings that mark a medical condition as cardio-relevant
CARDIO_CONDITION_TERMS = (
    "heart",
    "cardiac",
    "cardio",
    "hypertension",
    "blood pressure",
    "arrhythmia",
    "chest pain",
    "tim mạch",
)


def has_cardio_condition(medical_conditions: Sequence[str]) -> bool:
    """True if any condition tag mentions a cardio-relevant term (case-insensitive)."""
    for condition in medical_conditions or ():
        text = (condition or "").lower()
        if any(term in text for term in CARDIO_CONDITION_TERMS):
            return True
    return False


def _is_contraindicated(gym_class: GymClass, cardio_condition: bool) -> bool:
    return (
        cardio_condition
        and gym_class.difficulty == HIGHEST_DIFFICULTY
        and gym_class.category in HIGH_INTENSITY_CATEGORIES
    )


def _is_inactive(gym_class: GymClass) -> bool:
    """Only an explicit False counts; a missing flag keeps the candidate."""
    return gym_class.is_active is False


def filter_candidates(candidates: List[GymClass], member: MemberProfile) -> List[GymClass]:
    """
    Drop candidates violating hard constraints, preserving input order.

    An empty result is valid ("no safe options") and is logged, not raised.
    """
    cardio_condition = has_cardio_condition(member.medical_conditions)
    kept: List[GymClass] = []
    for c in candidates:
        if _is_inactive(c):
            continue
        if _is_contraindicated(c, cardio_condition):
            logger.debug(
                "[candidate_filter] CONTRAINDICATED member_id=%s class_id=%s", member.id, c.id
            )
            continue
        kept.append(c)
    if candidates and not kept:
        logger.warning(
            "[candidate_filter] ALL_FILTERED member_id=%s input=%d",
            member.id, len(candidates),
        )
    return kept
