"""
Ranking: blend similarity, popularity, recency and diversity into a sorted list.

final = w_sim * (similarity+1)/2 + w_pop * popularity + w_rec * recency + w_div * diversity,
clamped to [0, 1]. Weights come from RecommendationConfig.weights and always sum to 1.

Ties: candidates are sorted with a stable sort on final_score, so equal scores
keep their retrieval order (the order the candidates were passed in).
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from recommender.models.config import DEFAULT_CONFIG, RecommendationConfig
from recommender.models.gym_class import ClassCategory, GymClass
from recommender.models.scoring import (
    CandidateCard,
    ClassMetrics,
    metrics_popularity,
    metrics_recency,
)

logger = logging.getLogger(__name__)


def diversity_score(
    category: ClassCategory,
    recent_categories: Sequence[ClassCategory],
    config: RecommendationConfig = DEFAULT_CONFIG,
) -> float:
    """
    Diversity of a category against the member's recent recommendations.

    1.0 when absent, 0.6 when its share is at most diversity_high_share, 0.3 above it.
    """
    window = list(recent_categories)[: config.diversity_window]
    if not window:
        return config.diversity_score_absent
    count = Counter(window)[category]
    if count == 0:
        return config.diversity_score_absent
    share = count / len(window)
    if share > config.diversity_high_share:
        return config.diversity_score_saturated
    return config.diversity_score_moderate


def score_candidate(
    gym_class: GymClass,
    similarity: float,
    metrics: Optional[ClassMetrics],
    recent_categories: Sequence[ClassCategory],
    config: RecommendationConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
    popularity_bonus: float = 0.0,
    retrieval_rank: int = 0,
) -> CandidateCard:
    """Build a CandidateCard for one class; missing metrics give neutral values."""
    metrics = metrics or ClassMetrics(class_id=gym_class.id)
    sim = max(-1.0, min(1.0, similarity))
    pop = min(1.0, metrics_popularity(metrics) + popularity_bonus)
    rec = metrics_recency(metrics, now)
    div = diversity_score(gym_class.category, recent_categories, config)

    w = config.weights
    final = (
        w.similarity * ((sim + 1) / 2)
        + w.popularity * pop
        + w.recency * rec
        + w.diversity * div
    )
    return CandidateCard(
        gym_class=gym_class,
        similarity=sim,
        popularity=pop,
        recency=rec,
        diversity=div,
        final_score=max(0.0, min(1.0, final)),
        retrieval_rank=retrieval_rank,
    )


def rank_cards(cards: List[CandidateCard]) -> List[CandidateCard]:
    """Sort by final_score descending; equal scores keep retrieval order."""
    return sorted(cards, key=lambda c: (-c.final_score, c.retrieval_rank))


def score_and_rank_classes(
    candidates: Sequence[Tuple[GymClass, float]],
    metrics_by_id: Dict[str, ClassMetrics],
    recent_categories: Sequence[ClassCategory] = (),
    config: RecommendationConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
    bonus_by_id: Optional[Dict[str, float]] = None,
) -> List[CandidateCard]:
    """
    Score every (class, similarity) pair and return cards sorted by final_score.

    The position of a pair in `candidates` is its retrieval rank.
    """
    bonus_by_id = bonus_by_id or {}
    cards = []
    for rank, (gym_class, similarity) in enumerate(candidates):
        metrics = metrics_by_id.get(gym_class.id)
        if metrics is None:
            logger.debug("[ranking] METRICS_MISSING class_id=%s", gym_class.id)
        cards.append(
            score_candidate(
                gym_class,
                similarity,
                metrics,
                recent_categories,
                config,
                now=now,
                popularity_bonus=bonus_by_id.get(gym_class.id, 0.0),
                retrieval_rank=rank,
            )
        )
    return rank_cards(cards)
