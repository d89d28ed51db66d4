"""
Recommendation configuration — retrieval, scoring weights, diversity and limits.

RecommendationConfig defaults are defined here. The server may pass a dict
(e.g. from a JSON settings file); from_dict() merges it with these defaults.
Scoring weights are re-normalized so operators can tune ratios without
hand-summing them to 1.0.
"""

from typing import Dict, Optional

from pydantic import BaseModel, model_validator


class ScoringWeights(BaseModel):
    """Normalized weights for the four ranking factors (always sum to 1.0)."""

    similarity: float
    popularity: float
    recency: float
    diversity: float

    def total(self) -> float:
        return self.similarity + self.popularity + self.recency + self.diversity


def normalize_weights(
    similarity: float,
    popularity: float,
    recency: float,
    diversity: float,
) -> ScoringWeights:
    """
    Re-normalize raw weights so they sum to 1.0.

    All-zero weights fall back to an equal split. Negative weights are rejected.
    """
    raw = (similarity, popularity, recency, diversity)
    if any(w < 0 for w in raw):
        raise ValueError(f"Scoring weights must be non-negative, got {raw}")
    total = sum(raw)
    if total <= 0:
        return ScoringWeights(similarity=0.25, popularity=0.25, recency=0.25, diversity=0.25)
    return ScoringWeights(
        similarity=similarity / total,
        popularity=popularity / total,
        recency=recency / total,
        diversity=diversity / total,
    )


class RecommendationConfig(BaseModel):
    """Configuration for class recommendation and schedule suggestion."""

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    # Number of nearest classes requested from the vector index.
    vector_top_k: int = 50

    # Number of classes returned to the caller after ranking.
    recommendation_limit: int = 10

    # Number of top scored classes handed to the external AI for re-ranking.
    ai_candidate_limit: int = 20

    # -------------------------------------------------------------------------
    # Blended Scoring Weights (re-normalized, do not need to sum to 1.0)
    # final = w_sim * (sim+1)/2 + w_pop * popularity + w_rec * recency + w_div * diversity
    # -------------------------------------------------------------------------

    weight_similarity: float = 0.4
    weight_popularity: float = 0.3
    weight_recency: float = 0.2
    weight_diversity: float = 0.1

    # -------------------------------------------------------------------------
    # Diversity
    # Share of a category among the member's recent recommendations.
    # -------------------------------------------------------------------------

    # How many past recommendations count as "recent".
    diversity_window: int = 20
    # Share above which a category is considered over-recommended (score 0.3).
    diversity_high_share: float = 0.5
    diversity_score_absent: float = 1.0
    diversity_score_moderate: float = 0.6
    diversity_score_saturated: float = 0.3

    # -------------------------------------------------------------------------
    # Rule-based path
    # -------------------------------------------------------------------------

    # Bonus added to the popularity factor for classes in a category the member
    # attends often or lists in fitness goals.
    rule_based_affinity_bonus: float = 0.2

    # -------------------------------------------------------------------------
    # Schedule suggestions
    # -------------------------------------------------------------------------

    # History window used by the pattern analyzer.
    history_limit: int = 100
    # Max occurrences considered when suggesting slots.
    available_schedule_limit: int = 50
    # Rule-based schedule suggestions returned.
    schedule_suggestion_limit: int = 5
    # Occurrences with a waitlist at or above this are not suggested when full.
    max_waitlist: int = 10

    @model_validator(mode="after")
    def weights_are_usable(self):
        # Raises on negative weights
        normalize_weights(
            self.weight_similarity,
            self.weight_popularity,
            self.weight_recency,
            self.weight_diversity,
        )
        return self

    @property
    def weights(self) -> ScoringWeights:
        """Scoring weights re-normalized to sum to 1.0."""
        return normalize_weights(
            self.weight_similarity,
            self.weight_popularity,
            self.weight_recency,
            self.weight_diversity,
        )

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "RecommendationConfig":
        """Create config from a (possibly nested) dictionary."""
        flat = {}
        if "retrieval" in config_dict:
            flat.update(config_dict["retrieval"])
        if "weights" in config_dict:
            for name, value in config_dict["weights"].items():
                flat[f"weight_{name}"] = value
        if "diversity" in config_dict:
            dv = config_dict["diversity"]
            if "window" in dv:
                flat["diversity_window"] = dv["window"]
            if "high_share" in dv:
                flat["diversity_high_share"] = dv["high_share"]
        if "schedules" in config_dict:
            flat.update(config_dict["schedules"])
        flat.update({k: v for k, v in config_dict.items() if not isinstance(v, dict)})
        allowed = set(cls.model_fields)
        filtered = {k: v for k, v in flat.items() if k in allowed}
        return cls.model_validate(filtered)


DEFAULT_CONFIG = RecommendationConfig()


def resolve_config(config: Optional["RecommendationConfig"]) -> "RecommendationConfig":
    """Return config or DEFAULT_CONFIG when none is provided."""
    return config if config is not None else DEFAULT_CONFIG
