"""
Embedding Strategy for class descriptions and member profiles.

This module defines HOW text is extracted from classes and members for embedding.
Changes to this module require regenerating embeddings (bump STRATEGY_VERSION).

Class text formula (parts joined by ". "):
    "{name}. {description}. Category: {category}. Difficulty: {difficulty}.
     Equipment: {equipment}. Duration: {duration} minutes"

Member text formula:
    "Fitness goals: {goals}. Medical conditions: {conditions}"
"""

from typing import Iterable

from recommender.models.gym_class import GymClass
from recommender.models.member import MemberProfile

# Metadata for cache validation
# IMPORTANT: Bump this version when the embedding logic changes!
STRATEGY_VERSION = "1.0"

# OpenAI embedding configuration
EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536

# Fields whose change invalidates a stored embedding
CLASS_EMBEDDING_FIELDS = frozenset(
    {"name", "description", "category", "difficulty", "equipment_needed", "duration"}
)
MEMBER_EMBEDDING_FIELDS = frozenset({"fitness_goals", "medical_conditions"})

# Member fields whose change invalidates cached recommendations
MEMBER_RECOMMENDATION_FIELDS = frozenset({"embedding", "fitness_goals", "medical_conditions"})


def build_class_text(gym_class: GymClass) -> str:
    """
    Generate text for embedding from a class.

    Search queries are embedded verbatim, not through this formula.
    """
    parts = [gym_class.name]
    if gym_class.description:
        parts.append(gym_class.description)
    parts.append(f"Category: {gym_class.category.value}")
    parts.append(f"Difficulty: {gym_class.difficulty.value}")
    if gym_class.equipment_needed:
        parts.append(f"Equipment: {', '.join(gym_class.equipment_needed)}")
    if gym_class.duration:
        parts.append(f"Duration: {gym_class.duration} minutes")
    return ". ".join(p.strip() for p in parts if p and p.strip())


def build_member_profile_text(member: MemberProfile) -> str:
    """Generate text for embedding from a member profile; empty when nothing is known."""
    parts = []
    if member.fitness_goals:
        parts.append(f"Fitness goals: {', '.join(member.fitness_goals)}")
    if member.medical_conditions:
        parts.append(f"Medical conditions: {', '.join(member.medical_conditions)}")
    return ". ".join(parts)


def needs_reembedding(changed_fields: Iterable[str], relevant: frozenset = CLASS_EMBEDDING_FIELDS) -> bool:
    """True when any changed field feeds the embedding text."""
    return any(f in relevant for f in changed_fields)
