from .embedding_strategy import (
    CLASS_EMBEDDING_FIELDS,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_MODEL,
    MEMBER_EMBEDDING_FIELDS,
    MEMBER_RECOMMENDATION_FIELDS,
    STRATEGY_VERSION,
    build_class_text,
    build_member_profile_text,
    needs_reembedding,
)

__all__ = [
    "CLASS_EMBEDDING_FIELDS",
    "EMBEDDING_DIMENSIONS",
    "EMBEDDING_MODEL",
    "MEMBER_EMBEDDING_FIELDS",
    "MEMBER_RECOMMENDATION_FIELDS",
    "STRATEGY_VERSION",
    "build_class_text",
    "build_member_profile_text",
    "needs_reembedding",
]
