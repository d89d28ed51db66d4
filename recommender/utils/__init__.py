"""Shared helpers for the recommendation stages."""

from .similarity import top_k_cosine

__all__ = ["top_k_cosine"]
