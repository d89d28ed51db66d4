"""
Similarity utilities: vectorised cosine ranking for semantic matching.
"""

from typing import Dict, List, Tuple

import numpy as np


def top_k_cosine(
    query: List[float],
    vectors: Dict[str, List[float]],
    k: int,
) -> List[Tuple[str, float]]:
    """
    Rank stored vectors against a query by cosine similarity.

    Returns (id, similarity) pairs, highest first, at most k. Zero vectors score 0.
    """
    if not query or not vectors or k <= 0:
        return []
    ids = list(vectors.keys())
    matrix = np.array([vectors[i] for i in ids], dtype=float)
    q = np.array(query, dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    order = np.argsort(-sims, kind="stable")[:k]
    return [(ids[i], float(sims[i])) for i in order]
