"""Utility modules for query_guard."""

from .similarity import best_match, cosine_similarities, cosine_similarity

__all__ = [
    "best_match",
    "cosine_similarities",
    "cosine_similarity",
]
