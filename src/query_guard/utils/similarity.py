"""Vector similarity helpers."""

import numpy as np


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors, 0.0 if either has zero norm.

    Raises:
        ValueError: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Embeddings must have same length ({va.shape[0]} != {vb.shape[0]})")

    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def cosine_similarities(matrix: np.ndarray, vector: list[float] | np.ndarray) -> np.ndarray:
    """Cosine similarity of each row of ``matrix`` against ``vector``.

    Rows (or a query vector) with zero norm score 0.0.

    Args:
        matrix: Array of shape (n, d)
        vector: Array of shape (d,)

    Returns:
        Array of shape (n,)
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    query = np.asarray(vector, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float64)

    row_norms = np.linalg.norm(matrix, axis=1)
    query_norm = np.linalg.norm(query)
    denominators = row_norms * query_norm

    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denominators > 0, dots / denominators, 0.0)
    return scores


def best_match(matrix: np.ndarray, vector: list[float] | np.ndarray) -> tuple[int, float] | None:
    """Index and score of the most similar row, or None for an empty matrix."""
    scores = cosine_similarities(matrix, vector)
    if scores.size == 0:
        return None
    index = int(np.argmax(scores))
    return index, float(scores[index])
