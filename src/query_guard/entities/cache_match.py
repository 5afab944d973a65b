"""Cache match domain entity."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheMatchEntity:
    """Domain entity for a cache search result.

    Represents the best match from a vector similarity search.

    Attributes:
        key: Storage key of the matched entry
        query: The matched query from the cache
        response: The cached response payload
        similarity: Cosine similarity (1 = identical, -1 = opposite)
        cached_at: Timestamp when the entry was created (Unix timestamp)
        hits: Hit count of the entry after this lookup
    """

    key: str
    query: str
    response: dict[str, Any]
    similarity: float
    cached_at: float
    hits: int = 0
