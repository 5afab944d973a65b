"""Cache entry domain entity."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CacheEntryEntity:
    """Domain entity for a cached query-response pair.

    This is an internal representation used by services and repositories.
    For API contracts, use the DTO classes from the dto package.

    Only ``hits`` and ``last_accessed`` change after creation.

    Attributes:
        key: Storage key of the entry
        query: The original query text (kept for diagnostics)
        embedding: The embedding vector for the query
        response: The cached upstream payload (opaque to the cache)
        created_at: When this entry was created (Unix timestamp)
        hits: How many lookups this entry has served
        last_accessed: Last store or hit time (Unix timestamp)
    """

    key: str
    query: str
    embedding: list[float]
    response: dict[str, Any]
    created_at: float
    hits: int = 0
    last_accessed: float = field(default=0.0)

    def __post_init__(self) -> None:
        if not self.last_accessed:
            self.last_accessed = self.created_at
