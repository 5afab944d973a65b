"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis -> in-memory, local -> Ollama, etc.)
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .cache_store import CacheStore
from .counter_store import CostStore, RateLimitStore
from .embedding_provider import EmbeddingProvider
from .upstream_provider import UpstreamProvider

__all__ = [
    "CacheStore",
    "CostStore",
    "EmbeddingProvider",
    "RateLimitStore",
    "UpstreamProvider",
]
