"""Repository layer for data access.

This layer abstracts external dependencies (Redis, embedding and upstream
APIs) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (Redis -> in-memory, local -> Ollama, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

LocalEmbeddingProvider is not imported here because loading
sentence-transformers is slow; import it from its module when needed.
"""

from query_guard.protocols import CacheStore, CostStore, EmbeddingProvider, RateLimitStore, UpstreamProvider

from .chat_upstream_provider import ChatUpstreamProvider
from .memory_cache_repository import InMemoryCacheRepository
from .ollama_embedding_provider import OllamaEmbeddingProvider
from .redis_cache_repository import RedisCacheRepository
from .redis_cost_repository import RedisCostRepository
from .redis_rate_limit_repository import RedisRateLimitRepository

__all__ = [
    "CacheStore",
    "CostStore",
    "EmbeddingProvider",
    "RateLimitStore",
    "UpstreamProvider",
    "ChatUpstreamProvider",
    "InMemoryCacheRepository",
    "OllamaEmbeddingProvider",
    "RedisCacheRepository",
    "RedisCostRepository",
    "RedisRateLimitRepository",
]
