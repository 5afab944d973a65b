import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Rate limiting (per client IP)
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "10"))
    rate_limit_per_day: int = int(os.getenv("RATE_LIMIT_PER_DAY", "200"))

    # Cost ledger
    daily_cost_limit: Decimal = Decimal(os.getenv("DAILY_COST_LIMIT", "10.00"))
    cost_per_query: Decimal = Decimal(os.getenv("COST_PER_QUERY", "0.0005"))
    max_queries_per_day: int | None = _optional_int("MAX_QUERIES_PER_DAY")
    cost_alert_ratio: float = float(os.getenv("COST_ALERT_RATIO", "0.9"))

    # Semantic cache
    cache_enabled: bool = os.getenv("CACHE_ENABLED", "true").lower() == "true"
    cache_backend: str = os.getenv("CACHE_BACKEND", "redis")
    cache_similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.92"))
    cache_capacity: int = int(os.getenv("CACHE_CAPACITY", "1000"))
    cache_eviction_policy: str = os.getenv("CACHE_EVICTION_POLICY", "lru")
    cache_ttl: int = int(os.getenv("CACHE_TTL", "3600"))  # 1 hour default

    # Embedding
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "local")
    embedding_model: str = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "384"))

    # Ollama
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

    # Upstream chat provider (OpenAI-compatible)
    upstream_base_url: str = os.getenv("UPSTREAM_BASE_URL", "https://api.x.ai/v1")
    upstream_api_key_env: str = os.getenv("UPSTREAM_API_KEY_ENV", "UPSTREAM_API_KEY")
    upstream_model: str = os.getenv("UPSTREAM_MODEL", "grok-3-mini")
    upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))
    upstream_max_concurrency: int = int(os.getenv("UPSTREAM_MAX_CONCURRENCY", "8"))
    # Token pricing; when unset every call is charged COST_PER_QUERY
    upstream_input_cost_per_1k: Decimal | None = (
        Decimal(os.environ["UPSTREAM_INPUT_COST_PER_1K"]) if os.getenv("UPSTREAM_INPUT_COST_PER_1K") else None
    )
    upstream_output_cost_per_1k: Decimal | None = (
        Decimal(os.environ["UPSTREAM_OUTPUT_COST_PER_1K"]) if os.getenv("UPSTREAM_OUTPUT_COST_PER_1K") else None
    )

    # Query validation
    query_max_length: int = int(os.getenv("QUERY_MAX_LENGTH", "500"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"

    @property
    def upstream_api_key(self) -> str | None:
        """Resolve the upstream API key from its environment variable."""
        return os.getenv(self.upstream_api_key_env)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 <= self.cache_similarity_threshold <= 1:
            raise ValueError("CACHE_SIMILARITY_THRESHOLD must be between 0 and 1 for cosine similarity")

        if self.rate_limit_per_minute <= 0 or self.rate_limit_per_day <= 0:
            raise ValueError("RATE_LIMIT_PER_MINUTE and RATE_LIMIT_PER_DAY must be positive")

        if self.daily_cost_limit < 0 or self.cost_per_query < 0:
            raise ValueError("DAILY_COST_LIMIT and COST_PER_QUERY must not be negative")

        if self.cache_eviction_policy not in ("lru", "lfu"):
            raise ValueError(
                f"CACHE_EVICTION_POLICY must be one of ['lru', 'lfu'], got {self.cache_eviction_policy}"
            )

        if self.cache_backend not in ("redis", "memory"):
            raise ValueError(f"CACHE_BACKEND must be one of ['redis', 'memory'], got {self.cache_backend}")

        if self.cache_capacity <= 0:
            raise ValueError("CACHE_CAPACITY must be positive")

        if self.upstream_timeout <= 0 or self.upstream_max_concurrency <= 0:
            raise ValueError("UPSTREAM_TIMEOUT and UPSTREAM_MAX_CONCURRENCY must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=False,
    )
