"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan (or by configure_state in tests)
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

import redis
from fastapi import Depends, FastAPI, Request

from query_guard.config import get_redis_client, settings
from query_guard.handlers import AdminHandler, QueryHandler
from query_guard.logging_config import setup_logging
from query_guard.protocols import CacheStore, EmbeddingProvider, UpstreamProvider
from query_guard.repositories import (
    ChatUpstreamProvider,
    InMemoryCacheRepository,
    OllamaEmbeddingProvider,
    RedisCacheRepository,
    RedisCostRepository,
    RedisRateLimitRepository,
)
from query_guard.services import AdmissionGateway, CostLedger, RateLimiter, SemanticCache

logger = logging.getLogger(__name__)


def build_embedding_provider() -> EmbeddingProvider:
    """Create the embedding provider named by EMBEDDING_PROVIDER.

    When switching providers or dimensions, clear the semantic cache:
    entries of another width are dropped on read.
    """
    if settings.embedding_provider == "ollama":
        return OllamaEmbeddingProvider.create()
    if settings.embedding_provider == "local":
        # sentence-transformers pulls in torch; import only when selected
        from query_guard.repositories.local_embedding_provider import LocalEmbeddingProvider

        return LocalEmbeddingProvider.create()
    raise ValueError(f"Unknown EMBEDDING_PROVIDER: {settings.embedding_provider}")


def build_cache_store(redis_client: redis.Redis, dimension: int) -> CacheStore:
    if settings.cache_backend == "memory":
        return InMemoryCacheRepository(dimension=dimension)
    return RedisCacheRepository.create(redis_client=redis_client, dimension=dimension)


def configure_state(
    app: FastAPI,
    *,
    redis_client: redis.Redis | None = None,
    embedding_provider: EmbeddingProvider | None = None,
    upstream: UpstreamProvider | None = None,
    cache_store: CacheStore | None = None,
) -> None:
    """Build every layer and store it in app.state.

    Collaborators not passed in are created from settings.

    Args:
        app: The FastAPI application instance
        redis_client: Shared client for counters and the Redis cache store
        embedding_provider: Query embedder for the semantic cache
        upstream: Paid provider behind the gateway
        cache_store: Cache backend, overriding CACHE_BACKEND
    """
    client = redis_client or get_redis_client()

    rate_limiter = RateLimiter.create(store=RedisRateLimitRepository.create(redis_client=client))
    cost_ledger = CostLedger.create(store=RedisCostRepository.create(redis_client=client))

    cache: SemanticCache | None = None
    if settings.cache_enabled:
        embeddings = embedding_provider or build_embedding_provider()
        store = cache_store or build_cache_store(client, embeddings.dimension)
        cache = SemanticCache.create(repository=store, embedding_provider=embeddings)

    upstream = upstream or ChatUpstreamProvider.create()
    gateway = AdmissionGateway(
        rate_limiter=rate_limiter,
        cost_ledger=cost_ledger,
        upstream=upstream,
        cache=cache,
    )

    app.state.redis_client = client
    app.state.rate_limiter = rate_limiter
    app.state.cost_ledger = cost_ledger
    app.state.semantic_cache = cache
    app.state.upstream = upstream
    app.state.gateway = gateway
    app.state.admin_handler = AdminHandler(rate_limiter=rate_limiter, cost_ledger=cost_ledger, cache=cache)
    app.state.query_handler = QueryHandler(gateway=gateway)


def get_admin_handler(request: Request) -> AdminHandler:
    """Dependency injection for AdminHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "admin_handler", None)
    if handler is None:
        raise RuntimeError("AdminHandler not initialized. Check lifespan setup.")
    return handler


def get_query_handler(request: Request) -> QueryHandler:
    """Dependency injection for QueryHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "query_handler", None)
    if handler is None:
        raise RuntimeError("QueryHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state, unless they were
    already configured (tests inject fakes through configure_state).

    Cleanup:
        Closes HTTP clients of the upstream and embedding providers
    """
    setup_logging(settings.log_level, settings.log_format)

    if getattr(app.state, "gateway", None) is None:
        configure_state(app)

    try:
        app.state.redis_client.ping()
        logger.info("Redis connection successful (%s)", settings.redis_url)
    except redis.RedisError as e:
        # Limiter fails closed until Redis is back
        logger.error("Redis connection failed: %s", e)

    cache = app.state.semantic_cache
    logger.info(
        "Query guard started: %d/min, %d/day, daily limit $%s, cache %s",
        settings.rate_limit_per_minute,
        settings.rate_limit_per_day,
        settings.daily_cost_limit,
        f"threshold {cache.threshold}" if cache is not None else "disabled",
    )

    yield

    for component in (app.state.upstream, cache.embedding_provider if cache is not None else None):
        close = getattr(component, "close", None)
        if close is not None:
            await close()
    logger.info("Query guard shut down")


# Type aliases for cleaner dependency injection
AdminHandlerDep = Annotated[AdminHandler, Depends(get_admin_handler)]
QueryHandlerDep = Annotated[QueryHandler, Depends(get_query_handler)]
