"""Shared test fixtures for the query guard tests."""

import asyncio
import hashlib
from decimal import Decimal

import fakeredis
import numpy as np
import pytest

from query_guard.entities import UpstreamResult
from query_guard.repositories import (
    InMemoryCacheRepository,
    RedisCacheRepository,
    RedisCostRepository,
    RedisRateLimitRepository,
)
from query_guard.services import AdmissionGateway, CostLedger, RateLimiter, SemanticCache

DIMENSION = 32


def unit(vector: np.ndarray) -> list[float]:
    return (vector / np.linalg.norm(vector)).tolist()


def hashed_vector(text: str, dimension: int = DIMENSION) -> list[float]:
    """Deterministic pseudo-random unit vector for a text."""
    seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:8], "big")
    return unit(np.random.default_rng(seed).normal(size=dimension))


def near(vector: list[float], similarity: float, seed: int = 0) -> list[float]:
    """A unit vector with the given cosine similarity to ``vector``."""
    base = np.asarray(vector, dtype=np.float64)
    base = base / np.linalg.norm(base)
    noise = np.random.default_rng(seed).normal(size=base.shape[0])
    orthogonal = noise - np.dot(noise, base) * base
    orthogonal = orthogonal / np.linalg.norm(orthogonal)
    return (similarity * base + np.sqrt(1 - similarity**2) * orthogonal).tolist()


class FakeEmbeddingProvider:
    """Embeds known phrases to fixed vectors, anything else to a hashed vector."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimension: int = DIMENSION) -> None:
        self.vectors = dict(vectors or {})
        self._dimension = dimension
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "fake-embedder"

    async def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        return hashed_vector(text, self._dimension)

    async def is_available(self) -> bool:
        return True


class FailingEmbeddingProvider(FakeEmbeddingProvider):
    async def encode(self, text: str) -> list[float]:
        raise RuntimeError("embedding service down")

    async def is_available(self) -> bool:
        return False


class FakeUpstream:
    """Upstream that answers every query at a fixed cost."""

    def __init__(self, cost: Decimal = Decimal("0.02"), fail: bool = False, delay: float = 0.0) -> None:
        self.cost = cost
        self.fail = fail
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "fake"

    async def complete(self, query: str) -> UpstreamResult:
        self.calls.append(query)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise RuntimeError("upstream exploded")
            return UpstreamResult(payload={"explanation": f"Answer to: {query}"}, cost=self.cost)
        finally:
            self.in_flight -= 1


@pytest.fixture()
def redis_client() -> fakeredis.FakeRedis:
    """Isolated in-process Redis."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture()
def down_redis() -> fakeredis.FakeRedis:
    """Redis client whose every command fails with ConnectionError."""
    server = fakeredis.FakeServer()
    server.connected = False
    return fakeredis.FakeRedis(server=server)


@pytest.fixture()
def embeddings() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def rate_limiter(redis_client) -> RateLimiter:
    return RateLimiter(store=RedisRateLimitRepository(redis_client=redis_client), per_minute=10, per_day=200)


@pytest.fixture()
def cost_ledger(redis_client) -> CostLedger:
    return CostLedger(
        store=RedisCostRepository(redis_client=redis_client),
        daily_limit=Decimal("10.00"),
        cost_per_query=Decimal("0.02"),
        alert_ratio=0.9,
    )


@pytest.fixture(params=["redis", "memory"])
def cache_store(request, redis_client):
    """Both CacheStore implementations with the same small configuration."""
    if request.param == "redis":
        return RedisCacheRepository(
            redis_client=redis_client, dimension=DIMENSION, capacity=100, eviction_policy="lru", ttl=3600
        )
    return InMemoryCacheRepository(dimension=DIMENSION, capacity=100, eviction_policy="lru", ttl=3600)


@pytest.fixture()
def semantic_cache(redis_client, embeddings) -> SemanticCache:
    repository = RedisCacheRepository(
        redis_client=redis_client, dimension=DIMENSION, capacity=100, eviction_policy="lru", ttl=3600
    )
    return SemanticCache(repository=repository, embedding_provider=embeddings, similarity_threshold=0.92)


@pytest.fixture()
def gateway(rate_limiter, cost_ledger, semantic_cache, upstream) -> AdmissionGateway:
    return AdmissionGateway(
        rate_limiter=rate_limiter,
        cost_ledger=cost_ledger,
        upstream=upstream,
        cache=semantic_cache,
        max_concurrency=4,
        timeout=2.0,
    )
