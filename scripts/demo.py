#!/usr/bin/env python3
"""
Demo script for the query guard.

Runs queries through the admission gateway against a local Redis with the
stub upstream (no API key needed) and the local embedding model, showing
semantic cache hits, rate limiting and the daily cost ledger.
"""

import asyncio

import redis

from query_guard.config import get_redis_client
from query_guard.repositories import (
    ChatUpstreamProvider,
    RedisCacheRepository,
    RedisCostRepository,
    RedisRateLimitRepository,
)
from query_guard.repositories.local_embedding_provider import LocalEmbeddingProvider
from query_guard.services import AdmissionGateway, CostLedger, RateLimiter, SemanticCache

DEMO_CLIENT = "198.51.100.7"


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def build_gateway(client: redis.Redis) -> AdmissionGateway:
    embeddings = LocalEmbeddingProvider.create()
    cache = SemanticCache.create(
        repository=RedisCacheRepository.create(redis_client=client, dimension=embeddings.dimension),
        embedding_provider=embeddings,
    )
    return AdmissionGateway(
        rate_limiter=RateLimiter.create(store=RedisRateLimitRepository.create(redis_client=client)),
        cost_ledger=CostLedger.create(store=RedisCostRepository.create(redis_client=client)),
        upstream=ChatUpstreamProvider(api_key=""),
        cache=cache,
    )


async def demo_semantic_cache(gateway: AdmissionGateway) -> None:
    """Show that paraphrases are answered from the cache."""
    print_section("Semantic Cache")

    queries = [
        "Recommend a fruity Ethiopian coffee",
        "Can you recommend a fruity coffee from Ethiopia?",
        "Which beans taste bitter and chocolatey?",
        "Which beans taste sweet and floral?",
    ]
    for query in queries:
        result = await gateway.admit(DEMO_CLIENT, query)
        print(f"\n  Query: {query}")
        if result.cache_hit:
            print(f"  ✓ CACHE HIT (similarity {result.similarity:.2%})")
        else:
            print(f"  ✗ {result.outcome.value} (cost ${result.cost})")


async def demo_rate_limit(gateway: AdmissionGateway, limiter: RateLimiter) -> None:
    """Send requests until the per-minute limit trips."""
    print_section("Rate Limiting")

    for attempt in range(1, limiter.per_minute + 3):
        result = await gateway.admit(DEMO_CLIENT, "Recommend a fruity Ethiopian coffee")
        print(f"  Request {attempt:>2}: {result.outcome.value}", end="")
        if result.retry_after is not None:
            print(f" (retry after {result.retry_after}s)")
        else:
            print()


def demo_cost(ledger: CostLedger) -> None:
    """Print today's ledger entry."""
    print_section("Daily Cost Ledger")

    stats = ledger.get_stats()
    print(f"  Date: {stats.day.isoformat()}")
    print(f"  Spend: ${stats.current_cost} of ${stats.daily_limit} ({stats.utilization_percent:.2f}%)")
    print(f"  Paid queries: {stats.query_count}, remaining: {stats.remaining_queries}")


async def main() -> None:
    """Run all demos."""
    print("\n🚀 Query Guard Demo")
    print("=" * 70)

    try:
        client = get_redis_client()
        client.ping()
    except redis.RedisError as e:
        print(f"\n❌ Error: {e}")
        print("\nMake sure Redis is running:")
        print("  docker compose up -d")
        print("\nOr set REDIS_URL to your Redis instance.")
        return

    limiter = RateLimiter.create(store=RedisRateLimitRepository.create(redis_client=client))
    ledger = CostLedger.create(store=RedisCostRepository.create(redis_client=client))
    limiter.reset_all()

    gateway = build_gateway(client)
    assert gateway.cache is not None
    gateway.cache.clear()

    await demo_semantic_cache(gateway)
    await demo_rate_limit(gateway, limiter)
    demo_cost(ledger)

    print("\n" + "=" * 70)
    print("✅ Demo completed successfully!")
    print("=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
