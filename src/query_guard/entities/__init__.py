"""Domain entities for internal representation.

These are plain dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for that.
"""

from .admission import AdmissionOutcome, AdmissionResult, UpstreamResult
from .cache_entry import CacheEntryEntity
from .cache_match import CacheMatchEntity
from .cache_stats import CacheStatsEntity
from .cost import CostStats
from .rate_limit import ActiveClients, RateLimitStatus, WindowKind, WindowStatus

__all__ = [
    "ActiveClients",
    "AdmissionOutcome",
    "AdmissionResult",
    "CacheEntryEntity",
    "CacheMatchEntity",
    "CacheStatsEntity",
    "CostStats",
    "RateLimitStatus",
    "UpstreamResult",
    "WindowKind",
    "WindowStatus",
]
