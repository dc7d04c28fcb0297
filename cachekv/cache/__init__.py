"""Cache-aside layer: key resolution, statistics and orchestration.

Usage:
    from cachekv.cache import CacheOrchestrator, CacheKeyResolver

    key = resolver.render("user.profile", {"id": 123})
    profile = await cache.get(key, lambda: load_profile(123))
"""

from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.cache.key_resolver import CacheKeyResolver, ResolvedCacheKey
from cachekv.cache.stats import GlobalStats, KeyStats, StatsTracker
from cachekv.cache.orchestrator import (
    NULL_SENTINEL,
    CacheLookup,
    CacheOrchestrator,
    LookupStatus,
)

__all__ = [
    "KeyTemplateRegistry",
    "CacheKeyResolver",
    "ResolvedCacheKey",
    "GlobalStats",
    "KeyStats",
    "StatsTracker",
    "NULL_SENTINEL",
    "CacheLookup",
    "CacheOrchestrator",
    "LookupStatus",
]
