"""cachekv: template-driven cache-aside layer with per-key policies."""

from cachekv.cache import (
    NULL_SENTINEL,
    CacheKeyResolver,
    CacheLookup,
    CacheOrchestrator,
    KeyTemplateRegistry,
    LookupStatus,
    ResolvedCacheKey,
    StatsTracker,
)
from cachekv.cache.backends import ICacheBackend, MemoryBackend, RedisBackend, SupportsExpiry
from cachekv.config import ConfigResolver, PolicyConfig, load_config
from cachekv.core import (
    CacheKVError,
    ConfigError,
    DriverError,
    MissingParameterError,
    SerializationError,
    Settings,
    UnknownTemplateError,
)
from cachekv.factory import create_orchestrator

__version__ = "0.1.0"

__all__ = [
    "NULL_SENTINEL",
    "CacheKeyResolver",
    "CacheLookup",
    "CacheOrchestrator",
    "KeyTemplateRegistry",
    "LookupStatus",
    "ResolvedCacheKey",
    "StatsTracker",
    "ICacheBackend",
    "MemoryBackend",
    "RedisBackend",
    "SupportsExpiry",
    "ConfigResolver",
    "PolicyConfig",
    "load_config",
    "CacheKVError",
    "ConfigError",
    "DriverError",
    "MissingParameterError",
    "SerializationError",
    "Settings",
    "UnknownTemplateError",
    "create_orchestrator",
]
