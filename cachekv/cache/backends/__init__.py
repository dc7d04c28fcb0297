"""Cache backend implementations.

Provides different storage backends for the orchestrator:
- RedisBackend: Production Redis-based caching
- MemoryBackend: In-memory caching for testing
"""

from cachekv.cache.backends.base import ICacheBackend, SupportsExpiry
from cachekv.cache.backends.redis_backend import RedisBackend
from cachekv.cache.backends.memory_backend import MemoryBackend

__all__ = [
    "ICacheBackend",
    "SupportsExpiry",
    "RedisBackend",
    "MemoryBackend",
]
