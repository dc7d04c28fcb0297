"""In-memory cache backend for testing."""

import math
import time
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, List, Optional

from cachekv.cache.backends.base import ICacheBackend


@dataclass
class CacheEntry:
    """A cache entry with optional expiration."""

    value: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class MemoryBackend(ICacheBackend):
    """In-memory cache backend for testing.

    Provides a fast, in-memory cache that mimics Redis behavior.
    Useful for unit tests and local development without Redis.

    Features:
    - TTL support with introspection and extension
    - Glob pattern scans and deletes
    - Integer counters
    - Injectable clock so tests can move time forward
    """

    def __init__(self, auto_cleanup: bool = True, clock: Callable[[], float] = time.time):
        """Initialize memory backend.

        Args:
            auto_cleanup: If True, expired entries are cleaned up on access.
            clock: Returns the current time in seconds.
        """
        self._storage: Dict[str, CacheEntry] = {}
        self._enabled = False
        self._auto_cleanup = auto_cleanup
        self._clock = clock
        self.evictions = 0

    @property
    def enabled(self) -> bool:
        """Check if the backend is enabled."""
        return self._enabled

    async def connect(self) -> None:
        """Enable the cache backend."""
        self._enabled = True

    async def disconnect(self) -> None:
        """Disable the cache backend and clear storage."""
        self._enabled = False
        self._storage.clear()

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        if not ttl or ttl <= 0:
            return None
        return self._clock() + ttl

    def _cleanup_expired(self) -> None:
        """Remove expired entries from storage."""
        if not self._auto_cleanup:
            return

        now = self._clock()
        expired_keys = [
            key for key, entry in self._storage.items()
            if entry.is_expired(now)
        ]

        for key in expired_keys:
            del self._storage[key]
            self.evictions += 1

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._storage.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._storage[key]
            self.evictions += 1
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from the cache."""
        if not self._enabled:
            return None

        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    async def get_many(self, keys: List[str]) -> Dict[str, Any]:
        """Get multiple values from the cache."""
        if not self._enabled or not keys:
            return {}

        self._cleanup_expired()

        results = {}
        for key in keys:
            entry = self._live_entry(key)
            if entry is not None:
                results[key] = entry.value
        return results

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set a value in the cache."""
        if not self._enabled:
            return False

        self._storage[key] = CacheEntry(value=value, expires_at=self._expires_at(ttl))
        return True

    async def set_many(self, items: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Set multiple values in the cache."""
        if not self._enabled:
            return False
        if not items:
            return True

        expires_at = self._expires_at(ttl)
        for key, value in items.items():
            self._storage[key] = CacheEntry(value=value, expires_at=expires_at)
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key from the cache."""
        if not self._enabled:
            return False

        if self._live_entry(key) is not None:
            del self._storage[key]
            return True
        return False

    async def delete_many(self, keys: List[str]) -> int:
        """Delete several keys."""
        deleted = 0
        for key in keys:
            if await self.delete(key):
                deleted += 1
        return deleted

    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        if not self._enabled:
            return False
        return self._live_entry(key) is not None

    async def scan(self, pattern: str) -> List[str]:
        """List live keys matching a glob pattern."""
        if not self._enabled:
            return []

        self._cleanup_expired()
        now = self._clock()
        return [
            key for key, entry in self._storage.items()
            if not entry.is_expired(now) and fnmatchcase(key, pattern)
        ]

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern."""
        return await self.delete_many(await self.scan(pattern))

    async def incr_many(self, amounts: Dict[str, int], ttl: Optional[int] = None) -> Dict[str, int]:
        """Increment integer counters."""
        if not self._enabled:
            return {}

        results = {}
        expires_at = self._expires_at(ttl)
        for key, amount in amounts.items():
            entry = self._live_entry(key)
            current = int(entry.value) if entry is not None else 0
            if entry is not None and expires_at is None:
                expires_at_for_key = entry.expires_at
            else:
                expires_at_for_key = expires_at
            self._storage[key] = CacheEntry(value=current + amount, expires_at=expires_at_for_key)
            results[key] = current + amount
        return results

    async def clear_all(self) -> bool:
        """Clear all keys from the cache."""
        self._storage.clear()
        return True

    # TTL capability

    async def ttl(self, key: str) -> int:
        """Seconds remaining, -1 for no expiry, -2 for a missing key."""
        if not self._enabled:
            return -2

        entry = self._live_entry(key)
        if entry is None:
            return -2
        if entry.expires_at is None:
            return -1
        return max(1, math.ceil(entry.expires_at - self._clock()))

    async def ttl_many(self, keys: List[str]) -> Dict[str, int]:
        """TTL for several keys."""
        return {key: await self.ttl(key) for key in keys}

    async def expire(self, key: str, ttl: int) -> bool:
        """Reset a key's expiry."""
        if not self._enabled:
            return False

        entry = self._live_entry(key)
        if entry is None:
            return False
        entry.expires_at = self._expires_at(ttl)
        return True

    async def expire_many(self, keys: List[str], ttl: int) -> int:
        """Reset the expiry of several keys."""
        updated = 0
        for key in keys:
            if await self.expire(key, ttl):
                updated += 1
        return updated

    # Testing utilities

    def get_all_keys(self) -> List[str]:
        """Get all keys in the cache (testing utility)."""
        self._cleanup_expired()
        return list(self._storage.keys())

    def get_entry_count(self) -> int:
        """Get the number of entries in the cache (testing utility)."""
        self._cleanup_expired()
        return len(self._storage)

    def get_raw_entry(self, key: str) -> Optional[CacheEntry]:
        """Get a raw cache entry (testing utility)."""
        return self._storage.get(key)
