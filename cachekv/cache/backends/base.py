"""Base interface for cache backends."""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Protocol, runtime_checkable


class ICacheBackend(ABC):
    """Abstract base class for cache backends.

    All backends must implement this interface to work with the
    CacheOrchestrator. Values are stored as strings; serialization is the
    orchestrator's job.
    """

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Check if the backend is enabled and connected."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the cache backend."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the cache backend."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Get a raw value from the cache.

        Args:
            key: The cache key.

        Returns:
            The stored value, or None if not found.
        """
        ...

    @abstractmethod
    async def get_many(self, keys: List[str]) -> Dict[str, str]:
        """Get multiple raw values in one round-trip.

        Args:
            keys: List of cache keys.

        Returns:
            Dictionary mapping keys to their values (missing keys are omitted).
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Store a raw value.

        Args:
            key: The cache key.
            value: The already serialized value.
            ttl: Time-to-live in seconds (None or 0 for no expiration).

        Returns:
            True if successful, False otherwise.
        """
        ...

    @abstractmethod
    async def set_many(self, items: Dict[str, str], ttl: Optional[int] = None) -> bool:
        """Store multiple raw values sharing one TTL.

        Returns:
            True only if every write succeeded.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key from the cache.

        Returns:
            True if deleted, False if key didn't exist.
        """
        ...

    @abstractmethod
    async def delete_many(self, keys: List[str]) -> int:
        """Delete several keys, returning how many existed."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        ...

    @abstractmethod
    async def scan(self, pattern: str) -> List[str]:
        """List keys matching a glob pattern (``*`` and ``?`` wildcards)."""
        ...

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Returns:
            Number of keys deleted.
        """
        ...

    @abstractmethod
    async def incr_many(self, amounts: Dict[str, int], ttl: Optional[int] = None) -> Dict[str, int]:
        """Atomically increment integer counters.

        Args:
            amounts: Counter key to increment.
            ttl: Optional expiry (seconds) refreshed on every increment.

        Returns:
            The counters' new values.
        """
        ...

    @abstractmethod
    async def clear_all(self) -> bool:
        """Clear all keys from the cache."""
        ...


@runtime_checkable
class SupportsExpiry(Protocol):
    """Optional TTL introspection/extension capability.

    Backends without it simply disable hot-key renewal.
    """

    async def ttl(self, key: str) -> int:
        """Seconds remaining; -1 when the key has no expiry, -2 when missing."""
        ...

    async def ttl_many(self, keys: List[str]) -> Dict[str, int]:
        """``ttl`` for several keys in one round-trip."""
        ...

    async def expire(self, key: str, ttl: int) -> bool:
        """Set the key's expiry to ``ttl`` seconds from now."""
        ...

    async def expire_many(self, keys: List[str], ttl: int) -> int:
        """Apply one expiry to several keys; returns how many were updated."""
        ...
