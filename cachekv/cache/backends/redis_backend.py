"""Redis cache backend implementation."""

from datetime import timedelta
from typing import Optional, List, Dict

import redis.asyncio as redis

from cachekv.cache.backends.base import ICacheBackend
from cachekv.core.errors import DriverError
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

SCAN_BATCH_SIZE = 500


class RedisBackend(ICacheBackend):
    """Redis-based cache backend.

    Provides a production-ready cache backend using Redis with:
    - MGET and pipelined SETEX for batch operations
    - SCAN-based pattern deletes
    - INCRBY counters for statistics
    - TTL introspection and extension for hot-key renewal

    Every Redis failure is logged and re-raised as ``DriverError``; this
    backend never retries.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL.
            client: An already constructed ``redis.asyncio`` client. Takes
                precedence over ``redis_url``.
        """
        self._redis_url = redis_url
        self._client: Optional[redis.Redis] = client
        self._owns_client = client is None

    @property
    def enabled(self) -> bool:
        """Check if Redis is connected."""
        return self._client is not None

    @property
    def client(self) -> Optional[redis.Redis]:
        """Get the Redis client (for advanced operations)."""
        return self._client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            if not self._redis_url:
                raise DriverError("Redis URL not configured", operation="connect")
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )

        try:
            await self._client.ping()
            logger.info("Connected to Redis cache")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            if self._owns_client:
                self._client = None
            raise DriverError(f"Failed to connect to Redis: {e}", operation="connect") from e

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            logger.info("Disconnected from Redis cache")
        self._client = None

    def _require_client(self, operation: str) -> redis.Redis:
        if self._client is None:
            raise DriverError("Redis backend is not connected", operation=operation)
        return self._client

    async def get(self, key: str) -> Optional[str]:
        """Get a value from Redis."""
        client = self._require_client("get")
        try:
            return await client.get(key)
        except Exception as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            raise DriverError(f"Redis GET failed for key {key}: {e}", operation="get") from e

    async def get_many(self, keys: List[str]) -> Dict[str, str]:
        """Get multiple values from Redis using MGET."""
        if not keys:
            return {}

        client = self._require_client("get_many")
        try:
            values = await client.mget(keys)
        except Exception as e:
            logger.error(f"Redis MGET error: {e}")
            raise DriverError(f"Redis MGET failed: {e}", operation="get_many") from e

        return {key: value for key, value in zip(keys, values) if value is not None}

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a value in Redis."""
        client = self._require_client("set")
        try:
            if ttl:
                result = await client.setex(key, timedelta(seconds=ttl), value)
            else:
                result = await client.set(key, value)
            return bool(result)
        except Exception as e:
            logger.error(f"Redis SET error for key {key}: {e}")
            raise DriverError(f"Redis SET failed for key {key}: {e}", operation="set") from e

    async def set_many(self, items: Dict[str, str], ttl: Optional[int] = None) -> bool:
        """Set multiple values in Redis using a pipeline."""
        if not items:
            return True

        client = self._require_client("set_many")
        try:
            async with client.pipeline(transaction=False) as pipe:
                for key, value in items.items():
                    if ttl:
                        pipe.setex(key, timedelta(seconds=ttl), value)
                    else:
                        pipe.set(key, value)
                results = await pipe.execute()
            return all(results)
        except Exception as e:
            logger.error(f"Redis pipeline SET error: {e}")
            raise DriverError(f"Redis pipeline SET failed: {e}", operation="set_many") from e

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        client = self._require_client("delete")
        try:
            return await client.delete(key) > 0
        except Exception as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            raise DriverError(f"Redis DELETE failed for key {key}: {e}", operation="delete") from e

    async def delete_many(self, keys: List[str]) -> int:
        """Delete several keys with one DEL."""
        if not keys:
            return 0

        client = self._require_client("delete_many")
        try:
            return int(await client.delete(*keys))
        except Exception as e:
            logger.error(f"Redis DELETE error for {len(keys)} keys: {e}")
            raise DriverError(f"Redis DELETE failed: {e}", operation="delete_many") from e

    async def exists(self, key: str) -> bool:
        """Check if a key exists in Redis."""
        client = self._require_client("exists")
        try:
            return await client.exists(key) > 0
        except Exception as e:
            logger.error(f"Redis EXISTS error for key {key}: {e}")
            raise DriverError(f"Redis EXISTS failed for key {key}: {e}", operation="exists") from e

    async def scan(self, pattern: str) -> List[str]:
        """List keys matching a pattern using SCAN."""
        client = self._require_client("scan")
        try:
            return [key async for key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)]
        except Exception as e:
            logger.error(f"Redis SCAN error for pattern {pattern}: {e}")
            raise DriverError(f"Redis SCAN failed for pattern {pattern}: {e}", operation="scan") from e

    async def delete_by_pattern(self, pattern: str) -> int:
        """Delete keys matching a pattern, in SCAN-sized chunks."""
        keys = await self.scan(pattern)
        deleted = 0
        for start in range(0, len(keys), SCAN_BATCH_SIZE):
            deleted += await self.delete_many(keys[start:start + SCAN_BATCH_SIZE])
        if deleted:
            logger.info(f"Deleted {deleted} keys matching {pattern}")
        return deleted

    async def incr_many(self, amounts: Dict[str, int], ttl: Optional[int] = None) -> Dict[str, int]:
        """Increment counters with pipelined INCRBY (and EXPIRE)."""
        if not amounts:
            return {}

        client = self._require_client("incr_many")
        keys = list(amounts)
        try:
            async with client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.incrby(key, amounts[key])
                    if ttl:
                        pipe.expire(key, ttl)
                results = await pipe.execute()
        except Exception as e:
            logger.error(f"Redis INCRBY error: {e}")
            raise DriverError(f"Redis INCRBY failed: {e}", operation="incr_many") from e

        step = 2 if ttl else 1
        return {key: int(results[i * step]) for i, key in enumerate(keys)}

    async def clear_all(self) -> bool:
        """Clear all keys from Redis (flushdb)."""
        client = self._require_client("clear_all")
        try:
            await client.flushdb()
            logger.info("Cleared all Redis cache entries")
            return True
        except Exception as e:
            logger.error(f"Redis FLUSHDB error: {e}")
            raise DriverError(f"Redis FLUSHDB failed: {e}", operation="clear_all") from e

    # TTL capability

    async def ttl(self, key: str) -> int:
        """Seconds remaining (-1 no expiry, -2 missing)."""
        client = self._require_client("ttl")
        try:
            return int(await client.ttl(key))
        except Exception as e:
            logger.error(f"Redis TTL error for key {key}: {e}")
            raise DriverError(f"Redis TTL failed for key {key}: {e}", operation="ttl") from e

    async def ttl_many(self, keys: List[str]) -> Dict[str, int]:
        """Pipelined TTL lookups."""
        if not keys:
            return {}

        client = self._require_client("ttl_many")
        try:
            async with client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.ttl(key)
                results = await pipe.execute()
        except Exception as e:
            logger.error(f"Redis pipeline TTL error: {e}")
            raise DriverError(f"Redis pipeline TTL failed: {e}", operation="ttl_many") from e

        return {key: int(value) for key, value in zip(keys, results)}

    async def expire(self, key: str, ttl: int) -> bool:
        """Set a key's expiry."""
        client = self._require_client("expire")
        try:
            return bool(await client.expire(key, ttl))
        except Exception as e:
            logger.error(f"Redis EXPIRE error for key {key}: {e}")
            raise DriverError(f"Redis EXPIRE failed for key {key}: {e}", operation="expire") from e

    async def expire_many(self, keys: List[str], ttl: int) -> int:
        """Pipelined EXPIRE with one TTL."""
        if not keys:
            return 0

        client = self._require_client("expire_many")
        try:
            async with client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.expire(key, ttl)
                results = await pipe.execute()
        except Exception as e:
            logger.error(f"Redis pipeline EXPIRE error: {e}")
            raise DriverError(f"Redis pipeline EXPIRE failed: {e}", operation="expire_many") from e

        return sum(1 for result in results if result)
