"""Cache-aside orchestration.

Reads go to the backend first; on a miss the caller's producer is invoked and
its result written back with the key's policy applied:

- TTL precedence: explicit override, then the key's policy TTL (plus jitter),
  then the configured fallback.
- "No value" results are stored as a null sentinel with the short null TTL,
  so an absent upstream record does not hit the producer on every read.
- Keys read at least ``hot_key_threshold`` times get their TTL extended,
  never beyond ``hot_key_max_ttl`` and never below the remaining TTL.
"""

import inspect
import json
import random
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from cachekv.cache.backends.base import ICacheBackend, SupportsExpiry
from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.cache.key_resolver import CacheKeyResolver, ResolvedCacheKey
from cachekv.cache.stats import StatsTracker
from cachekv.config.schemas import PolicyConfig
from cachekv.core.config import Settings
from cachekv.core.errors import SerializationError
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

NULL_SENTINEL = "__CACHE_KV_NULL__"

Producer = Callable[[], Any]
BatchProducer = Callable[[List[ResolvedCacheKey]], Any]


class LookupStatus(Enum):
    """Outcome of a cache read."""
    HIT = "hit"
    NULL_HIT = "null_hit"
    MISS = "miss"
    LOADED = "loaded"


@dataclass(frozen=True)
class CacheLookup:
    """A value together with where it came from.

    ``NULL_HIT`` means the key is cached as empty; ``MISS`` means it was never
    cached (or expired) and no producer filled it.
    """

    status: LookupStatus
    value: Any = None

    @property
    def found(self) -> bool:
        return self.status in (LookupStatus.HIT, LookupStatus.LOADED)

    @property
    def cached(self) -> bool:
        return self.status in (LookupStatus.HIT, LookupStatus.NULL_HIT)


async def _call_producer(producer: Callable[..., Any], *args: Any) -> Any:
    result = producer(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheOrchestrator:
    """Cache-aside layer over an ``ICacheBackend``.

    Usage:
        backend = RedisBackend(settings.redis_url)
        await backend.connect()

        cache = create_orchestrator(settings, backend=backend)

        key = cache.make_key("user.profile", {"id": 123})
        profile = await cache.get(key, lambda: load_profile(123))

        # Or straight from the template
        profile = await cache.get_by_template("user.profile", {"id": 123}, load_profile_async)
    """

    def __init__(
        self,
        backend: ICacheBackend,
        resolver: CacheKeyResolver,
        stats: Optional[StatsTracker] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the orchestrator.

        Args:
            backend: The cache backend to use (Redis, Memory, etc.)
            resolver: Key resolver bound to the loaded key templates.
            stats: Statistics tracker; one over ``backend`` is created if omitted.
            settings: Process settings providing the fallback TTLs.
            rng: Random source for TTL jitter.
        """
        self.backend = backend
        self.resolver = resolver
        self.settings = settings or Settings()
        config = resolver.registry.config
        self.stats = stats or StatsTracker(backend, prefix=config.stats_prefix, stats_ttl=config.stats_ttl)
        self._random = rng or random.Random()

    @property
    def registry(self) -> KeyTemplateRegistry:
        return self.resolver.registry

    @property
    def enabled(self) -> bool:
        """Check if caching is enabled."""
        return self.backend.enabled

    def make_key(self, template: str, params: Optional[Mapping[str, Any]] = None) -> ResolvedCacheKey:
        """Resolve ``group.key`` and parameters to a cache key."""
        return self.resolver.render(template, params)

    # =========================================================================
    # Policy helpers
    # =========================================================================

    def _jitter(self, spread: int) -> int:
        if spread <= 0:
            return 0
        return self._random.randint(0, spread)

    def _ttl_plan(self, key: ResolvedCacheKey, ttl: Optional[int]) -> Tuple[int, int]:
        """Base TTL and jitter range for a value write."""
        if ttl is not None:
            return ttl, 0
        policy = key.policy
        if policy is None or not policy.ttl:
            return self.settings.fallback_ttl, 0
        return policy.ttl, policy.ttl_random_range

    def effective_ttl(self, key: ResolvedCacheKey, ttl: Optional[int] = None) -> int:
        """TTL a value write for ``key`` would use."""
        base, spread = self._ttl_plan(key, ttl)
        return base + self._jitter(spread)

    def _null_cache_enabled(self, key: ResolvedCacheKey) -> bool:
        return key.policy is not None and key.policy.enable_null_cache

    def _null_ttl(self, key: ResolvedCacheKey) -> int:
        policy = key.policy
        if policy is not None and policy.null_cache_ttl:
            return policy.null_cache_ttl
        return self.settings.fallback_null_cache_ttl

    @staticmethod
    def renewal_ttl(policy: PolicyConfig, current_ttl: int) -> Optional[int]:
        """New TTL for a hot key, or None when no extension applies.

        Keys without expiry (or already gone) report ``current_ttl <= 0`` and
        are left alone.
        """
        if current_ttl <= 0:
            return None
        new_ttl = max(min(policy.hot_key_extend_ttl, policy.hot_key_max_ttl), current_ttl)
        if new_ttl > current_ttl:
            return new_ttl
        return None

    # =========================================================================
    # Serialization
    # =========================================================================

    @staticmethod
    def _serialize(value: Any, key: str) -> str:
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize value for '{key}': {e}", key=key) from e

    @staticmethod
    def _deserialize(raw: Any, key: str) -> Any:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if not isinstance(raw, str):
            return raw
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Cached value for '{key}' is not JSON; returning raw string")
            return raw

    # =========================================================================
    # Hot-key renewal
    # =========================================================================

    def _renewal_candidates(self, keys: Iterable[ResolvedCacheKey]) -> List[ResolvedCacheKey]:
        if not isinstance(self.backend, SupportsExpiry):
            return []
        return [k for k in keys if k.policy is not None and k.policy.hot_key_auto_renewal]

    async def renew_hot_key(self, key: ResolvedCacheKey) -> bool:
        """Extend the TTL of ``key`` if it is hot.

        Never raises; backends without TTL support are skipped.

        Returns:
            True if the key's expiry was extended.
        """
        if not self._renewal_candidates([key]):
            return False

        rendered = key.rendered
        try:
            frequency = await self.stats.get_frequency(rendered)
            if frequency < key.policy.hot_key_threshold:
                return False

            current_ttl = await self.backend.ttl(rendered)
            new_ttl = self.renewal_ttl(key.policy, current_ttl)
            if new_ttl is None:
                return False

            renewed = bool(await self.backend.expire(rendered, new_ttl))
            if renewed:
                logger.debug(f"Renewed hot key {rendered}: ttl {current_ttl}s -> {new_ttl}s (frequency {frequency})")
            return renewed
        except Exception as e:
            logger.warning(f"Hot key renewal failed for {rendered}: {e}")
            return False

    async def _renew_hot_keys(self, keys: List[ResolvedCacheKey]) -> int:
        """Batch renewal: one frequency read, one TTL read, one expire per new TTL."""
        candidates = self._renewal_candidates(keys)
        if not candidates:
            return 0

        try:
            frequencies = await self.stats.get_frequencies([k.rendered for k in candidates])
            hot = [
                k for k in candidates
                if frequencies.get(k.rendered, 0) >= k.policy.hot_key_threshold
            ]
            if not hot:
                return 0

            current_ttls = await self.backend.ttl_many([k.rendered for k in hot])
            by_new_ttl: Dict[int, List[str]] = defaultdict(list)
            for key in hot:
                new_ttl = self.renewal_ttl(key.policy, current_ttls.get(key.rendered, -2))
                if new_ttl is not None:
                    by_new_ttl[new_ttl].append(key.rendered)

            renewed = 0
            for new_ttl, rendered_keys in by_new_ttl.items():
                renewed += await self.backend.expire_many(rendered_keys, new_ttl)
            if renewed:
                logger.debug(f"Renewed {renewed} hot key(s) in {len(by_new_ttl)} group(s)")
            return renewed
        except Exception as e:
            logger.warning(f"Batch hot key renewal failed for {len(candidates)} key(s): {e}")
            return 0

    # =========================================================================
    # Single-key operations
    # =========================================================================

    async def lookup(
        self,
        key: ResolvedCacheKey,
        producer: Optional[Producer] = None,
        ttl: Optional[int] = None,
    ) -> CacheLookup:
        """Read ``key``, filling it from ``producer`` on a miss.

        Args:
            key: The resolved cache key.
            producer: Sync or async callable returning the value (or None).
            ttl: Explicit TTL for the write-back, overriding the policy.

        Returns:
            A ``CacheLookup`` telling a cached value, a cached empty value,
            a produced value and a plain miss apart.
        """
        rendered = key.rendered
        raw = await self.backend.get(rendered)

        if raw is not None:
            if key.stats_enabled:
                await self.stats.record_hit(rendered)
            if raw == NULL_SENTINEL:
                return CacheLookup(LookupStatus.NULL_HIT)
            await self.renew_hot_key(key)
            return CacheLookup(LookupStatus.HIT, self._deserialize(raw, rendered))

        if key.stats_enabled:
            await self.stats.record_miss(rendered)
        logger.debug(f"Cache miss: {rendered}")

        if producer is None:
            return CacheLookup(LookupStatus.MISS)

        value = await _call_producer(producer)
        await self.set(key, value, ttl)
        return CacheLookup(LookupStatus.LOADED, value)

    async def get(
        self,
        key: ResolvedCacheKey,
        producer: Optional[Producer] = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """Get a value, or None if it is absent or cached as empty.

        Producer exceptions propagate and nothing is cached.
        """
        result = await self.lookup(key, producer, ttl)
        return result.value

    async def set(self, key: ResolvedCacheKey, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value.

        ``None`` is stored as the null sentinel with the null TTL when the
        key's policy allows null caching; otherwise nothing is written.

        Returns:
            True if cached successfully.
        """
        rendered = key.rendered
        if value is None:
            if not self._null_cache_enabled(key):
                logger.debug(f"Null caching disabled, not storing {rendered}")
                return False
            payload, expire = NULL_SENTINEL, self._null_ttl(key)
            logger.debug(f"Caching null sentinel for {rendered} ({expire}s)")
        else:
            payload, expire = self._serialize(value, rendered), self.effective_ttl(key, ttl)

        if key.stats_enabled:
            await self.stats.record_set(rendered)
        return await self.backend.set(rendered, payload, expire)

    async def delete(self, key: ResolvedCacheKey) -> bool:
        """Delete ``key``; True if it existed."""
        deleted = await self.backend.delete(key.rendered)
        if key.stats_enabled:
            await self.stats.record_delete(key.rendered)
        return deleted

    async def exists(self, key: ResolvedCacheKey) -> bool:
        """Check if ``key`` is cached (including as empty)."""
        return await self.backend.exists(key.rendered)

    # =========================================================================
    # Batch operations
    # =========================================================================

    @staticmethod
    def _unique(keys: Iterable[ResolvedCacheKey]) -> Dict[str, ResolvedCacheKey]:
        if isinstance(keys, Mapping):
            keys = keys.values()
        unique: Dict[str, ResolvedCacheKey] = {}
        for key in keys:
            unique.setdefault(key.rendered, key)
        return unique

    async def get_many(
        self,
        keys: Iterable[ResolvedCacheKey],
        producer: Optional[BatchProducer] = None,
        ttl: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Get multiple values with one backend read.

        Args:
            keys: Resolved keys (or the mapping returned by ``render_many``).
            producer: Called once with the missing keys; returns a mapping of
                rendered key to value. Keys it omits stay absent.
            ttl: Explicit TTL for the write-back.

        Returns:
            Dictionary mapping rendered keys to values. Keys cached as empty
            map to None; keys neither cached nor produced are omitted.
        """
        unique = self._unique(keys)
        if not unique:
            return {}

        raw_values = await self.backend.get_many(list(unique))

        results: Dict[str, Any] = {}
        hits: List[ResolvedCacheKey] = []
        value_hits: List[ResolvedCacheKey] = []
        misses: List[ResolvedCacheKey] = []
        for rendered, key in unique.items():
            raw = raw_values.get(rendered)
            if raw is None:
                misses.append(key)
                continue
            hits.append(key)
            if raw == NULL_SENTINEL:
                results[rendered] = None
            else:
                value_hits.append(key)
                results[rendered] = self._deserialize(raw, rendered)

        await self.stats.record_hits(k.rendered for k in hits if k.stats_enabled)
        await self._renew_hot_keys(value_hits)
        await self.stats.record_misses(k.rendered for k in misses if k.stats_enabled)
        logger.debug(f"Batch get: {len(hits)} hit(s), {len(misses)} miss(es)")

        if not misses or producer is None:
            return results

        produced = await _call_producer(producer, misses)
        produced = {str(k): v for k, v in (produced or {}).items()}

        to_store: Dict[ResolvedCacheKey, Any] = {}
        for key in misses:
            if key.rendered in produced:
                value = produced[key.rendered]
                results[key.rendered] = value
                to_store[key] = value

        if to_store:
            await self.set_many(to_store, ttl)
        return results

    async def set_many(self, items: Mapping[ResolvedCacheKey, Any], ttl: Optional[int] = None) -> bool:
        """Store multiple values, one bulk write per effective TTL.

        Values of None follow the same null rules as ``set``. Batches are not
        transactional: a failed group leaves the other groups written.

        Returns:
            True only if every group write succeeded.
        """
        groups: Dict[Tuple[int, int], Dict[str, str]] = defaultdict(dict)
        written: List[ResolvedCacheKey] = []
        for key, value in items.items():
            rendered = key.rendered
            if value is None:
                if not self._null_cache_enabled(key):
                    continue
                groups[(self._null_ttl(key), 0)][rendered] = NULL_SENTINEL
            else:
                groups[self._ttl_plan(key, ttl)][rendered] = self._serialize(value, rendered)
            written.append(key)

        await self.stats.record_sets(k.rendered for k in written if k.stats_enabled)

        success = True
        for (base_ttl, spread), batch in groups.items():
            if not await self.backend.set_many(batch, base_ttl + self._jitter(spread)):
                logger.warning(f"Batch write of {len(batch)} key(s) failed (ttl {base_ttl}s)")
                success = False
        return success

    async def delete_many(self, keys: Iterable[ResolvedCacheKey]) -> int:
        """Delete several keys; returns how many existed."""
        unique = self._unique(keys)
        if not unique:
            return 0
        deleted = await self.backend.delete_many(list(unique))
        await self.stats.record_deletes(k.rendered for k in unique.values() if k.stats_enabled)
        return deleted

    # =========================================================================
    # Prefix deletes
    # =========================================================================

    async def delete_by_prefix(self, template: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """Delete every key of a template, optionally narrowed by parameters.

        Unbound placeholders match anything.

        Returns:
            Number of keys deleted.
        """
        pattern = self.resolver.build_pattern(template, params)
        deleted = await self.backend.delete_by_pattern(pattern)
        logger.info(f"Deleted {deleted} key(s) matching {pattern}")
        return deleted

    async def delete_by_full_prefix(self, prefix: str) -> int:
        """Delete every key starting with an already rendered prefix."""
        prefix = prefix.rstrip("*")
        if not prefix:
            raise ValueError("Refusing to delete by an empty prefix")
        deleted = await self.backend.delete_by_pattern(f"{prefix}*")
        logger.info(f"Deleted {deleted} key(s) with prefix {prefix}")
        return deleted

    # =========================================================================
    # Template entry points
    # =========================================================================

    async def get_by_template(
        self,
        template: str,
        params: Optional[Mapping[str, Any]] = None,
        producer: Optional[Producer] = None,
        ttl: Optional[int] = None,
    ) -> Any:
        return await self.get(self.make_key(template, params), producer, ttl)

    async def get_many_by_template(
        self,
        template: str,
        params_list: Iterable[Any],
        producer: Optional[BatchProducer] = None,
        ttl: Optional[int] = None,
    ) -> Dict[str, Any]:
        keys = self.resolver.render_many(template, params_list)
        return await self.get_many(keys, producer, ttl)

    async def set_by_template(
        self,
        template: str,
        params: Optional[Mapping[str, Any]],
        value: Any,
        ttl: Optional[int] = None,
    ) -> bool:
        return await self.set(self.make_key(template, params), value, ttl)

    async def delete_by_template(self, template: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.delete(self.make_key(template, params))

    async def exists_by_template(self, template: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.exists(self.make_key(template, params))

    # =========================================================================
    # Statistics and introspection
    # =========================================================================

    async def get_stats(self) -> Dict[str, Any]:
        """Global hit/miss/set/delete counters and hit rate."""
        return (await self.stats.get_global_stats()).to_dict()

    async def get_hot_keys(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most requested keys, highest first."""
        return [s.to_dict() for s in await self.stats.get_hot_keys(limit)]

    async def get_key_stats(self, key: Union[ResolvedCacheKey, str]) -> Optional[Dict[str, Any]]:
        stats = await self.stats.get_key_stats(str(key))
        return stats.to_dict() if stats else None

    async def reset_stats(self) -> int:
        return await self.stats.reset()

    def list_templates(self) -> List[str]:
        return self.registry.list_templates()

    def describe(self) -> Dict[str, Any]:
        return self.registry.describe()
