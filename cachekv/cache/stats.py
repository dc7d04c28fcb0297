"""Hit/miss statistics and access frequency, stored as backend counters.

Counter layout under the stats prefix:
    global:{hits,misses,sets,deletes}
    key:{type}:{rendered_key}
    freq:{rendered_key}            hits + misses, used for hot-key detection

Per-key counters expire after ``stats_ttl`` seconds; global counters do not.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional

from cachekv.cache.backends.base import ICacheBackend
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

COUNTER_TYPES = ("hits", "misses", "sets", "deletes")


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class GlobalStats:
    """Counters aggregated over every tracked key."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    enabled: bool = True

    @property
    def total_requests(self) -> int:
        """Total number of cache reads."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_requests"] = self.total_requests
        data["hit_rate"] = round(self.hit_rate, 4)
        return data


@dataclass
class KeyStats:
    """Counters for one rendered key."""

    key: str
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_requests"] = self.total_requests
        data["hit_rate"] = round(self.hit_rate, 4)
        return data


class StatsTracker:
    """Records cache activity through the backend's atomic counters.

    Recording never raises: a failing backend is logged and ignored so the
    primary read/write path is unaffected. Callers pass only keys whose
    policy has stats enabled.
    """

    def __init__(
        self,
        backend: ICacheBackend,
        prefix: str = "cachekv:stats:",
        stats_ttl: int = 604800,
        enabled: bool = True,
    ):
        self.backend = backend
        self.prefix = prefix
        self.stats_ttl = stats_ttl
        self.enabled = enabled

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    # Counter keys

    def _global_key(self, counter: str) -> str:
        return f"{self.prefix}global:{counter}"

    def _key_counter(self, counter: str, key: str) -> str:
        return f"{self.prefix}key:{counter}:{key}"

    def _freq_key(self, key: str) -> str:
        return f"{self.prefix}freq:{key}"

    # Recording

    async def _record(self, counter: str, keys: Iterable[str], count_frequency: bool) -> None:
        if not self.enabled:
            return
        keys = [str(key) for key in keys]
        if not keys:
            return

        per_key: Dict[str, int] = {}
        for key in keys:
            counter_key = self._key_counter(counter, key)
            per_key[counter_key] = per_key.get(counter_key, 0) + 1
            if count_frequency:
                freq_key = self._freq_key(key)
                per_key[freq_key] = per_key.get(freq_key, 0) + 1

        try:
            await self.backend.incr_many({self._global_key(counter): len(keys)})
            await self.backend.incr_many(per_key, ttl=self.stats_ttl)
        except Exception as e:
            logger.warning(f"Failed to record {counter} for {len(keys)} key(s): {e}")

    async def record_hit(self, key: str) -> None:
        await self._record("hits", [key], count_frequency=True)

    async def record_miss(self, key: str) -> None:
        await self._record("misses", [key], count_frequency=True)

    async def record_set(self, key: str) -> None:
        await self._record("sets", [key], count_frequency=False)

    async def record_delete(self, key: str) -> None:
        await self._record("deletes", [key], count_frequency=False)

    async def record_hits(self, keys: Iterable[str]) -> None:
        await self._record("hits", keys, count_frequency=True)

    async def record_misses(self, keys: Iterable[str]) -> None:
        await self._record("misses", keys, count_frequency=True)

    async def record_sets(self, keys: Iterable[str]) -> None:
        await self._record("sets", keys, count_frequency=False)

    async def record_deletes(self, keys: Iterable[str]) -> None:
        await self._record("deletes", keys, count_frequency=False)

    # Frequency

    async def get_frequency(self, key: str) -> int:
        """Access count (hits + misses) of a key, 0 when unknown or on error."""
        frequencies = await self.get_frequencies([key])
        return frequencies.get(str(key), 0)

    async def get_frequencies(self, keys: Iterable[str]) -> Dict[str, int]:
        """Access counts for several keys in one read."""
        keys = [str(key) for key in keys]
        if not self.enabled or not keys:
            return {}

        try:
            raw = await self.backend.get_many([self._freq_key(key) for key in keys])
        except Exception as e:
            logger.warning(f"Failed to read access frequency for {len(keys)} key(s): {e}")
            return {}
        return {key: _to_int(raw.get(self._freq_key(key))) for key in keys}

    # Reporting

    async def get_global_stats(self) -> GlobalStats:
        raw = await self.backend.get_many([self._global_key(c) for c in COUNTER_TYPES])
        counts = {c: _to_int(raw.get(self._global_key(c))) for c in COUNTER_TYPES}
        return GlobalStats(enabled=self.enabled, **counts)

    async def get_key_stats(self, key: str) -> Optional[KeyStats]:
        """Counters for one key, or None when nothing was recorded."""
        key = str(key)
        counter_keys = {c: self._key_counter(c, key) for c in COUNTER_TYPES}
        raw = await self.backend.get_many(list(counter_keys.values()))
        if not raw:
            return None
        return KeyStats(key=key, **{c: _to_int(raw.get(k)) for c, k in counter_keys.items()})

    async def get_hot_keys(self, limit: int = 10) -> List[KeyStats]:
        """Most requested keys, by total requests, highest first."""
        if not self.enabled or limit <= 0:
            return []

        freq_prefix = self._freq_key("")
        freq_keys = await self.backend.scan(f"{freq_prefix}*")
        if not freq_keys:
            return []

        raw = await self.backend.get_many(freq_keys)
        ranked = sorted(
            ((k[len(freq_prefix):], _to_int(v)) for k, v in raw.items()),
            key=lambda item: (-item[1], item[0]),
        )
        hot_keys = []
        for key, total in ranked[:limit]:
            if total <= 0:
                continue
            stats = await self.get_key_stats(key)
            hot_keys.append(stats or KeyStats(key=key))
        return hot_keys

    async def reset(self) -> int:
        """Delete every counter under the stats prefix.

        Raises:
            ValueError: If the prefix is empty, which would match every key.
        """
        if not self.prefix:
            raise ValueError("Refusing to reset statistics under an empty prefix")
        removed = await self.backend.delete_by_pattern(f"{self.prefix}*")
        logger.info(f"Reset statistics ({removed} counters removed)")
        return removed
