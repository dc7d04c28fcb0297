"""Tests for the statistics tracker."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from cachekv.cache.stats import GlobalStats, StatsTracker


class TestRecording:
    """Tests for counter recording."""

    @pytest.mark.asyncio
    async def test_hits_and_misses(self, stats):
        """Test hits and misses update global and per-key counters."""
        await stats.record_hit("k1")
        await stats.record_hit("k1")
        await stats.record_miss("k1")
        await stats.record_miss("k2")

        global_stats = await stats.get_global_stats()
        assert global_stats.hits == 2
        assert global_stats.misses == 2
        assert global_stats.hit_rate == 0.5

        key_stats = await stats.get_key_stats("k1")
        assert key_stats.hits == 2
        assert key_stats.misses == 1
        assert key_stats.total_requests == 3

    @pytest.mark.asyncio
    async def test_frequency_counts_reads_only(self, stats):
        """Test frequency is hits plus misses, not writes."""
        await stats.record_hit("k")
        await stats.record_miss("k")
        await stats.record_set("k")
        await stats.record_delete("k")
        assert await stats.get_frequency("k") == 2
        assert await stats.get_frequency("unknown") == 0

    @pytest.mark.asyncio
    async def test_batch_recording(self, stats):
        """Test batch variants count every key."""
        await stats.record_hits(["a", "b", "a"])
        await stats.record_sets(["a", "c"])

        global_stats = await stats.get_global_stats()
        assert global_stats.hits == 3
        assert global_stats.sets == 2
        assert await stats.get_frequencies(["a", "b", "c"]) == {"a": 2, "b": 1, "c": 0}

    @pytest.mark.asyncio
    async def test_per_key_counters_expire(self, stats, connected_memory_backend):
        """Test per-key counters take the stats TTL."""
        await stats.record_hit("k")
        assert await connected_memory_backend.ttl(f"{stats.prefix}freq:k") == stats.stats_ttl
        assert await connected_memory_backend.ttl(f"{stats.prefix}global:hits") == -1

    @pytest.mark.asyncio
    async def test_disabled_tracker_records_nothing(self, stats, connected_memory_backend):
        """Test a disabled tracker does not touch the backend."""
        stats.disable()
        await stats.record_hit("k")
        await stats.record_sets(["a", "b"])
        assert connected_memory_backend.get_entry_count() == 0
        stats.enable()
        assert stats.enabled is True

    @pytest.mark.asyncio
    async def test_backend_failure_is_swallowed(self, caplog):
        """Test recording failures are logged, not raised."""
        backend = MagicMock()
        backend.incr_many = AsyncMock(side_effect=ConnectionError("down"))
        backend.get_many = AsyncMock(side_effect=ConnectionError("down"))
        tracker = StatsTracker(backend)

        await tracker.record_hit("k")
        assert await tracker.get_frequency("k") == 0
        assert "Failed to record hits" in caplog.text


class TestReporting:
    """Tests for hot keys and resets."""

    @pytest.mark.asyncio
    async def test_hot_keys_ordered(self, stats):
        """Test hot keys are sorted by total requests."""
        for _ in range(3):
            await stats.record_hit("warm")
        for _ in range(5):
            await stats.record_miss("hot")
        await stats.record_hit("cold")

        hot = await stats.get_hot_keys(limit=2)

        assert [s.key for s in hot] == ["hot", "warm"]
        assert hot[0].misses == 5
        assert hot[1].hit_rate == 1.0

    @pytest.mark.asyncio
    async def test_key_stats_unknown(self, stats):
        """Test unknown keys have no stats."""
        assert await stats.get_key_stats("ghost") is None

    @pytest.mark.asyncio
    async def test_reset(self, stats):
        """Test reset removes every counter."""
        await stats.record_hit("k")
        await stats.record_set("k")

        removed = await stats.reset()

        assert removed == 5
        global_stats = await stats.get_global_stats()
        assert global_stats.total_requests == 0
        assert await stats.get_frequency("k") == 0

    @pytest.mark.asyncio
    async def test_reset_keeps_cached_data(self, stats, connected_memory_backend):
        """Test reset only touches counters."""
        await connected_memory_backend.set("app:usr:v1:profile:1", "{}")
        await stats.record_hit("app:usr:v1:profile:1")

        await stats.reset()

        assert connected_memory_backend.get_all_keys() == ["app:usr:v1:profile:1"]

    @pytest.mark.asyncio
    async def test_reset_with_empty_prefix_refused(self, connected_memory_backend):
        """Test an empty prefix cannot wipe the whole store."""
        await connected_memory_backend.set("app:usr:v1:profile:1", "{}")
        tracker = StatsTracker(connected_memory_backend, prefix="")

        with pytest.raises(ValueError):
            await tracker.reset()

        assert await connected_memory_backend.exists("app:usr:v1:profile:1") is True

    def test_global_stats_dict(self):
        """Test the dict view includes derived fields."""
        data = GlobalStats(hits=3, misses=1).to_dict()
        assert data["total_requests"] == 4
        assert data["hit_rate"] == 0.75
        assert data["enabled"] is True

    def test_empty_hit_rate(self):
        """Test hit rate is zero without requests."""
        assert GlobalStats().hit_rate == 0.0
