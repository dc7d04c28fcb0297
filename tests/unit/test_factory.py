"""Tests for orchestrator wiring."""

import pytest
import yaml

from cachekv.cache.backends.memory_backend import MemoryBackend
from cachekv.cache.backends.redis_backend import RedisBackend
from cachekv.cache.orchestrator import CacheOrchestrator
from cachekv.core.config import Settings
from cachekv.core.errors import ConfigError
from cachekv.factory import create_backend, create_orchestrator


class TestCreateOrchestrator:
    """Tests for building orchestrators from settings."""

    @pytest.mark.asyncio
    async def test_from_raw_mapping(self, raw_config, settings, connected_memory_backend):
        """Test a raw mapping is resolved and wired."""
        cache = create_orchestrator(settings, backend=connected_memory_backend, config=raw_config)

        assert isinstance(cache, CacheOrchestrator)
        assert await cache.get_by_template("user.profile", {"id": 1}, lambda: {"id": 1}) == {"id": 1}
        assert cache.stats.prefix == "cachekv:stats:"

    def test_from_yaml_path(self, tmp_path, raw_config):
        """Test the config path comes from settings."""
        path = tmp_path / "cachekv.yaml"
        path.write_text(yaml.safe_dump(raw_config), encoding="utf-8")
        settings = Settings(_env_file=None, config_path=str(path))

        cache = create_orchestrator(settings)

        assert "goods.info" in cache.list_templates()
        assert isinstance(cache.backend, MemoryBackend)

    def test_from_resolved_config(self, resolved_config, settings):
        """Test an already resolved config is used as is."""
        cache = create_orchestrator(settings, config=resolved_config)
        assert cache.registry.config is resolved_config

    def test_stats_settings_from_config(self, raw_config, settings):
        """Test stats prefix and TTL come from the global block."""
        raw_config["global"]["stats_prefix"] = "st:"
        raw_config["global"]["stats_ttl"] = 60
        cache = create_orchestrator(settings, config=raw_config)
        assert cache.stats.prefix == "st:"
        assert cache.stats.stats_ttl == 60

    def test_missing_config(self, settings):
        """Test a missing config path fails."""
        with pytest.raises(ConfigError):
            create_orchestrator(settings)

    def test_backend_choice(self):
        """Test redis_url selects the Redis backend."""
        assert isinstance(create_backend(Settings(_env_file=None, redis_url="redis://localhost:6379/0")), RedisBackend)
        assert isinstance(create_backend(Settings(_env_file=None, redis_url=None)), MemoryBackend)
