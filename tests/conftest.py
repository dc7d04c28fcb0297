"""Shared test fixtures for cachekv tests."""

import logging
import random

import pytest
from typing import Any, Dict

from cachekv.cache.backends.memory_backend import MemoryBackend
from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.cache.key_resolver import CacheKeyResolver
from cachekv.cache.orchestrator import CacheOrchestrator
from cachekv.cache.stats import StatsTracker
from cachekv.config.resolver import ConfigResolver
from cachekv.core.config import Settings


class FakeClock:
    """Manually advanced time source for expiry tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Configuration Fixtures
# ============================================================================

def build_raw_config() -> Dict[str, Any]:
    """Configuration tree used across the test suite."""
    return {
        "app_prefix": "app",
        "separator": ":",
        "global": {
            "ttl": 3600,
            "enable_null_cache": True,
            "null_cache_ttl": 300,
            "hot_key_threshold": 100,
            "hot_key_extend_ttl": 7200,
            "hot_key_max_ttl": 86400,
        },
        "groups": {
            "user": {
                "prefix": "usr",
                "version": "v1",
                "description": "User data",
                "cache": {"ttl": 7200},
                "keys": {
                    "profile": {
                        "template": "profile:{id}",
                        "description": "User profile",
                        "cache": {"ttl": 10800},
                    },
                    "settings": {"template": "settings:{id}", "cache": {}},
                    "avatar": {"template": "avatar:{id}:{size}", "cache": {}},
                    "session": {"template": "session:{token}"},
                },
            },
            "goods": {
                "prefix": "goods",
                "version": "v2",
                "keys": {
                    "info": {"template": "info:{id}", "cache": {}},
                    "search": {"template": "search:{query}", "cache": {"enable_null_cache": False}},
                },
            },
        },
    }


@pytest.fixture
def raw_config():
    """Fresh copy of the shared configuration tree."""
    return build_raw_config()


@pytest.fixture
def settings():
    """Settings isolated from the process environment."""
    return Settings(_env_file=None, config_path=None, redis_url=None)


@pytest.fixture
def resolved_config(raw_config, settings):
    """Resolved configuration for the shared tree."""
    return ConfigResolver(settings).resolve(raw_config)


@pytest.fixture
def registry(resolved_config):
    return KeyTemplateRegistry(resolved_config)


@pytest.fixture
def resolver(registry):
    return CacheKeyResolver(registry)


@pytest.fixture
def isolated_logging():
    """Remove handlers added by configure_logging after the test."""
    yield
    root = logging.getLogger("cachekv")
    for handler in [h for h in root.handlers if getattr(h, "_cachekv", False)]:
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_backend(clock):
    """Create a fresh memory backend driven by the fake clock."""
    return MemoryBackend(clock=clock)


@pytest.fixture
async def connected_memory_backend(memory_backend):
    """Create a connected memory backend."""
    await memory_backend.connect()
    yield memory_backend
    await memory_backend.disconnect()


@pytest.fixture
def stats(connected_memory_backend, resolved_config):
    return StatsTracker(
        connected_memory_backend,
        prefix=resolved_config.stats_prefix,
        stats_ttl=resolved_config.stats_ttl,
    )


@pytest.fixture
def orchestrator(connected_memory_backend, resolver, stats, settings):
    """Orchestrator over the connected memory backend."""
    return CacheOrchestrator(
        connected_memory_backend,
        resolver,
        stats=stats,
        settings=settings,
        rng=random.Random(42),
    )


@pytest.fixture
def make_orchestrator(settings):
    """Factory building an orchestrator for an ad-hoc configuration tree."""

    def factory(raw: Dict[str, Any], backend) -> CacheOrchestrator:
        config = ConfigResolver(settings).resolve(raw)
        stats = StatsTracker(backend, prefix=config.stats_prefix, stats_ttl=config.stats_ttl)
        return CacheOrchestrator(
            backend,
            CacheKeyResolver(KeyTemplateRegistry(config)),
            stats=stats,
            settings=settings,
            rng=random.Random(7),
        )

    return factory
