"""Wiring: build an orchestrator from settings and a configuration tree."""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from cachekv.cache.backends.base import ICacheBackend
from cachekv.cache.backends.memory_backend import MemoryBackend
from cachekv.cache.backends.redis_backend import RedisBackend
from cachekv.cache.key_registry import KeyTemplateRegistry
from cachekv.cache.key_resolver import CacheKeyResolver
from cachekv.cache.orchestrator import CacheOrchestrator
from cachekv.cache.stats import StatsTracker
from cachekv.config.loader import load_config
from cachekv.config.resolver import ConfigResolver
from cachekv.config.schemas import ResolvedConfig
from cachekv.core.config import Settings
from cachekv.core.logging import get_logger

logger = get_logger(__name__)

ConfigSource = Union[ResolvedConfig, Mapping[str, Any], str, Path]


def resolve_config(config: Optional[ConfigSource], settings: Settings) -> ResolvedConfig:
    """Accept a resolved config, a raw mapping or a YAML path."""
    if isinstance(config, ResolvedConfig):
        return config
    if isinstance(config, Mapping):
        return ConfigResolver(settings).resolve(config)
    return load_config(config, settings)


def create_backend(settings: Settings) -> ICacheBackend:
    """Redis when ``redis_url`` is set, otherwise an in-process store."""
    if settings.redis_url:
        return RedisBackend(settings.redis_url)
    logger.warning("No redis_url configured, using in-memory cache backend")
    return MemoryBackend()


def create_orchestrator(
    settings: Optional[Settings] = None,
    backend: Optional[ICacheBackend] = None,
    config: Optional[ConfigSource] = None,
) -> CacheOrchestrator:
    """Build registry, resolver, stats tracker and orchestrator.

    The backend is not connected here; await ``backend.connect()`` before use.

    Args:
        settings: Process settings; read from the environment when omitted.
        backend: Cache backend; chosen from ``settings`` when omitted.
        config: Resolved config, raw mapping or YAML path. Defaults to
            ``settings.config_path``.
    """
    settings = settings or Settings()
    resolved = resolve_config(config, settings)
    backend = backend or create_backend(settings)

    registry = KeyTemplateRegistry(resolved)
    stats = StatsTracker(backend, prefix=resolved.stats_prefix, stats_ttl=resolved.stats_ttl)
    return CacheOrchestrator(backend, CacheKeyResolver(registry), stats=stats, settings=settings)
