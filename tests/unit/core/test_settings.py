"""Tests for settings and logging helpers."""

import logging

import pytest

from cachekv.core.config import Settings
from cachekv.core.logging import configure_logging, get_logger


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Test built-in defaults."""
        settings = Settings(_env_file=None)
        assert settings.app_prefix == "app"
        assert settings.separator == ":"
        assert settings.fallback_ttl == 3600
        assert settings.fallback_null_cache_ttl == 300
        assert settings.stats_prefix == "cachekv:stats:"

    def test_env_prefix(self, monkeypatch):
        """Test CACHEKV_ variables are read."""
        monkeypatch.setenv("CACHEKV_APP_PREFIX", "shop")
        monkeypatch.setenv("CACHEKV_FALLBACK_TTL", "60")
        settings = Settings(_env_file=None)
        assert settings.app_prefix == "shop"
        assert settings.fallback_ttl == 60


@pytest.mark.usefixtures("isolated_logging")
class TestLogging:
    """Tests for logger helpers."""

    def test_logger_namespace(self):
        """Test loggers live under the cachekv hierarchy."""
        assert get_logger("orchestrator").name == "cachekv.orchestrator"
        assert get_logger("cachekv.cache.stats").name == "cachekv.cache.stats"

    def test_configure_logging_adds_one_handler(self):
        """Test repeated configuration does not duplicate handlers."""
        configure_logging("DEBUG")
        configure_logging("INFO")
        root = logging.getLogger("cachekv")
        handlers = [h for h in root.handlers if getattr(h, "_cachekv", False)]
        assert len(handlers) == 1
        assert root.level == logging.INFO
