"""Ambient infrastructure: settings, errors and logging."""

from cachekv.core.config import Settings
from cachekv.core.errors import (
    CacheKVError,
    ConfigError,
    DriverError,
    ErrorCategory,
    MissingParameterError,
    SerializationError,
    UnknownTemplateError,
)
from cachekv.core.logging import configure_logging, get_logger

__all__ = [
    "Settings",
    "CacheKVError",
    "ConfigError",
    "DriverError",
    "ErrorCategory",
    "MissingParameterError",
    "SerializationError",
    "UnknownTemplateError",
    "configure_logging",
    "get_logger",
]
