"""Custom error types for the cache layer."""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better handling."""
    CONFIGURATION = "configuration"
    TEMPLATE = "template"
    PARAMETER = "parameter"
    DRIVER = "driver"
    SERIALIZATION = "serialization"
    UNKNOWN = "unknown"


class CacheKVError(Exception):
    """Base exception for cache layer errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/response."""
        return {
            "error": self.message,
            "category": self.category.value,
            "details": self.details,
        }


class ConfigError(CacheKVError):
    """Malformed or missing configuration.

    Raised while the configuration tree is loaded; startup should abort.
    """

    def __init__(self, message: str, path: Optional[str] = None, category: ErrorCategory = ErrorCategory.CONFIGURATION):
        details = {}
        if path:
            details["path"] = path
        super().__init__(message=message, category=category, details=details)
        self.path = path


class UnknownTemplateError(ConfigError):
    """The group or key named by a ``group.key`` template does not exist."""

    def __init__(self, template: str, group: Optional[str] = None, key: Optional[str] = None, reason: str = "unknown template"):
        super().__init__(f"{reason}: '{template}'", path=template, category=ErrorCategory.TEMPLATE)
        self.template = template
        self.group = group
        self.key = key
        self.details.update({"template": template, "group": group, "key": key})


class MissingParameterError(CacheKVError):
    """A template placeholder has no value in the supplied parameters."""

    def __init__(self, parameter: str, template: Optional[str] = None):
        message = f"Missing parameter '{parameter}'"
        if template:
            message += f" for template '{template}'"
        super().__init__(
            message=message,
            category=ErrorCategory.PARAMETER,
            details={"parameter": parameter, "template": template},
        )
        self.parameter = parameter
        self.template = template


class DriverError(CacheKVError):
    """Backend I/O failure."""

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        super().__init__(message=message, category=ErrorCategory.DRIVER, details=details)
        self.operation = operation


class SerializationError(CacheKVError):
    """A value could not be encoded for storage."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.SERIALIZATION,
            details={"key": key} if key else {},
        )
