"""
cachefront - Core Error Types

Defines the exception hierarchy for the cache facade.
All exceptions inherit from CachefrontError for consistent error handling.

Error kinds:
- ConfigurationError: driver disabled or a dependency is missing (fatal at construction)
- DriverNotFoundError / NoDefaultDriverError: caller-correctable registry errors
- SerializationError: a value cannot be encoded/decoded by the selected codec
- BackendError: the backing store failed; the original message is preserved
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes used in error payloads."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DRIVER_NOT_FOUND = "DRIVER_NOT_FOUND"
    NO_DEFAULT_DRIVER = "NO_DEFAULT_DRIVER"
    SERIALIZATION_ERROR = "SERIALIZATION_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    CLOSE_ERROR = "CLOSE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CachefrontError(Exception):
    """Base exception for all cachefront errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging or API responses."""
        return {
            "error": self.__class__.__name__,
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CachefrontError):
    """Raised when configuration is invalid, a driver is disabled, or a dependency is missing."""

    code = ErrorCode.CONFIGURATION_ERROR


class CacheError(CachefrontError):
    """Base exception for cache operation errors."""


class DriverNotFoundError(CacheError):
    """Raised when a named driver is not registered."""

    code = ErrorCode.DRIVER_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(f"driver '{name}' not found", {"driver": name})
        self.name = name


class NoDefaultDriverError(CacheError):
    """Raised when a mutating operation has no usable default driver."""

    code = ErrorCode.NO_DEFAULT_DRIVER

    def __init__(self, name: str | None = None):
        super().__init__("no default cache driver set", {"default_driver": name})


class SerializationError(CacheError):
    """Raised when a value cannot be encoded or decoded."""

    code = ErrorCode.SERIALIZATION_ERROR

    def __init__(self, message: str, serializer: str, details: dict[str, Any] | None = None):
        error_details = details or {}
        error_details["serializer"] = serializer
        super().__init__(message, error_details)
        self.serializer = serializer


class BackendError(CacheError):
    """Raised when the backing store fails. Wraps the backend error message verbatim."""

    code = ErrorCode.BACKEND_ERROR

    def __init__(self, operation: str, error: Exception, details: dict[str, Any] | None = None):
        error_details = details or {}
        error_details.update({"operation": operation, "backend_error": str(error)})
        super().__init__(f"cache {operation} failed: {error}", error_details)
        self.operation = operation
        self.original = error


class DriverCloseError(CacheError):
    """Raised by CacheManager.close() when one or more drivers failed to close."""

    code = ErrorCode.CLOSE_ERROR

    def __init__(self, errors: dict[str, Exception]):
        summary = "; ".join(f"driver '{name}': {err}" for name, err in errors.items())
        super().__init__(
            f"failed to close {len(errors)} cache driver(s): {summary}",
            {"drivers": list(errors)},
        )
        self.errors = errors


def make_error_response(error: CachefrontError) -> dict[str, Any]:
    """
    Create a standardized error payload from a cachefront error.

    Example:
        >>> make_error_response(DriverNotFoundError("redis"))
        {
            "success": False,
            "error_code": "DRIVER_NOT_FOUND",
            "message": "driver 'redis' not found",
            "details": {"driver": "redis"}
        }
    """
    return {
        "success": False,
        "error_code": error.code.value,
        "message": error.message,
        "details": error.details,
    }
