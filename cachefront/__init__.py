"""
cachefront - Multi-backend Cache Facade

A registry of named cache drivers (in-process, filesystem, redis, mongodb) with a
default driver, pluggable value codecs and a cache-aside helper.
"""

__version__ = "1.0.0"

from .cache import CacheManager, Driver, create_manager
from .errors import (
    BackendError,
    CacheError,
    CachefrontError,
    ConfigurationError,
    DriverCloseError,
    DriverNotFoundError,
    NoDefaultDriverError,
    SerializationError,
)

__all__ = [
    "CacheManager",
    "Driver",
    "create_manager",
    "CachefrontError",
    "ConfigurationError",
    "CacheError",
    "DriverNotFoundError",
    "NoDefaultDriverError",
    "SerializationError",
    "BackendError",
    "DriverCloseError",
]
