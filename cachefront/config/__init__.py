"""
cachefront - Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import (
    DEFAULT_PREFIX,
    CacheConfig,
    DriverConfig,
    DriverFileConfig,
    DriverMemoryConfig,
    DriverMongodbConfig,
    DriverRedisConfig,
    DriversConfig,
    LogLevel,
)

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Main config
    "CacheConfig",
    "DriversConfig",
    # Driver sections
    "DriverConfig",
    "DriverMemoryConfig",
    "DriverFileConfig",
    "DriverRedisConfig",
    "DriverMongodbConfig",
    # Enums / constants
    "LogLevel",
    "DEFAULT_PREFIX",
]
