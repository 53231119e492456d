"""
cachefront - Cache Factory

Builds a CacheManager from typed configuration.

Key points:
- Drivers are registered in a fixed order: memory, file, redis, mongodb
- Only sections present and enabled are registered
- A failing driver constructor aborts bootstrap (fail fast)
- config.default_driver, when set, overrides "first registered wins"

Examples:
    from cachefront.cache.factory import create_manager

    # Uses env-configured drivers (see cachefront.config.loader)
    manager = create_manager()

    # Or explicitly supply a CacheConfig (e.g., for tests)
    from cachefront.config import CacheConfig, DriversConfig, DriverMemoryConfig
    cfg = CacheConfig(drivers=DriversConfig(memory=DriverMemoryConfig(enabled=True)))
    manager = create_manager(cfg)
"""

from __future__ import annotations

import logging

from pymongo.database import Database
from redis import Redis

from ..config import CacheConfig, get_config
from ..logging_config import setup_logging
from .drivers import FileDriver, MemoryDriver, MongoDBDriver, RedisDriver
from .manager import CacheManager

logger = logging.getLogger(__name__)


def create_manager(
    config: CacheConfig | None = None,
    redis_client: Redis | None = None,
    mongo_database: Database | None = None,
    configure_logging: bool = False,
) -> CacheManager:
    """
    Create a CacheManager with every enabled driver registered.

    Args:
        config: Cache configuration (uses the global config if not provided)
        redis_client: Existing Redis handle for the redis driver; built from
            the configured URL when omitted
        mongo_database: Existing database handle for the mongodb driver; a
            client is built from the configured URL when omitted
        configure_logging: Apply setup_logging(config.log_level) first

    Returns:
        Manager with drivers registered and the default driver selected

    Raises:
        ConfigurationError: If a driver section is invalid or unusable
        BackendError: If a redis or mongodb driver cannot reach its server
    """
    if config is None:
        config = get_config()

    if configure_logging:
        setup_logging(config.log_level)

    manager = CacheManager()
    drivers = config.drivers

    if drivers.memory is not None and drivers.memory.enabled:
        manager.add_driver("memory", MemoryDriver(drivers.memory))

    if drivers.file is not None and drivers.file.enabled:
        manager.add_driver("file", FileDriver(drivers.file))

    if drivers.redis is not None and drivers.redis.enabled:
        if redis_client is not None:
            manager.add_driver("redis", RedisDriver(drivers.redis, redis_client))
        else:
            manager.add_driver("redis", RedisDriver.from_config(drivers.redis))

    if drivers.mongodb is not None and drivers.mongodb.enabled:
        if mongo_database is not None:
            manager.add_driver("mongodb", MongoDBDriver(drivers.mongodb, mongo_database))
        else:
            manager.add_driver("mongodb", MongoDBDriver.from_config(drivers.mongodb))

    if config.default_driver:
        manager.set_default_driver(config.default_driver)

    names = manager.driver_names()
    if not names:
        logger.warning("No cache drivers enabled; reads will miss and writes will fail")

    logger.info(
        f"Cache manager ready (drivers: {', '.join(names) or 'none'}, default: {manager.default_driver_name})",
        extra={"drivers": names, "default_driver": manager.default_driver_name},
    )
    return manager
