"""
cachefront - Cache Module

Provides a multi-backend cache behind one registry.

Exports:
- manager.py: CacheManager, the named-driver registry and default-driver facade
- interface.py: Driver, the abstract contract all drivers implement
- drivers/: memory, file, redis and mongodb implementations
- serializers.py: json / msgpack / pickle codecs
- factory.py: create_manager(), bootstrap from configuration

Usage:
    from cachefront.cache import create_manager

    cache = create_manager()
    cache.set("key", "value", ttl=3600)
    value = cache.get("key")
"""

from .drivers import FileDriver, MemoryDriver, MongoDBDriver, RedisDriver
from .factory import create_manager
from .interface import Driver
from .manager import CacheManager
from .scan import NamespaceScan
from .serializers import Serializer, available_serializers, get_serializer

__all__ = [
    # Registry
    "CacheManager",
    "create_manager",
    # Interface
    "Driver",
    # Drivers
    "MemoryDriver",
    "FileDriver",
    "RedisDriver",
    "MongoDBDriver",
    # Serialization
    "Serializer",
    "get_serializer",
    "available_serializers",
    # Helpers
    "NamespaceScan",
]
