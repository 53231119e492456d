"""
cachefront - Cache Drivers

Concrete implementations of the Driver interface.
"""

from .file import FileDriver
from .memory import MemoryDriver
from .mongodb import MongoDBDriver
from .redis import RedisDriver

__all__ = [
    "MemoryDriver",
    "FileDriver",
    "RedisDriver",
    "MongoDBDriver",
]
