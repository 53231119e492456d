"""
cachefront - Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.

Serializer names are plain strings on purpose: an unknown name still loads and
the driver falls back to JSON at construction time.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PREFIX = "cache:"


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DriverConfig(BaseModel):
    """Settings shared by every driver section."""

    enabled: bool = Field(default=False, description="Register this driver at bootstrap")
    default_ttl: int = Field(default=0, ge=0, description="TTL in seconds applied when ttl=None (0 = no expiry)")
    serializer: str = Field(default="json", description="Codec name: json, msgpack or pickle")
    prefix: str = Field(default=DEFAULT_PREFIX, description="Namespace prepended to every key")

    @field_validator("serializer", mode="before")
    @classmethod
    def normalize_serializer(cls, v: object) -> object:
        """Accept None/blank as 'use the fallback codec'."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """An empty prefix would let flush() reach keys outside the cache."""
        if not v:
            raise ValueError("prefix must not be empty")
        return v


class DriverMemoryConfig(DriverConfig):
    """In-process driver configuration."""

    max_size: int = Field(default=1000, ge=1, description="Max entries before LRU eviction")


class DriverFileConfig(DriverConfig):
    """Filesystem driver configuration."""

    path: str = Field(default="./storage/cache", description="Directory holding cache files")
    extension: str = Field(default=".cache", description="Suffix of cache entry files")

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith("."):
            v = f".{v}"
        if len(v) < 2:
            raise ValueError("extension must not be empty")
        return v


class DriverRedisConfig(DriverConfig):
    """Redis driver configuration."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")
    scan_batch_size: int = Field(default=1000, ge=1, description="COUNT hint for SCAN during flush/stats")


class DriverMongodbConfig(DriverConfig):
    """MongoDB driver configuration."""

    url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    database: str = Field(default="cache", min_length=1, description="Database holding the cache collection")
    collection: str = Field(default="cache_entries", min_length=1, description="Collection storing one document per key")
    server_selection_timeout_ms: int = Field(
        default=5000, ge=1, description="How long to wait for a reachable server, in milliseconds"
    )


class DriversConfig(BaseModel):
    """Per-driver sections. A missing section means the driver is not registered."""

    memory: DriverMemoryConfig | None = None
    file: DriverFileConfig | None = None
    redis: DriverRedisConfig | None = None
    mongodb: DriverMongodbConfig | None = None


class CacheConfig(BaseModel):
    """Root configuration for cachefront."""

    default_driver: str | None = Field(default=None, description="Driver used by CacheManager operations")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    drivers: DriversConfig = Field(default_factory=DriversConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
