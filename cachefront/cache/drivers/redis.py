"""
cachefront - Redis Cache Driver

Synchronous Redis driver with:
- Pluggable value serialization (json / msgpack / pickle)
- Per-key TTL support (None -> configured default, 0 -> no expiry)
- Namespace prefixing so flush() and stats() only touch this cache's keys
- Batch operations (MGET, pipelined SET, variadic DEL)
- Cursor-based SCAN for flush and key counting

Requires: redis>=5.0

Example:
    config = DriverRedisConfig(enabled=True, url="redis://localhost:6379/0", default_ttl=300)
    cache = RedisDriver.from_config(config)
    cache.set("greeting", {"msg": "hello"}, ttl=60)
    val = cache.get("greeting")
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable, Iterator
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from ...config.schemas import DriverRedisConfig
from ...errors import BackendError, ConfigurationError, SerializationError
from ..interface import Driver
from ..scan import NamespaceScan
from ..serializers import get_serializer

logger = logging.getLogger(__name__)

# DEL is variadic; keep single commands reasonably sized
DELETE_CHUNK_SIZE = 1000


class RedisDriver(Driver):
    """
    Redis cache driver.

    Notes:
    - Keys are prefixed with the configured namespace ("cache:" by default).
    - Values are stored as bytes produced by the configured serializer.
    - set_multiple() encodes every value before sending anything, then writes
      through one non-transactional pipeline: a serialization error writes
      nothing, while a backend failure during the pipeline may leave some of
      the keys written.
    - close() is idempotent.
    """

    driver_type = "redis"

    def __init__(self, config: DriverRedisConfig, client: Redis | None) -> None:
        """
        Initialize the driver and verify the backend is reachable.

        Args:
            config: Redis driver configuration
            client: Redis command executor (redis.Redis or compatible); the
                driver takes ownership and closes it in close()

        Raises:
            ConfigurationError: If the driver is disabled or client is None
            BackendError: If the initial PING fails
        """
        if not config.enabled:
            raise ConfigurationError("redis driver is not enabled", details={"driver": "redis"})
        if client is None:
            raise ConfigurationError("redis client cannot be None", details={"driver": "redis"})

        super().__init__(get_serializer(config.serializer), config.prefix, config.default_ttl)
        self.config = config
        self._client = client
        self._closed = False
        self._close_lock = threading.Lock()

        try:
            self._client.ping()
        except RedisError as e:
            logger.error(
                f"Redis ping failed: {e}",
                extra={"prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("ping", e) from e

        logger.info(
            f"Redis cache driver ready (prefix '{self.prefix}', serializer '{self.serializer.name}')",
            extra={"prefix": self.prefix, "serializer": self.serializer.name, "default_ttl": self.default_ttl},
        )

    @classmethod
    def from_config(cls, config: DriverRedisConfig) -> RedisDriver:
        """Build the Redis client from config.url and construct the driver."""
        if not config.enabled:
            raise ConfigurationError("redis driver is not enabled", details={"driver": "redis"})

        client = Redis.from_url(
            config.url,
            decode_responses=False,  # values are binary payloads
            max_connections=config.max_connections,
            socket_timeout=config.socket_timeout,
        )
        try:
            return cls(config, client)
        except BackendError:
            client.close()
            raise

    # ------------ Helpers ------------

    def _scan(self) -> NamespaceScan:
        return NamespaceScan(self._client, self.prefix, self.config.scan_batch_size)

    # ------------ Core Interface ------------

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value by key; failures are logged and reported as a miss."""
        ns_key = self._make_key(key)
        try:
            data = self._client.get(ns_key)
        except RedisError as e:
            logger.warning(
                f"Failed to get key '{key}' from Redis: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            self._record_miss()
            return default

        if data is None:
            self._record_miss()
            return default

        try:
            value = self.serializer.decode(data)
        except SerializationError as e:
            logger.warning(
                f"Failed to decode key '{key}' with '{self.serializer.name}': {e}",
                extra={"key": key, "serializer": self.serializer.name, "error": str(e)},
            )
            self._record_miss()
            return default

        self._record_hit()
        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value with optional TTL."""
        payload = self.serializer.encode(value)
        ex = self._ttl_seconds(ttl) or None
        try:
            self._client.set(self._make_key(key), payload, ex=ex)
        except RedisError as e:
            logger.error(
                f"Failed to set key '{key}' in Redis: {e}",
                extra={"key": key, "prefix": self.prefix, "ttl": ex, "error": str(e)},
            )
            raise BackendError("set", e, details={"key": key}) from e

    def has(self, key: str) -> bool:
        """Check if a key exists."""
        try:
            return bool(self._client.exists(self._make_key(key)))
        except RedisError as e:
            logger.warning(
                f"Failed to check existence of key '{key}' in Redis: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            return False

    def delete(self, key: str) -> None:
        """Delete a single key."""
        try:
            self._client.delete(self._make_key(key))
        except RedisError as e:
            logger.error(
                f"Failed to delete key '{key}' from Redis: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("delete", e, details={"key": key}) from e

    # ------------ Batch operations ------------

    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """
        Retrieve multiple values in one round-trip using MGET.
        Unreadable keys are reported as missing, in input order.
        """
        unique_keys = self._unique(keys)
        if not unique_keys:
            return {}, []

        try:
            values = self._client.mget([self._make_key(k) for k in unique_keys])
        except RedisError as e:
            logger.warning(
                f"Failed to get multiple keys from Redis: {e}",
                extra={"key_count": len(unique_keys), "prefix": self.prefix, "error": str(e)},
            )
            self._record_miss(len(unique_keys))
            return {}, unique_keys

        found: dict[str, Any] = {}
        missing: list[str] = []
        # mget preserves order
        for key, raw in zip(unique_keys, values, strict=True):
            if raw is None:
                missing.append(key)
                continue
            try:
                found[key] = self.serializer.decode(raw)
            except SerializationError as e:
                logger.warning(
                    f"Failed to decode key '{key}' with '{self.serializer.name}': {e}",
                    extra={"key": key, "serializer": self.serializer.name, "error": str(e)},
                )
                missing.append(key)

        self._record_hit(len(found))
        self._record_miss(len(missing))
        return found, missing

    def set_multiple(self, values: dict[str, Any], ttl: int | None = None) -> None:
        """Store multiple values through one pipeline. Every value gets the same TTL."""
        if not values:
            return

        ex = self._ttl_seconds(ttl) or None
        # Encode everything first: a bad value must not leave a partial write
        payloads = {self._make_key(key): self.serializer.encode(value) for key, value in values.items()}

        try:
            pipe = self._client.pipeline(transaction=False)
            for ns_key, payload in payloads.items():
                pipe.set(ns_key, payload, ex=ex)
            pipe.execute()
        except RedisError as e:
            logger.error(
                f"Failed to set multiple keys in Redis: {e}",
                extra={"key_count": len(values), "prefix": self.prefix, "ttl": ex, "error": str(e)},
            )
            raise BackendError("set_multiple", e, details={"key_count": len(values)}) from e

    def delete_multiple(self, keys: Iterable[str]) -> None:
        """Delete multiple keys with variadic DEL, chunked for very large inputs."""
        ns_keys = [self._make_key(k) for k in self._unique(keys)]
        if not ns_keys:
            return

        try:
            for i in range(0, len(ns_keys), DELETE_CHUNK_SIZE):
                self._client.delete(*ns_keys[i : i + DELETE_CHUNK_SIZE])
        except RedisError as e:
            logger.error(
                f"Failed to delete multiple keys from Redis: {e}",
                extra={"key_count": len(ns_keys), "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("delete_multiple", e, details={"key_count": len(ns_keys)}) from e

    # ------------ Namespace-wide operations ------------

    def flush(self) -> None:
        """
        Clear all entries under the namespace.

        Implementation: SCAN match "<prefix>*" and DEL each batch.
        """
        try:
            deleted = self._scan().delete_all()
        except RedisError as e:
            logger.error(
                f"Failed to flush cache namespace '{self.prefix}': {e}",
                extra={"prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("flush", e, details={"prefix": self.prefix}) from e

        logger.info(f"Flushed {deleted} keys from namespace '{self.prefix}'")

    def keys(self) -> Iterator[str]:
        """
        Iterate over the logical keys stored under this namespace.

        Lazy: keys are fetched one SCAN batch at a time.
        """
        try:
            yield from self._scan().logical_keys()
        except RedisError as e:
            raise BackendError("keys", e, details={"prefix": self.prefix}) from e

    def stats(self) -> dict[str, Any]:
        """Return key count, hit/miss counters and raw Redis INFO."""
        stats: dict[str, Any] = {
            "type": self.driver_type,
            "prefix": self.prefix,
            "count": 0,
            "serializer": self.serializer.name,
            "default_ttl": self.default_ttl,
            **self._counters(),
        }

        try:
            stats["count"] = self._scan().count()
        except RedisError as e:
            logger.warning(
                f"Failed to count keys in namespace '{self.prefix}': {e}",
                extra={"prefix": self.prefix, "error": str(e)},
            )
            stats["error"] = str(e)

        try:
            stats["info"] = self._client.info()
        except RedisError as e:
            # INFO may be restricted (e.g. managed Redis); keep the minimal stats
            logger.warning(f"Failed to get Redis INFO (restricted or unavailable): {e}", extra={"error": str(e)})

        return stats

    def close(self) -> None:
        """Close the Redis client and release its connection pool."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._client.close()
            logger.info(f"Closed Redis cache driver for namespace '{self.prefix}'")
        except RedisError as e:
            raise BackendError("close", e, details={"prefix": self.prefix}) from e

    def with_serializer(self, name: str) -> RedisDriver:
        """Return a driver sharing this client but encoding with another codec."""
        clone = copy.copy(self)
        clone.serializer = get_serializer(name)
        clone._hits = 0
        clone._misses = 0
        clone._stats_lock = threading.Lock()
        return clone
