"""
cachefront - Memory Cache Driver

In-process cache with LRU eviction and TTL support.
Thread-safe and suitable for single-process deployments.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Iterable
from typing import Any

from ...config.schemas import DriverMemoryConfig
from ...errors import ConfigurationError, SerializationError
from ..interface import Driver
from ..serializers import get_serializer

logger = logging.getLogger(__name__)


class MemoryDriver(Driver):
    """
    In-memory cache driver with LRU eviction.

    Features:
    - Values are stored encoded, so callers never share mutable state with
      the cache and unserializable values fail exactly as on other drivers
    - LRU eviction when max_size is reached
    - Per-key TTL support, expired entries are dropped lazily
    - set_multiple() is all-or-nothing (one lock for the whole batch)
    """

    driver_type = "memory"

    def __init__(self, config: DriverMemoryConfig) -> None:
        """
        Initialize memory cache driver.

        Raises:
            ConfigurationError: If the driver is disabled
        """
        if not config.enabled:
            raise ConfigurationError("memory driver is not enabled", details={"driver": "memory"})

        super().__init__(get_serializer(config.serializer), config.prefix, config.default_ttl)
        self.max_size = config.max_size

        # Storage: namespaced key -> (payload, expiry_time)
        self._store: OrderedDict[str, tuple[bytes, float | None]] = OrderedDict()
        self._evictions = 0
        self._lock = threading.Lock()

    def _expiry(self, ttl: int | None) -> float | None:
        seconds = self._ttl_seconds(ttl)
        return time.time() + seconds if seconds > 0 else None

    @staticmethod
    def _is_expired(expiry: float | None) -> bool:
        """Check if entry is expired."""
        if expiry is None:
            return False
        return time.time() > expiry

    def _lookup(self, cache_key: str) -> bytes | None:
        """Return the live payload for cache_key. Caller holds the lock."""
        entry = self._store.get(cache_key)
        if entry is None:
            return None

        payload, expiry = entry
        if self._is_expired(expiry):
            del self._store[cache_key]
            return None

        # Move to end (mark as recently used)
        self._store.move_to_end(cache_key)
        return payload

    def _put(self, cache_key: str, payload: bytes, expiry: float | None) -> None:
        """Store one entry, evicting the least recently used one if full. Caller holds the lock."""
        if cache_key not in self._store and len(self._store) >= self.max_size:
            evicted_key, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted key from memory cache: {evicted_key}")

        self._store[cache_key] = (payload, expiry)
        self._store.move_to_end(cache_key)

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve value from cache."""
        with self._lock:
            payload = self._lookup(self._make_key(key))

        if payload is None:
            self._record_miss()
            return default

        try:
            value = self.serializer.decode(payload)
        except SerializationError as e:
            logger.warning(
                f"Failed to decode key '{key}' from memory cache: {e}",
                extra={"key": key, "serializer": self.serializer.name, "error": str(e)},
            )
            self._record_miss()
            return default

        self._record_hit()
        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store value in cache."""
        payload = self.serializer.encode(value)
        with self._lock:
            self._put(self._make_key(key), payload, self._expiry(ttl))

    def has(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        with self._lock:
            return self._lookup(self._make_key(key)) is not None

    def delete(self, key: str) -> None:
        """Delete key from cache."""
        with self._lock:
            self._store.pop(self._make_key(key), None)

    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """Retrieve multiple values under a single lock acquisition."""
        unique_keys = self._unique(keys)

        with self._lock:
            payloads = [(key, self._lookup(self._make_key(key))) for key in unique_keys]

        found: dict[str, Any] = {}
        missing: list[str] = []
        for key, payload in payloads:
            if payload is None:
                missing.append(key)
                continue
            try:
                found[key] = self.serializer.decode(payload)
            except SerializationError:
                missing.append(key)

        self._record_hit(len(found))
        self._record_miss(len(missing))
        return found, missing

    def set_multiple(self, values: dict[str, Any], ttl: int | None = None) -> None:
        """Store multiple values; nothing is stored if any value fails to encode."""
        if not values:
            return

        payloads = {self._make_key(key): self.serializer.encode(value) for key, value in values.items()}
        expiry = self._expiry(ttl)

        with self._lock:
            for cache_key, payload in payloads.items():
                self._put(cache_key, payload, expiry)

    def delete_multiple(self, keys: Iterable[str]) -> None:
        """Delete multiple keys."""
        with self._lock:
            for key in keys:
                self._store.pop(self._make_key(key), None)

    def flush(self) -> None:
        """Clear all entries from cache."""
        with self._lock:
            size = len(self._store)
            self._store.clear()
        logger.info(f"Flushed {size} entries from memory cache namespace '{self.prefix}'")

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            count = sum(1 for _, expiry in self._store.values() if not self._is_expired(expiry))
            evictions = self._evictions

        return {
            "type": self.driver_type,
            "prefix": self.prefix,
            "count": count,
            "max_size": self.max_size,
            "evictions": evictions,
            "serializer": self.serializer.name,
            "default_ttl": self.default_ttl,
            **self._counters(),
        }

    def close(self) -> None:
        """Drop all entries. Safe to call repeatedly."""
        with self._lock:
            self._store.clear()
        logger.debug(f"Memory cache driver closed for namespace '{self.prefix}'")

    def with_serializer(self, name: str) -> MemoryDriver:
        """
        Return a driver over the same store with a different codec.

        Stored payloads are not re-encoded: reading an entry written through
        another codec usually fails to decode and reports a miss.
        """
        clone = copy.copy(self)
        clone.serializer = get_serializer(name)
        clone._hits = 0
        clone._misses = 0
        clone._stats_lock = threading.Lock()
        return clone
