"""
cachefront - Driver Interface

Defines the abstract contract that every cache driver must implement.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from ..errors import CacheError
from .serializers import Serializer

logger = logging.getLogger(__name__)

# Sentinel distinguishing "miss" from a cached None
_MISSING = object()


class Driver(ABC):
    """
    Abstract base class for cache drivers.

    All drivers implement this contract with identical observable semantics:

    - Reads never raise: backend and decode failures behave like a miss.
    - Writes raise SerializationError or BackendError.
    - ttl=None applies the driver's configured default TTL, ttl=0 stores
      without expiration.
    - Every logical key is namespaced with the driver prefix before it reaches
      the backend; the prefix never leaks back to callers.
    """

    #: Backend kind reported in stats()["type"]
    driver_type: str = ""

    def __init__(self, serializer: Serializer, prefix: str, default_ttl: int = 0) -> None:
        self.serializer = serializer
        self.prefix = prefix
        self.default_ttl = max(0, int(default_ttl))
        self._hits = 0
        self._misses = 0
        self._stats_lock = threading.Lock()

    # ------------ Helpers ------------

    def _make_key(self, key: str) -> str:
        """Create namespaced key."""
        return f"{self.prefix}{key}"

    def _strip_key(self, key: str | bytes) -> str:
        """Remove the namespace prefix from a backend key."""
        if isinstance(key, bytes):
            key = key.decode("utf-8")
        return key[len(self.prefix) :] if key.startswith(self.prefix) else key

    def _ttl_seconds(self, ttl: int | None) -> int:
        """
        Normalize TTL:
        - None -> default_ttl
        - 0 or negative -> 0 (no expiry)
        - positive -> provided ttl
        """
        if ttl is None:
            return self.default_ttl
        return max(0, int(ttl))

    def _record_hit(self, count: int = 1) -> None:
        with self._stats_lock:
            self._hits += count

    def _record_miss(self, count: int = 1) -> None:
        with self._stats_lock:
            self._misses += count

    def _counters(self) -> dict[str, Any]:
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "hit_rate": round((hits / total) * 100, 2) if total else 0.0,
        }

    @staticmethod
    def _unique(keys: Iterable[str]) -> list[str]:
        """Deduplicate keys preserving first-occurrence order."""
        return list(dict.fromkeys(keys))

    # ------------ Core Interface ------------

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a value from the cache.

        Args:
            key: Cache key
            default: Returned on miss, expiry, backend or decoding failure

        Returns:
            Cached value if found, ``default`` otherwise
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to cache (must be encodable by the driver's serializer)
            ttl: Time-to-live in seconds (None = driver default, 0 = no expiry)

        Raises:
            SerializationError: If the value cannot be encoded
            BackendError: If the backend write fails
        """

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check whether a key exists, without decoding its value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a key. Deleting an absent key is not an error.

        Raises:
            BackendError: If the backend delete fails
        """

    @abstractmethod
    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """
        Retrieve several values in one backend call.

        Returns:
            (found, missing): a mapping of readable keys to values, and the
            remaining keys in input order. Together they cover every distinct
            input key exactly once.
        """

    @abstractmethod
    def set_multiple(self, values: dict[str, Any], ttl: int | None = None) -> None:
        """
        Store several values with the same TTL rules as set().

        Every value is encoded before anything is written, so a
        SerializationError leaves the backend untouched. Partial writes after
        a backend failure are driver-specific (see each driver).

        Raises:
            SerializationError: On the first value that cannot be encoded
            BackendError: If the backend write fails
        """

    @abstractmethod
    def delete_multiple(self, keys: Iterable[str]) -> None:
        """
        Delete several keys in one backend call. Absent keys are ignored.

        Raises:
            BackendError: If the backend delete fails
        """

    @abstractmethod
    def flush(self) -> None:
        """
        Delete every entry in this driver's namespace (never the whole backend).

        Raises:
            BackendError: If enumeration or deletion fails
        """

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """
        Get driver statistics.

        Returns:
            Dictionary with at least "type", "prefix" and "count"; other fields
            are backend-specific.
        """

    @abstractmethod
    def close(self) -> None:
        """Release backend resources. Calling close() twice is a no-op."""

    @abstractmethod
    def with_serializer(self, name: str) -> Driver:
        """
        Return a copy of this driver using a different codec.

        The receiver is not modified. The copy shares the backend handle and
        keeps its own hit/miss counters.
        """

    # ------------ Cache-aside ------------

    def remember(self, key: str, compute: Callable[[], Any], ttl: int | None = None) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        On a hit, ``compute`` is not called. On a miss, ``compute()`` runs on
        the caller's thread; if it raises, the exception propagates unchanged
        and nothing is written. If storing the computed value fails, the
        failure is logged and the computed value is still returned.

        Concurrent misses for the same key may each call ``compute`` and each
        write; the last write wins.

        Args:
            key: Cache key
            compute: Zero-argument callable producing the value
            ttl: Time-to-live for the stored value (None = driver default)

        Returns:
            Cached or freshly computed value
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = compute()

        try:
            self.set(key, value, ttl)
        except CacheError as e:
            logger.warning(
                f"Computed value for key '{key}' could not be cached: {e}",
                extra={"key": key, "driver": self.driver_type, "error": str(e)},
            )

        return value
