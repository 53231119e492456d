"""
cachefront - Cache Manager

Registry of named cache drivers with a default driver that receives every
convenience operation (get, set, remember, ...).

Key points:
- The first driver added becomes the default; set_default_driver() overrides it
- Reads against a missing default degrade to a miss, writes raise NoDefaultDriverError
- Registry state is guarded by a reader/writer lock; driver calls run outside it
- Each manager owns its own registry, there is no module-level default

Examples:
    from cachefront.cache import CacheManager, MemoryDriver
    from cachefront.config import DriverMemoryConfig

    manager = CacheManager()
    manager.add_driver("memory", MemoryDriver(DriverMemoryConfig(enabled=True)))
    user = manager.remember("user:42", lambda: load_user(42), ttl=300)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from ..errors import DriverCloseError, DriverNotFoundError, NoDefaultDriverError
from .interface import Driver

logger = logging.getLogger(__name__)


class _ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class CacheManager:
    """
    Named driver registry and facade over the default driver.

    Thread-safe: add_driver() and set_default_driver() take the write lock,
    every other operation resolves its driver under the read lock and then
    calls it without holding any manager lock.
    """

    def __init__(self) -> None:
        self._drivers: dict[str, Driver] = {}
        self._default: str | None = None
        self._lock = _ReadWriteLock()

    # ------------ Registry ------------

    def add_driver(self, name: str, driver: Driver) -> None:
        """
        Register a driver under name, replacing any previous one.

        The first driver ever added becomes the default.
        """
        with self._lock.write():
            self._drivers[name] = driver
            if self._default is None:
                self._default = name

        logger.info(
            f"Registered cache driver '{name}'",
            extra={"driver": name, "driver_type": getattr(driver, "driver_type", "")},
        )

    def set_default_driver(self, name: str) -> None:
        """
        Select the driver used by the convenience operations.

        The name is not validated: an unknown name makes reads miss and writes
        raise NoDefaultDriverError until a driver with that name is added.
        """
        with self._lock.write():
            self._default = name

        logger.debug(f"Default cache driver set to '{name}'", extra={"driver": name})

    def driver(self, name: str) -> Driver:
        """
        Look up a registered driver.

        Raises:
            DriverNotFoundError: If no driver is registered under name
        """
        with self._lock.read():
            found = self._drivers.get(name)
        if found is None:
            raise DriverNotFoundError(name)
        return found

    @property
    def default_driver_name(self) -> str | None:
        with self._lock.read():
            return self._default

    def driver_names(self) -> list[str]:
        """Registered driver names, in registration order."""
        with self._lock.read():
            return list(self._drivers)

    def _resolve_default(self) -> Driver | None:
        with self._lock.read():
            if self._default is None:
                return None
            return self._drivers.get(self._default)

    def _require_default(self) -> Driver:
        driver = self._resolve_default()
        if driver is None:
            raise NoDefaultDriverError(self.default_driver_name)
        return driver

    # ------------ Default-driver operations ------------

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the default driver; returns default when none is set."""
        driver = self._resolve_default()
        if driver is None:
            return default
        return driver.get(key, default)

    def has(self, key: str) -> bool:
        driver = self._resolve_default()
        if driver is None:
            return False
        return driver.has(key)

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._require_default().set(key, value, ttl)

    def delete(self, key: str) -> None:
        self._require_default().delete(key)

    def flush(self) -> None:
        self._require_default().flush()

    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """Batch read from the default driver; every key is missing when none is set."""
        driver = self._resolve_default()
        if driver is None:
            return {}, Driver._unique(keys)
        return driver.get_multiple(keys)

    def set_multiple(self, values: dict[str, Any], ttl: int | None = None) -> None:
        self._require_default().set_multiple(values, ttl)

    def delete_multiple(self, keys: Iterable[str]) -> None:
        self._require_default().delete_multiple(keys)

    def remember(self, key: str, compute: Callable[[], Any], ttl: int | None = None) -> Any:
        """
        Cache-aside through the default driver.

        Raises:
            NoDefaultDriverError: If there is no usable default (compute is not called)
        """
        return self._require_default().remember(key, compute, ttl)

    # ------------ Fan-out operations ------------

    def stats(self) -> dict[str, dict[str, Any]]:
        """Collect stats() from every registered driver, keyed by driver name."""
        with self._lock.read():
            drivers = list(self._drivers.items())
        return {name: driver.stats() for name, driver in drivers}

    def close(self) -> None:
        """
        Close every registered driver.

        All drivers are attempted even when some fail.

        Raises:
            DriverCloseError: Naming every driver whose close() raised
        """
        with self._lock.read():
            drivers = list(self._drivers.items())

        if not drivers:
            logger.debug("No cache drivers to close")
            return

        errors: dict[str, Exception] = {}
        for name, driver in drivers:
            try:
                driver.close()
                logger.debug(f"Closed cache driver '{name}'")
            except Exception as e:
                logger.error(
                    f"Error closing cache driver '{name}': {e}",
                    extra={"driver": name, "error": str(e)},
                    exc_info=True,
                )
                errors[name] = e

        if errors:
            raise DriverCloseError(errors)

        logger.info(f"Closed {len(drivers)} cache driver(s)")
