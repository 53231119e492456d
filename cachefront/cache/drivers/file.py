"""
cachefront - File Cache Driver

Persistent filesystem cache for single-host deployments.

Each entry is one file in the configured directory. The file name is derived
from the namespaced key, so several namespaces can share a directory and
flush() only removes its own files. A file holds a one-line JSON header
(logical key and absolute expiry) followed by the encoded payload.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from ...config.schemas import DriverFileConfig
from ...errors import BackendError, ConfigurationError, SerializationError
from ..interface import _MISSING, Driver
from ..serializers import get_serializer

logger = logging.getLogger(__name__)

# Temporary files older than this are leftovers from an interrupted write
STALE_TMP_SECONDS = 60


class FileDriver(Driver):
    """
    File-based cache driver.

    Writes go to a temporary file that is renamed into place, so readers never
    observe half-written entries. set_multiple() writes files one by one: an
    I/O failure part-way leaves the entries written before it in place.
    """

    driver_type = "file"

    def __init__(self, config: DriverFileConfig) -> None:
        """
        Initialize the driver and create its directory.

        Raises:
            ConfigurationError: If the driver is disabled or the directory cannot be created
        """
        if not config.enabled:
            raise ConfigurationError("file driver is not enabled", details={"driver": "file"})

        super().__init__(get_serializer(config.serializer), config.prefix, config.default_ttl)
        self.cache_dir = Path(config.path)
        self.extension = config.extension

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create cache directory {self.cache_dir}: {e}",
                details={"driver": "file", "path": str(self.cache_dir), "error": str(e)},
            ) from e

        # Files of this namespace share a name prefix derived from the namespace
        self._namespace_tag = hashlib.sha256(self.prefix.encode("utf-8")).hexdigest()[:12]
        self._lock = threading.Lock()
        self._remove_stale_tmp_files()

        logger.info(
            f"File cache driver ready at {self.cache_dir}",
            extra={"path": str(self.cache_dir), "prefix": self.prefix, "serializer": self.serializer.name},
        )

    # ------------ Helpers ------------

    def _file_path(self, key: str) -> Path:
        """Get file path for cache key."""
        # Hash the key to avoid filesystem issues
        key_hash = hashlib.sha256(self._make_key(key).encode("utf-8")).hexdigest()
        return self.cache_dir / f"{self._namespace_tag}_{key_hash}{self.extension}"

    def _namespace_files(self) -> Iterator[Path]:
        return self.cache_dir.glob(f"{self._namespace_tag}_*{self.extension}")

    def _remove_stale_tmp_files(self) -> int:
        """Delete temporary files left behind by writes that never completed."""
        cutoff = time.time() - STALE_TMP_SECONDS
        removed = 0
        for path in self.cache_dir.glob(".tmp_*"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink(missing_ok=True)
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove stale temp file {path.name}: {e}", extra={"path": str(path)})
        if removed:
            logger.info(f"Removed {removed} stale temp files from {self.cache_dir}", extra={"removed": removed})
        return removed

    def _read(self, path: Path) -> tuple[dict[str, Any], bytes] | None:
        """
        Read one entry. Returns (header, payload), or None if it is absent,
        unreadable or expired. Expired files are removed.
        """
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None

        header_line, sep, payload = raw.partition(b"\n")
        if not sep:
            raise ValueError(f"corrupt cache file {path.name}")
        header = json.loads(header_line)
        if not isinstance(header, dict) or not isinstance(header.get("key"), str):
            raise ValueError(f"corrupt cache file header in {path.name}")

        expires_at = header.get("expires_at")
        if expires_at is not None and (isinstance(expires_at, bool) or not isinstance(expires_at, (int, float))):
            raise ValueError(f"corrupt expiry in cache file {path.name}")
        if expires_at is not None and time.time() > expires_at:
            path.unlink(missing_ok=True)
            return None

        return header, payload

    def _write(self, path: Path, key: str, payload: bytes, ttl: int | None) -> None:
        """Atomically write one entry. Caller holds the lock."""
        seconds = self._ttl_seconds(ttl)
        header = {
            "key": self._make_key(key),
            "expires_at": time.time() + seconds if seconds > 0 else None,
        }

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(json.dumps(header).encode("utf-8"))
                f.write(b"\n")
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------ Core Interface ------------

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from file cache."""
        try:
            with self._lock:
                entry = self._read(self._file_path(key))
            if entry is None:
                self._record_miss()
                return default
            value = self.serializer.decode(entry[1])
        except (OSError, ValueError, SerializationError) as e:
            logger.warning(
                f"Failed to read key '{key}' from file cache: {e}",
                extra={"key": key, "path": str(self.cache_dir), "error": str(e)},
            )
            self._record_miss()
            return default

        self._record_hit()
        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set value in file cache."""
        payload = self.serializer.encode(value)
        try:
            with self._lock:
                self._write(self._file_path(key), key, payload, ttl)
        except OSError as e:
            logger.error(
                f"Failed to write key '{key}' to file cache: {e}",
                extra={"key": key, "path": str(self.cache_dir), "error": str(e)},
            )
            raise BackendError("set", e, details={"key": key}) from e

    def has(self, key: str) -> bool:
        """Check whether a live (non-expired) entry exists."""
        try:
            with self._lock:
                return self._read(self._file_path(key)) is not None
        except (OSError, ValueError):
            return False

    def delete(self, key: str) -> None:
        """Delete key from file cache."""
        try:
            with self._lock:
                self._file_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise BackendError("delete", e, details={"key": key}) from e

    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """Read several entries; unreadable entries are reported missing."""
        found: dict[str, Any] = {}
        missing: list[str] = []
        for key in self._unique(keys):
            value = self.get(key, _MISSING)
            if value is _MISSING:
                missing.append(key)
            else:
                found[key] = value
        return found, missing

    def set_multiple(self, values: dict[str, Any], ttl: int | None = None) -> None:
        """Encode every value, then write the files one by one."""
        if not values:
            return

        payloads = {key: self.serializer.encode(value) for key, value in values.items()}
        written = 0
        try:
            with self._lock:
                for key, payload in payloads.items():
                    self._write(self._file_path(key), key, payload, ttl)
                    written += 1
        except OSError as e:
            logger.error(
                f"Failed to write multiple keys to file cache after {written} of {len(payloads)}: {e}",
                extra={"written": written, "key_count": len(payloads), "error": str(e)},
            )
            raise BackendError("set_multiple", e, details={"written": written, "key_count": len(payloads)}) from e

    def delete_multiple(self, keys: Iterable[str]) -> None:
        """Delete several entries."""
        try:
            with self._lock:
                for key in self._unique(keys):
                    self._file_path(key).unlink(missing_ok=True)
        except OSError as e:
            raise BackendError("delete_multiple", e) from e

    def flush(self) -> None:
        """Remove every file belonging to this namespace."""
        removed = 0
        try:
            with self._lock:
                for path in self._namespace_files():
                    path.unlink(missing_ok=True)
                    removed += 1
                self._remove_stale_tmp_files()
        except OSError as e:
            raise BackendError("flush", e, details={"path": str(self.cache_dir)}) from e

        logger.info(f"Flushed {removed} entries from file cache namespace '{self.prefix}'")

    def keys(self) -> Iterator[str]:
        """Iterate over the logical keys of live entries."""
        for path in self._namespace_files():
            try:
                with self._lock:
                    entry = self._read(path)
            except (OSError, ValueError):
                continue
            if entry is not None:
                yield self._strip_key(entry[0]["key"])

    def stats(self) -> dict[str, Any]:
        """Get file cache statistics."""
        count = 0
        size_bytes = 0
        for path in self._namespace_files():
            try:
                with self._lock:
                    entry = self._read(path)
                if entry is not None:
                    count += 1
                    size_bytes += path.stat().st_size
            except (OSError, ValueError):
                continue

        return {
            "type": self.driver_type,
            "prefix": self.prefix,
            "count": count,
            "path": str(self.cache_dir),
            "size_bytes": size_bytes,
            "serializer": self.serializer.name,
            "default_ttl": self.default_ttl,
            **self._counters(),
        }

    def close(self) -> None:
        """Nothing is held open between calls; entries stay on disk."""
        logger.debug(f"File cache driver closed for {self.cache_dir}")

    def with_serializer(self, name: str) -> FileDriver:
        """Return a driver over the same directory with a different codec."""
        clone = copy.copy(self)
        clone.serializer = get_serializer(name)
        clone._hits = 0
        clone._misses = 0
        clone._stats_lock = threading.Lock()
        return clone
