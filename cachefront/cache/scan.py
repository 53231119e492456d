"""
cachefront - Namespace Scan

Cursor-driven enumeration of the keys under one namespace prefix, used by the
redis driver for flush() and stats().

The keyspace is never listed in one call: each iteration walks SCAN from
cursor 0 and yields one batch of keys per server round-trip, so memory use is
bounded by the batch size. Iterating again restarts the walk.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)

# Characters with special meaning in SCAN MATCH patterns
_GLOB_CHARS = "\\*?[]"


def escape_pattern(text: str) -> str:
    """Escape glob metacharacters so text matches literally in a MATCH pattern."""
    return "".join(f"\\{ch}" if ch in _GLOB_CHARS else ch for ch in text)


class NamespaceScan:
    """
    Lazy, restartable sequence of namespaced key batches.

    Example:
        scan = NamespaceScan(client, prefix="cache:")
        for batch in scan:
            client.delete(*batch)
    """

    def __init__(self, client: Any, prefix: str, batch_size: int = 1000) -> None:
        """
        Args:
            client: Redis command executor exposing scan(cursor=, match=, count=)
            prefix: Namespace prefix; only keys starting with it are returned
            batch_size: COUNT hint sent with every SCAN call
        """
        self._client = client
        self.prefix = prefix
        self.batch_size = max(1, int(batch_size))
        self.pattern = f"{escape_pattern(prefix)}*"

    def __iter__(self) -> Iterator[list[Any]]:
        """Yield non-empty batches of raw (still namespaced) backend keys."""
        cursor = 0
        while True:
            cursor, keys = self._client.scan(cursor=cursor, match=self.pattern, count=self.batch_size)
            if keys:
                yield list(keys)
            # SCAN signals completion by returning cursor 0
            if int(cursor) == 0:
                break

    def logical_keys(self) -> Iterator[str]:
        """Yield keys with the namespace prefix stripped."""
        size = len(self.prefix)
        for batch in self:
            for key in batch:
                if isinstance(key, bytes):
                    key = key.decode("utf-8")
                yield key[size:]

    def count(self) -> int:
        """Count namespaced keys. SCAN may report a key twice while the keyspace is rehashing."""
        return sum(len(batch) for batch in self)

    def delete_all(self) -> int:
        """
        Delete every namespaced key, batch by batch.

        Returns:
            Number of keys the backend reported as deleted
        """
        deleted = 0
        for batch in self:
            deleted += int(self._client.delete(*batch))
        logger.debug(
            f"Deleted {deleted} keys matching '{self.pattern}'",
            extra={"pattern": self.pattern, "deleted": deleted},
        )
        return deleted
