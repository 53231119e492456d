"""
cachefront - MongoDB Cache Driver

Document-store driver with:
- One document per namespaced key: {"_id": key, "value": payload, "expires_at": date|None}
- A TTL index on expires_at so the server purges expired documents
- Read filters that hide expired documents the TTL monitor has not removed yet
- Batch operations ($in lookups, ordered bulk upserts, delete_many)

Requires: pymongo>=4.0

Example:
    config = DriverMongodbConfig(enabled=True, url="mongodb://localhost:27017", default_ttl=300)
    cache = MongoDBDriver.from_config(config)
    cache.set("greeting", {"msg": "hello"}, ttl=60)
    val = cache.get("greeting")
"""

from __future__ import annotations

import copy
import logging
import re
import threading
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

from pymongo import MongoClient, ReplaceOne
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ...config.schemas import DriverMongodbConfig
from ...errors import BackendError, ConfigurationError, SerializationError
from ..interface import Driver
from ..serializers import get_serializer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class MongoDBDriver(Driver):
    """
    MongoDB cache driver.

    Notes:
    - Documents are keyed by the namespaced key, so several namespaces can
      share one collection and flush() only removes its own documents.
    - Entries stored with ttl=0 carry expires_at=None and never expire.
    - set_multiple() encodes every value first, then sends one ordered bulk
      write: a serialization error writes nothing, a backend failure may
      leave the documents before the failing one written.
    - close() is idempotent and only closes a client the driver created.
    """

    driver_type = "mongodb"

    def __init__(
        self,
        config: DriverMongodbConfig,
        database: Database | None,
        client: MongoClient | None = None,
    ) -> None:
        """
        Initialize the driver, verify the server and ensure the TTL index.

        Args:
            config: MongoDB driver configuration
            database: Database holding the cache collection
            client: Client to close in close(); None leaves the caller's
                client open

        Raises:
            ConfigurationError: If the driver is disabled or database is None
            BackendError: If the ping or index creation fails
        """
        if not config.enabled:
            raise ConfigurationError("mongodb driver is not enabled", details={"driver": "mongodb"})
        if database is None:
            raise ConfigurationError("mongodb database cannot be None", details={"driver": "mongodb"})

        super().__init__(get_serializer(config.serializer), config.prefix, config.default_ttl)
        self.config = config
        self._database = database
        self._collection = database[config.collection]
        self._client = client
        self._closed = False
        self._close_lock = threading.Lock()

        try:
            self._database.command("ping")
        except PyMongoError as e:
            logger.error(
                f"MongoDB ping failed: {e}",
                extra={"database": config.database, "error": str(e)},
            )
            raise BackendError("ping", e) from e

        try:
            # expireAfterSeconds=0: each document expires at its own expires_at
            self._collection.create_index("expires_at", expireAfterSeconds=0)
        except PyMongoError as e:
            logger.error(
                f"Failed to create TTL index on '{config.collection}': {e}",
                extra={"collection": config.collection, "error": str(e)},
            )
            raise BackendError("create_index", e, details={"collection": config.collection}) from e

        logger.info(
            f"MongoDB cache driver ready ({config.database}.{config.collection}, prefix '{self.prefix}')",
            extra={
                "database": config.database,
                "collection": config.collection,
                "prefix": self.prefix,
                "serializer": self.serializer.name,
            },
        )

    @classmethod
    def from_config(cls, config: DriverMongodbConfig) -> MongoDBDriver:
        """Build a MongoClient from config.url and construct the driver."""
        if not config.enabled:
            raise ConfigurationError("mongodb driver is not enabled", details={"driver": "mongodb"})

        client: MongoClient = MongoClient(config.url, serverSelectionTimeoutMS=config.server_selection_timeout_ms)
        try:
            return cls(config, client[config.database], client=client)
        except BackendError:
            client.close()
            raise

    # ------------ Helpers ------------

    def _namespace_filter(self) -> dict[str, Any]:
        return {"_id": {"$regex": f"^{re.escape(self.prefix)}"}}

    def _live(self, query: dict[str, Any]) -> dict[str, Any]:
        """Restrict query to documents that have not expired."""
        return {**query, "$or": [{"expires_at": None}, {"expires_at": {"$gt": _utcnow()}}]}

    def _document(self, key: str, payload: bytes, ttl: int | None) -> dict[str, Any]:
        seconds = self._ttl_seconds(ttl)
        return {
            "_id": self._make_key(key),
            "value": payload,
            "expires_at": _utcnow() + timedelta(seconds=seconds) if seconds > 0 else None,
        }

    def _decode(self, doc: dict[str, Any]) -> Any:
        try:
            return self.serializer.decode(bytes(doc["value"]))
        except (KeyError, TypeError) as e:
            raise SerializationError(f"malformed cache document: {e}", serializer=self.serializer.name) from e

    # ------------ Core Interface ------------

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value by key; failures are logged and reported as a miss."""
        try:
            doc = self._collection.find_one(self._live({"_id": self._make_key(key)}))
        except PyMongoError as e:
            logger.warning(
                f"Failed to get key '{key}' from MongoDB: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            self._record_miss()
            return default

        if doc is None:
            self._record_miss()
            return default

        try:
            value = self._decode(doc)
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
        """Upsert the document for key."""
        doc = self._document(key, self.serializer.encode(value), ttl)
        try:
            self._collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
        except PyMongoError as e:
            logger.error(
                f"Failed to set key '{key}' in MongoDB: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("set", e, details={"key": key}) from e

    def has(self, key: str) -> bool:
        """Check whether a live document exists for key."""
        try:
            return self._collection.count_documents(self._live({"_id": self._make_key(key)}), limit=1) > 0
        except PyMongoError as e:
            logger.warning(
                f"Failed to check existence of key '{key}' in MongoDB: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            return False

    def delete(self, key: str) -> None:
        """Delete a single key."""
        try:
            self._collection.delete_one({"_id": self._make_key(key)})
        except PyMongoError as e:
            logger.error(
                f"Failed to delete key '{key}' from MongoDB: {e}",
                extra={"key": key, "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("delete", e, details={"key": key}) from e

    # ------------ Batch operations ------------

    def get_multiple(self, keys: Iterable[str]) -> tuple[dict[str, Any], list[str]]:
        """Fetch every key with one $in query. Unreadable keys are reported missing."""
        unique_keys = self._unique(keys)
        if not unique_keys:
            return {}, []

        try:
            docs = {
                doc["_id"]: doc
                for doc in self._collection.find(self._live({"_id": {"$in": [self._make_key(k) for k in unique_keys]}}))
            }
        except PyMongoError as e:
            logger.warning(
                f"Failed to get multiple keys from MongoDB: {e}",
                extra={"key_count": len(unique_keys), "prefix": self.prefix, "error": str(e)},
            )
            self._record_miss(len(unique_keys))
            return {}, unique_keys

        found: dict[str, Any] = {}
        missing: list[str] = []
        for key in unique_keys:
            doc = docs.get(self._make_key(key))
            if doc is None:
                missing.append(key)
                continue
            try:
                found[key] = self._decode(doc)
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
        """Upsert every value in one ordered bulk write. Every value gets the same TTL."""
        if not values:
            return

        docs = [self._document(key, self.serializer.encode(value), ttl) for key, value in values.items()]
        try:
            self._collection.bulk_write(
                [ReplaceOne({"_id": doc["_id"]}, doc, upsert=True) for doc in docs],
                ordered=True,
            )
        except PyMongoError as e:
            logger.error(
                f"Failed to set multiple keys in MongoDB: {e}",
                extra={"key_count": len(docs), "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("set_multiple", e, details={"key_count": len(docs)}) from e

    def delete_multiple(self, keys: Iterable[str]) -> None:
        """Delete several keys with one delete_many."""
        ns_keys = [self._make_key(k) for k in self._unique(keys)]
        if not ns_keys:
            return

        try:
            self._collection.delete_many({"_id": {"$in": ns_keys}})
        except PyMongoError as e:
            logger.error(
                f"Failed to delete multiple keys from MongoDB: {e}",
                extra={"key_count": len(ns_keys), "prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("delete_multiple", e, details={"key_count": len(ns_keys)}) from e

    # ------------ Namespace-wide operations ------------

    def flush(self) -> None:
        """Delete every document whose _id starts with the namespace prefix."""
        try:
            result = self._collection.delete_many(self._namespace_filter())
        except PyMongoError as e:
            logger.error(
                f"Failed to flush cache namespace '{self.prefix}': {e}",
                extra={"prefix": self.prefix, "error": str(e)},
            )
            raise BackendError("flush", e, details={"prefix": self.prefix}) from e

        logger.info(f"Flushed {result.deleted_count} documents from namespace '{self.prefix}'")

    def keys(self) -> Iterator[str]:
        """Iterate over the logical keys of live documents, streamed by the cursor."""
        try:
            for doc in self._collection.find(self._live(self._namespace_filter()), projection={"_id": True}):
                yield self._strip_key(doc["_id"])
        except PyMongoError as e:
            raise BackendError("keys", e, details={"prefix": self.prefix}) from e

    def stats(self) -> dict[str, Any]:
        """Return live document count and hit/miss counters."""
        stats: dict[str, Any] = {
            "type": self.driver_type,
            "prefix": self.prefix,
            "count": 0,
            "database": self.config.database,
            "collection": self.config.collection,
            "serializer": self.serializer.name,
            "default_ttl": self.default_ttl,
            **self._counters(),
        }

        try:
            stats["count"] = self._collection.count_documents(self._live(self._namespace_filter()))
        except PyMongoError as e:
            logger.warning(
                f"Failed to count documents in namespace '{self.prefix}': {e}",
                extra={"prefix": self.prefix, "error": str(e)},
            )
            stats["error"] = str(e)

        return stats

    def close(self) -> None:
        """Close the MongoDB client if this driver created it."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if self._client is None:
            logger.debug(f"MongoDB cache driver for namespace '{self.prefix}' closed; client left to its owner")
            return

        try:
            self._client.close()
            logger.info(f"Closed MongoDB cache driver for namespace '{self.prefix}'")
        except PyMongoError as e:
            raise BackendError("close", e, details={"prefix": self.prefix}) from e

    def with_serializer(self, name: str) -> MongoDBDriver:
        """Return a driver sharing this collection but encoding with another codec."""
        clone = copy.copy(self)
        clone.serializer = get_serializer(name)
        clone._hits = 0
        clone._misses = 0
        clone._stats_lock = threading.Lock()
        return clone
