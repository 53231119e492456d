"""
cachefront - Test Configuration and Shared Fixtures

Provides pytest configuration and shared fixtures for unit and integration tests,
including in-memory stand-ins for the redis command executor and a mongodb database.
"""

import os
import re
from collections.abc import Generator
from typing import Any

import pytest
from pymongo import ReplaceOne
from pymongo.errors import ServerSelectionTimeoutError
from pymongo.results import DeleteResult
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from cachefront.config import (
    DriverFileConfig,
    DriverMemoryConfig,
    DriverMongodbConfig,
    DriverRedisConfig,
    reset_config,
)


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a SCAN MATCH glob (with backslash escapes) into a regex."""
    parts: list[str] = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


class FakePipeline:
    """Buffers SET commands until execute(), like a non-transactional pipeline."""

    def __init__(self, client: "FakeRedis") -> None:
        self._client = client
        self._commands: list[tuple[str, bytes, int | None]] = []

    def set(self, name: str, value: bytes, ex: int | None = None) -> "FakePipeline":
        self._commands.append((name, value, ex))
        return self

    def execute(self) -> list[bool]:
        self._client._check("pipeline")
        self._client.calls.append(("pipeline", len(self._commands)))
        results = []
        for name, value, ex in self._commands:
            self._client._store[name] = value
            self._client.ttls[name] = ex
            results.append(True)
        self._commands = []
        return results


class FakeRedis:
    """
    Dict-backed stand-in for redis.Redis (decode_responses=False).

    Supports the commands the redis driver issues. Add a command name to
    ``fail_on`` to make it raise redis.exceptions.ConnectionError.
    """

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, Any]] = []
        self.close_calls = 0
        self._cursors: dict[int, str] = {}
        self._next_cursor = 0

    def _check(self, command: str) -> None:
        if command in self.fail_on:
            raise RedisConnectionError(f"Error 111 connecting to localhost:6379. Connection refused ({command}).")

    def ping(self) -> bool:
        self._check("ping")
        return True

    def get(self, name: str) -> bytes | None:
        self._check("get")
        self.calls.append(("get", name))
        return self._store.get(name)

    def set(self, name: str, value: bytes, ex: int | None = None) -> bool:
        self._check("set")
        self.calls.append(("set", name))
        self._store[name] = value
        self.ttls[name] = ex
        return True

    def exists(self, *names: str) -> int:
        self._check("exists")
        return sum(1 for name in names if name in self._store)

    def delete(self, *names: str | bytes) -> int:
        self._check("delete")
        self.calls.append(("delete", len(names)))
        removed = 0
        for name in names:
            key = name.decode("utf-8") if isinstance(name, bytes) else name
            if self._store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    def mget(self, keys: list[str]) -> list[bytes | None]:
        self._check("mget")
        self.calls.append(("mget", list(keys)))
        return [self._store.get(k) for k in keys]

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    def scan(self, cursor: int = 0, match: str | None = None, count: int | None = None) -> tuple[int, list[bytes]]:
        self._check("scan")
        # Cursors remember the last key returned, so deletes between calls
        # never make the walk skip surviving keys
        regex = _pattern_to_regex(match) if match else None
        last = self._cursors.pop(int(cursor), None) if cursor else None
        keys = sorted(k for k in self._store if (regex is None or regex.match(k)) and (last is None or k > last))
        batch = keys[: count or 10]
        next_cursor = 0
        if len(keys) > len(batch):
            self._next_cursor += 1
            next_cursor = self._next_cursor
            self._cursors[next_cursor] = batch[-1]
        return next_cursor, [k.encode("utf-8") for k in batch]

    def info(self) -> dict[str, Any]:
        self._check("info")
        return {"redis_version": "7.2.0", "used_memory_human": "1.00M"}

    def close(self) -> None:
        self._check("close")
        self.close_calls += 1

    # Test helpers
    def raw_keys(self) -> list[str]:
        return sorted(self._store)


def _mongo_matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    """Evaluate the query operators the mongodb driver issues against one document."""
    for field, cond in query.items():
        if field == "$or":
            if not any(_mongo_matches(doc, sub) for sub in cond):
                return False
            continue
        value = doc.get(field)
        if not isinstance(cond, dict):
            if value != cond:
                return False
            continue
        for op, arg in cond.items():
            if op == "$in" and value not in arg:
                return False
            if op == "$gt" and (value is None or not value > arg):
                return False
            if op == "$regex" and (not isinstance(value, str) or re.search(arg, value) is None):
                return False
    return True


class FakeMongoCollection:
    """
    Dict-backed stand-in for pymongo.collection.Collection.

    Add a method name to ``fail_on`` to make it raise
    pymongo.errors.ServerSelectionTimeoutError.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._docs: dict[str, dict[str, Any]] = {}
        self.indexes: list[tuple[str, dict[str, Any]]] = []
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, Any]] = []

    def _check(self, method: str) -> None:
        if method in self.fail_on:
            raise ServerSelectionTimeoutError(f"localhost:27017: [Errno 111] Connection refused ({method})")

    def create_index(self, key: str, **kwargs: Any) -> str:
        self._check("create_index")
        self.indexes.append((key, kwargs))
        return f"{key}_1"

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        self._check("find_one")
        self.calls.append(("find_one", query))
        return next((dict(d) for d in self._docs.values() if _mongo_matches(d, query)), None)

    def find(self, query: dict[str, Any], projection: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        self._check("find")
        self.calls.append(("find", query))
        docs = [d for _, d in sorted(self._docs.items()) if _mongo_matches(d, query)]
        if projection:
            return [{k: v for k, v in d.items() if k in projection or k == "_id"} for d in docs]
        return [dict(d) for d in docs]

    def count_documents(self, query: dict[str, Any], limit: int | None = None) -> int:
        self._check("count_documents")
        count = sum(1 for d in self._docs.values() if _mongo_matches(d, query))
        return min(count, limit) if limit else count

    def replace_one(self, query: dict[str, Any], doc: dict[str, Any], upsert: bool = False) -> None:
        self._check("replace_one")
        self.calls.append(("replace_one", query["_id"]))
        self._docs[query["_id"]] = dict(doc)

    def bulk_write(self, requests: list[ReplaceOne], ordered: bool = True) -> None:
        self._check("bulk_write")
        self.calls.append(("bulk_write", len(requests)))
        for request in requests:
            self._docs[request._filter["_id"]] = dict(request._doc)

    def delete_one(self, query: dict[str, Any]) -> DeleteResult:
        self._check("delete_one")
        removed = self._docs.pop(query["_id"], None)
        return DeleteResult({"n": int(removed is not None)}, acknowledged=True)

    def delete_many(self, query: dict[str, Any]) -> DeleteResult:
        self._check("delete_many")
        self.calls.append(("delete_many", query))
        doomed = [key for key, d in self._docs.items() if _mongo_matches(d, query)]
        for key in doomed:
            del self._docs[key]
        return DeleteResult({"n": len(doomed)}, acknowledged=True)

    # Test helpers
    def raw_ids(self) -> list[str]:
        return sorted(self._docs)


class FakeMongoDatabase:
    """Stand-in for pymongo.database.Database holding fake collections."""

    def __init__(self, name: str = "cache") -> None:
        self.name = name
        self.collections: dict[str, FakeMongoCollection] = {}
        self.fail_on: set[str] = set()

    def __getitem__(self, name: str) -> FakeMongoCollection:
        return self.collections.setdefault(name, FakeMongoCollection(name))

    def command(self, command: str) -> dict[str, Any]:
        if command in self.fail_on:
            raise ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")
        return {"ok": 1.0}


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Fresh fake redis command executor."""
    return FakeRedis()


@pytest.fixture
def redis_config() -> DriverRedisConfig:
    return DriverRedisConfig(enabled=True, scan_batch_size=2)


@pytest.fixture
def fake_mongo_database() -> FakeMongoDatabase:
    """Fresh fake mongodb database."""
    return FakeMongoDatabase()


@pytest.fixture
def mongodb_config() -> DriverMongodbConfig:
    return DriverMongodbConfig(enabled=True)


@pytest.fixture
def memory_config() -> DriverMemoryConfig:
    return DriverMemoryConfig(enabled=True, max_size=100)


@pytest.fixture
def file_config(tmp_path: Any) -> DriverFileConfig:
    return DriverFileConfig(enabled=True, path=str(tmp_path / "cache"))


@pytest.fixture
def test_redis_url() -> str:
    """Get Redis URL for testing (database 15 for isolation)."""
    return os.environ.get("TEST_REDIS_URL", "redis://localhost:6379/15")


@pytest.fixture
def redis_client(test_redis_url: str) -> Generator[Redis, None, None]:
    """
    Create a real Redis client for integration tests.

    Automatically skips tests if Redis is not available.
    Clears the test database before and after each test.
    """
    client: Redis = Redis.from_url(test_redis_url, decode_responses=False)

    try:
        client.ping()
    except Exception as e:
        client.close()
        pytest.skip(f"Redis not available for testing: {e}")

    client.flushdb()
    yield client

    try:
        client.flushdb()
    finally:
        client.close()


@pytest.fixture
def sample_cache_data() -> dict[str, Any]:
    """Sample data for cache testing."""
    return {
        "simple_string": "hello",
        "simple_int": 42,
        "simple_float": 3.14,
        "simple_bool": True,
        "simple_none": None,
        "complex_dict": {
            "nested": {
                "key": "value",
                "number": 123,
                "list": [1, 2, 3],
            }
        },
        "complex_list": [
            {"id": 1, "name": "Alice"},
            {"id": 2, "name": "Bob"},
        ],
    }


_CACHE_ENV_VARS = (
    "CACHE_DEFAULT_DRIVER",
    "CACHE_LOG_LEVEL",
    "CACHE_PREFIX",
    "CACHE_MEMORY_ENABLED",
    "CACHE_MEMORY_TTL",
    "CACHE_MEMORY_SERIALIZER",
    "CACHE_MEMORY_MAX_SIZE",
    "CACHE_FILE_ENABLED",
    "CACHE_FILE_PATH",
    "CACHE_FILE_TTL",
    "CACHE_FILE_SERIALIZER",
    "CACHE_REDIS_ENABLED",
    "CACHE_REDIS_TTL",
    "CACHE_REDIS_SERIALIZER",
    "REDIS_URL",
    "REDIS_MAX_CONNECTIONS",
    "REDIS_SOCKET_TIMEOUT",
    "CACHE_MONGODB_ENABLED",
    "CACHE_MONGODB_DATABASE",
    "CACHE_MONGODB_COLLECTION",
    "CACHE_MONGODB_TTL",
    "CACHE_MONGODB_SERIALIZER",
    "MONGODB_URL",
    "MONGODB_SERVER_SELECTION_TIMEOUT_MS",
)


@pytest.fixture(autouse=True)
def clean_cache_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate every test from ambient cache settings and the config singleton."""
    for name in _CACHE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
