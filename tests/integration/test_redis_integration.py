"""
cachefront - Redis Driver Integration Tests

Runs the redis driver against a real server (TEST_REDIS_URL, database 15 by
default). Requires Redis server running on localhost:6379.
"""

import time
from collections.abc import Generator
from typing import Any

import pytest
from redis import Redis

from cachefront.cache.drivers.redis import RedisDriver
from cachefront.config import DriverRedisConfig
from cachefront.errors import BackendError

# Check if Redis is available
try:
    import socket

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    redis_available = sock.connect_ex(("localhost", 6379)) == 0
    sock.close()
except OSError:
    redis_available = False

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not redis_available, reason="Redis server not available"),
]


class TestRedisDriverIntegration:
    """RedisDriver against a live server."""

    @pytest.fixture
    def cache(self, redis_client: Redis, test_redis_url: str) -> Generator[RedisDriver, None, None]:
        config = DriverRedisConfig(enabled=True, url=test_redis_url, prefix="test:", scan_batch_size=10)
        cache = RedisDriver.from_config(config)
        yield cache
        cache.close()

    def test_round_trip(self, cache: RedisDriver, sample_cache_data: dict[str, Any]) -> None:
        for key, value in sample_cache_data.items():
            cache.set(key, value)

        found, missing = cache.get_multiple(list(sample_cache_data))

        assert found == sample_cache_data
        assert missing == []

    @pytest.mark.parametrize("serializer", ["json", "msgpack", "pickle"])
    def test_codecs(self, cache: RedisDriver, serializer: str) -> None:
        codec_cache = cache.with_serializer(serializer)
        codec_cache.set("nested", {"list": [1, 2, {"deep": True}], "none": None})

        assert codec_cache.get("nested") == {"list": [1, 2, {"deep": True}], "none": None}

    def test_ttl_applied(self, cache: RedisDriver, redis_client: Redis) -> None:
        cache.set("expiring", "value", ttl=100)
        cache.set("pinned", "value", ttl=0)

        assert 0 < redis_client.ttl("test:expiring") <= 100
        assert redis_client.ttl("test:pinned") == -1

    def test_key_expires(self, cache: RedisDriver) -> None:
        cache.set("blink", "value", ttl=1)
        time.sleep(1.5)

        assert cache.get("blink") is None
        assert cache.has("blink") is False

    def test_flush_keeps_foreign_keys(self, cache: RedisDriver, redis_client: Redis) -> None:
        cache.set_multiple({f"k{i}": i for i in range(35)})
        redis_client.set("foreign:key", b"keep")

        cache.flush()

        assert cache.stats()["count"] == 0
        assert redis_client.get("foreign:key") == b"keep"

    def test_stats_include_server_info(self, cache: RedisDriver) -> None:
        cache.set("a", 1)

        stats = cache.stats()

        assert stats["count"] == 1
        assert "redis_version" in stats["info"]

    def test_unreachable_server(self) -> None:
        config = DriverRedisConfig(enabled=True, url="redis://localhost:1/0", socket_timeout=1)

        with pytest.raises(BackendError):
            RedisDriver.from_config(config)
