"""
Unit Tests for RedisClient

The Redis connection is mocked; tests cover error mapping and the
CacheBackend surface the persistent tier relies on.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from callcache.core.config.settings import Settings
from callcache.core.exceptions import CacheConnectionError, CacheKeyError
from callcache.core.interfaces.cache import CacheBackend
from callcache.infrastructure.cache.redis_client import OperationExecutor, RedisClient


@pytest.fixture
def redis_mock():
    client = MagicMock()
    client.get = AsyncMock(return_value="value")
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=2)
    return client


@pytest.mark.unit
class TestOperationExecutor:
    async def test_get(self, redis_mock):
        executor = OperationExecutor(redis_mock)
        assert await executor.get("k") == "value"

    async def test_set_passes_ttl_as_ex(self, redis_mock):
        executor = OperationExecutor(redis_mock)
        await executor.set("k", "v", ttl=30)
        redis_mock.set.assert_awaited_once_with("k", "v", ex=30)

    async def test_redis_errors_become_cache_key_errors(self, redis_mock):
        redis_mock.get.side_effect = RedisError("boom")
        executor = OperationExecutor(redis_mock)
        with pytest.raises(CacheKeyError):
            await executor.get("k")

    async def test_scan_keys(self, redis_mock):
        async def scan_iter(match, count):
            for key in ("callcache:entry:a", "callcache:entry:b"):
                yield key

        redis_mock.scan_iter = scan_iter
        executor = OperationExecutor(redis_mock)
        assert await executor.scan_keys("callcache:entry:*") == ["callcache:entry:a", "callcache:entry:b"]


@pytest.mark.unit
class TestRedisClient:
    def test_implements_backend_protocol(self):
        assert isinstance(RedisClient(Settings()), CacheBackend)

    async def test_commands_before_connect_raise(self):
        client = RedisClient(Settings())
        with pytest.raises(CacheConnectionError):
            await client.get("k")

    async def test_connect_failure_maps_to_cache_connection_error(self):
        client = RedisClient(Settings(REDIS_PORT=1, REDIS_CONNECT_ATTEMPTS=1, REDIS_SOCKET_CONNECT_TIMEOUT=1))
        with pytest.raises(CacheConnectionError):
            await client.connect()
