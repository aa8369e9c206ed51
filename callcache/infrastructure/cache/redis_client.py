"""
Redis Backend for the Persistent Tier

Implements CacheBackend over redis.asyncio with a shared connection pool.

Architecture:
    RedisClient (CacheBackend facade)
        ├── ConnectionManager (pool, client, retried first ping)
        ├── OperationExecutor (GET / SET EX / DEL / SCAN)
        └── HealthMonitor (ping latency, pool utilisation)

The persistent tier never sees redis exceptions: every command failure is
mapped to CacheKeyError and every connection failure to CacheConnectionError.

Author: System Architect
Date: 2026-03-02
"""

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from callcache.core.config.constants import Stage
from callcache.core.config.settings import Settings, get_settings
from callcache.core.exceptions import CacheConnectionError, CacheKeyError
from callcache.core.logging.logger import get_logger, short_key

logger = get_logger(__name__)

POOL_WARNING_PCT = 80.0


# =============================================================================
# CONNECTION
# =============================================================================


class ConnectionManager:
    """
    Owns the connection pool and the client bound to it.

    The first PING after building the pool is retried with exponential
    backoff and jitter, REDIS_CONNECT_ATTEMPTS times, before connect() gives
    up. Pool size and timeouts come from the REDIS_* settings.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._connected = False

    async def _verify(self, client: redis.Redis) -> None:
        @retry(
            stop=stop_after_attempt(self._settings.redis.REDIS_CONNECT_ATTEMPTS),
            wait=wait_exponential_jitter(initial=0.1, max=2.0),
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                "Redis connect retry",
                stage=Stage.REDIS.value,
                attempt=retry_state.attempt_number,
                delay=round(retry_state.idle_for, 3),
            ),
        )
        async def _ping():
            await client.ping()

        await _ping()

    async def connect(self) -> redis.Redis:
        """
        Build the pool and verify the server answers.

        Raises:
            CacheConnectionError: When the last PING attempt fails
        """
        if self._connected and self._client is not None:
            return self._client

        cfg = self._settings.redis
        try:
            self._pool = ConnectionPool(
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
                db=cfg.REDIS_DB,
                password=cfg.REDIS_PASSWORD,
                max_connections=cfg.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=cfg.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=True,  # envelopes are JSON text
            )
            self._client = redis.Redis(connection_pool=self._pool)
            await self._verify(self._client)
        except (ConnectionError, TimeoutError) as e:
            logger.error("Redis unreachable", stage=Stage.REDIS.value, error=str(e))
            await self.disconnect()
            raise CacheConnectionError.from_exception(
                e,
                message=f"Redis unreachable at {cfg.REDIS_HOST}:{cfg.REDIS_PORT}: {e}",
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
            ) from e

        self._connected = True
        logger.info(
            "Redis backend connected",
            stage=Stage.REDIS.value,
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
        )
        return self._client

    async def disconnect(self) -> None:
        """Close the client, then drop every pooled connection."""
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()

        was_connected = self._connected
        self._client = None
        self._pool = None
        self._connected = False
        if was_connected:
            logger.info("Redis backend disconnected", stage=Stage.REDIS.value)

    async def ping(self) -> bool:
        if self._client is None or not self._connected:
            return False
        try:
            await self._client.ping()
        except (ConnectionError, TimeoutError):
            return False
        return True

    @property
    def client(self) -> redis.Redis | None:
        return self._client

    @property
    def pool(self) -> ConnectionPool | None:
        return self._pool

    @property
    def connected(self) -> bool:
        return self._connected


# =============================================================================
# COMMANDS
# =============================================================================


class OperationExecutor:
    """
    Runs the four commands the persistent tier needs.

    Any RedisError is logged with the truncated key and re-raised as
    CacheKeyError; the persistent tier turns that into a miss or a no-op.
    """

    SCAN_BATCH_SIZE = 200

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    def _fail(self, command: str, error: RedisError, **context: Any) -> CacheKeyError:
        logger.error(f"Redis {command} failed", stage=Stage.REDIS.value, error=str(error), **context)
        return CacheKeyError.from_exception(error, message=f"Redis {command} failed: {error}", **context)

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise self._fail("GET", e, key=short_key(key)) from e

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """SET with EX when ttl is given. Returns True when Redis accepted it."""
        try:
            result = await self._redis.set(key, value, ex=ttl)
        except RedisError as e:
            raise self._fail("SET", e, key=short_key(key)) from e
        return result is not None

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            raise self._fail("DEL", e, count=len(keys)) from e

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect keys matching pattern with incremental SCAN."""
        try:
            return [key async for key in self._redis.scan_iter(match=pattern, count=self.SCAN_BATCH_SIZE)]
        except RedisError as e:
            raise self._fail("SCAN", e, pattern=pattern) from e


# =============================================================================
# HEALTH
# =============================================================================


def pool_utilization(pool: ConnectionPool) -> tuple[int, float] | None:
    """(available connections, percent in use), or None if the pool hides it."""
    available_connections = getattr(pool, "_available_connections", None)
    if available_connections is None or not pool.max_connections:
        return None
    available = len(available_connections)
    in_use = pool.max_connections - available
    return available, round(100.0 * in_use / pool.max_connections, 1)


class HealthMonitor:
    """Reports reachability, ping latency and pool pressure."""

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        report: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn_mgr.connected,
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "ping_latency_ms": None,
            "pool_size": 0,
            "pool_available": 0,
            "pool_utilization_pct": 0.0,
            "pool_warning": False,
        }

        client = self._conn_mgr.client
        if client is None:
            report.update(status="unhealthy", error="not connected")
            return report

        started = time.perf_counter()
        try:
            await client.ping()
        except RedisError as e:
            report.update(status="unhealthy", error=str(e))
            return report
        report["ping_latency_ms"] = round((time.perf_counter() - started) * 1000, 2)

        pool = self._conn_mgr.pool
        if pool is None:
            return report
        report["pool_size"] = pool.max_connections

        usage = pool_utilization(pool)
        if usage is not None:
            available, pct = usage
            report.update(pool_available=available, pool_utilization_pct=pct)
            if pct > POOL_WARNING_PCT:
                report["pool_warning"] = True
                logger.warning(
                    "Redis pool nearly exhausted",
                    stage=Stage.REDIS.value,
                    pool_utilization_pct=pct,
                    max_connections=pool.max_connections,
                )
        return report


# =============================================================================
# BACKEND FACADE
# =============================================================================


class RedisClient:
    """
    CacheBackend backed by Redis.

    Usage:
        backend = RedisClient()
        await backend.connect()
        await backend.set("callcache:entry:profile:k", envelope, ttl=86400)
        envelope = await backend.get("callcache:entry:profile:k")
        await backend.disconnect()

    Commands issued before connect() raise CacheConnectionError.
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)
        self._executor: OperationExecutor | None = None

    async def connect(self) -> None:
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    def _commands(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError("Redis backend is not connected")
        return self._executor

    async def get(self, key: str) -> str | None:
        return await self._commands().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self._commands().set(key, value, ttl=ttl)

    async def delete(self, *keys: str) -> int:
        return await self._commands().delete(*keys)

    async def scan_keys(self, pattern: str) -> list[str]:
        return await self._commands().scan_keys(pattern)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
