"""
Integration Tests against a real Redis server.

Skipped unless USE_REAL_REDIS=1. Uses a dedicated key prefix so a shared
development Redis is not disturbed.
"""

import os
import uuid

import pytest
import pytest_asyncio

from callcache.core.config.constants import Category, Priority
from callcache.core.config.settings import Settings
from callcache.infrastructure.cache.persistent import PersistentCache
from callcache.infrastructure.cache.redis_client import RedisClient

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("USE_REAL_REDIS", "0").lower() not in ("1", "true", "yes"),
        reason="USE_REAL_REDIS not enabled",
    ),
]


@pytest_asyncio.fixture
async def redis_tier():
    namespace = f"callcache-test-{uuid.uuid4().hex[:8]}"
    tier = PersistentCache(
        RedisClient(Settings()),
        key_prefix=f"{namespace}:entry:",
        version_key=f"{namespace}:schema_version",
    )
    await tier.initialize()
    yield tier
    await tier.clear()
    await tier._backend.delete(f"{namespace}:schema_version")
    await tier.close()


class TestRedisPersistence:
    async def test_round_trip(self, redis_tier):
        await redis_tier.set("k", {"v": 1}, category=Category.PROFILE, priority=Priority.HIGH)

        entry = await redis_tier.get("k", Category.PROFILE)

        assert entry.value == {"v": 1}
        assert await redis_tier.entry_count() == 1

    async def test_invalidate_by_category(self, redis_tier):
        await redis_tier.set("a", 1, category=Category.PROFILE, priority=Priority.HIGH)
        await redis_tier.set("b", 2, category=Category.LISTING, priority=Priority.NORMAL)

        assert await redis_tier.invalidate("listing") == 1
        assert await redis_tier.get("a", Category.PROFILE) is not None
