"""
Unit Tests for PersistentCache

Tests the envelope layout, schema version reconciliation, capacity limits,
pruning and degradation to misses when the backend misbehaves.
"""

import orjson
import pytest
import pytest_asyncio
from pydantic import BaseModel

from callcache.core.config.constants import (
    CACHE_SCHEMA_VERSION,
    PERSISTENT_TTL,
    REDIS_KEY_SCHEMA_VERSION,
    Category,
    Priority,
)
from callcache.infrastructure.cache.persistent import PersistentCache
from tests.test_fixtures import CacheTestFactory
from tests.test_fixtures.cache_factory import FlakyBackend, UnreachableBackend


@pytest_asyncio.fixture
async def tier(backend, clock):
    persistent = PersistentCache(backend, clock=clock)
    await persistent.initialize()
    return persistent


@pytest.mark.unit
class TestInitialization:
    """Schema version marker handling."""

    async def test_writes_marker_on_empty_backend(self, backend, clock):
        persistent = PersistentCache(backend, clock=clock)
        await persistent.initialize()

        assert persistent.available
        assert await backend.get(REDIS_KEY_SCHEMA_VERSION) == CACHE_SCHEMA_VERSION

    async def test_version_mismatch_purges_namespace(self, backend, clock):
        await backend.set(REDIS_KEY_SCHEMA_VERSION, "0.9.0")
        await backend.set("callcache:entry:profile:getMyUserProfile:u1:abc", "{}")
        await backend.set("unrelated:key", "keep")

        persistent = PersistentCache(backend, clock=clock)
        await persistent.initialize()

        assert await backend.get("callcache:entry:profile:getMyUserProfile:u1:abc") is None
        assert await backend.get("unrelated:key") == "keep"
        assert await backend.get(REDIS_KEY_SCHEMA_VERSION) == CACHE_SCHEMA_VERSION

    async def test_matching_version_keeps_entries(self, backend, clock):
        first = PersistentCache(backend, clock=clock)
        await first.initialize()
        await first.set("k", {"v": 1}, category=Category.PROFILE, priority=Priority.HIGH)

        second = PersistentCache(backend, clock=clock)
        await second.initialize()

        entry = await second.get("k", Category.PROFILE)
        assert entry.value == {"v": 1}

    async def test_matching_version_prunes_unreadable_entries(self, backend, clock):
        await backend.set(REDIS_KEY_SCHEMA_VERSION, CACHE_SCHEMA_VERSION)
        await backend.set("callcache:entry:profile:broken", "not-json")

        persistent = PersistentCache(backend, clock=clock)
        await persistent.initialize()

        assert await backend.get("callcache:entry:profile:broken") is None

    async def test_unreachable_backend_marks_tier_unavailable(self, clock):
        persistent = PersistentCache(UnreachableBackend(clock=clock), clock=clock)
        await persistent.initialize()

        assert not persistent.available
        assert await persistent.get("k", Category.PROFILE) is None
        assert await persistent.set("k", 1, category=Category.PROFILE, priority=Priority.HIGH) is None
        assert (await persistent.health_check())["status"] == "unavailable"

    async def test_no_backend_is_disabled(self, clock):
        persistent = PersistentCache(None, clock=clock)
        await persistent.initialize()

        assert not persistent.available
        assert (await persistent.health_check())["status"] == "disabled"


@pytest.mark.unit
class TestReadWrite:
    """Envelope round trips and expiry."""

    async def test_set_uses_category_default_ttl(self, tier, clock):
        entry = await tier.set("k", {"v": 1}, category=Category.LISTING, priority=Priority.NORMAL)
        assert entry.fresh_until == clock() + PERSISTENT_TTL[Category.LISTING]
        assert entry.size_bytes > 0

    async def test_envelope_layout(self, tier, backend):
        await tier.set("k", {"v": 1}, category=Category.PROFILE, priority=Priority.HIGH, ttl=60)

        envelope = orjson.loads(await backend.get("callcache:entry:profile:k"))

        assert envelope["data"] == {"v": 1}
        assert envelope["category"] == "profile"
        assert envelope["priority"] == "high"
        assert envelope["schema_version"] == CACHE_SCHEMA_VERSION
        assert envelope["fresh_until"] - envelope["created_at"] == 60

    async def test_get_returns_entry_metadata(self, tier):
        await tier.set("k", [1, 2], category=Category.MESSAGE, priority=Priority.LOW, ttl=30, stale_tolerance=15)

        entry = await tier.get("k", Category.MESSAGE)

        assert entry.value == [1, 2]
        assert entry.category is Category.MESSAGE
        assert entry.priority is Priority.LOW
        assert entry.expires_at == entry.fresh_until + 15

    async def test_category_is_part_of_storage_key(self, tier):
        await tier.set("k", 1, category=Category.PROFILE, priority=Priority.HIGH)
        assert await tier.get("k", Category.LISTING) is None

    async def test_expired_entry_is_a_miss(self, tier, clock):
        await tier.set("k", 1, category=Category.PROFILE, priority=Priority.HIGH, ttl=10)
        clock.advance(11)
        assert await tier.get("k", Category.PROFILE) is None

    async def test_corrupt_envelope_is_dropped(self, tier, backend):
        storage_key = tier.storage_key("k", Category.PROFILE)
        await backend.set(storage_key, "{not json")

        assert await tier.get("k", Category.PROFILE) is None
        assert await backend.get(storage_key) is None

    async def test_wrong_version_envelope_is_dropped(self, tier, backend, clock):
        storage_key = tier.storage_key("k", Category.PROFILE)
        envelope = {
            "data": 1,
            "created_at": clock(),
            "fresh_until": clock() + 60,
            "expires_at": clock() + 60,
            "category": "profile",
            "priority": "high",
            "schema_version": "0.1.0",
        }
        await backend.set(storage_key, orjson.dumps(envelope).decode())

        assert await tier.get("k", Category.PROFILE) is None
        assert await backend.get(storage_key) is None

    async def test_pydantic_values_are_persisted_as_mappings(self, tier):
        class Doctor(BaseModel):
            id: str
            name: str

        await tier.set("k", Doctor(id="d1", name="Rao"), category=Category.LISTING, priority=Priority.NORMAL)

        entry = await tier.get("k", Category.LISTING)
        assert entry.value == {"id": "d1", "name": "Rao"}

    async def test_unserializable_value_is_skipped(self, tier):
        assert await tier.set("k", object(), category=Category.OTHER, priority=Priority.LOW) is None
        assert await tier.entry_count() == 0

    async def test_backend_failures_degrade_to_miss(self, clock):
        backend = FlakyBackend(clock=clock)
        persistent = PersistentCache(backend, clock=clock)
        await persistent.initialize()
        await persistent.set("k", 1, category=Category.PROFILE, priority=Priority.HIGH)

        backend.broken = True

        assert await persistent.get("k", Category.PROFILE) is None
        assert await persistent.set("j", 2, category=Category.PROFILE, priority=Priority.HIGH) is None


@pytest.mark.unit
class TestCapacity:
    """Per-item limit and pruning."""

    async def test_oversized_item_rejected(self, backend, clock):
        persistent = PersistentCache(backend, capacity_bytes=1000, max_item_fraction=0.25, clock=clock)
        await persistent.initialize()

        stored = await persistent.set("big", "x" * 500, category=Category.OTHER, priority=Priority.LOW)

        assert stored is None
        assert persistent.capacity_rejections == 1
        assert await persistent.entry_count() == 0

    async def test_threshold_itself_does_not_prune(self, backend, clock):
        persistent = PersistentCache(backend, prune_threshold=5, prune_ratio=0.2, clock=clock)
        await persistent.initialize()
        for i in range(6):
            await persistent.set(f"k{i}", i, category=Category.OTHER, priority=Priority.LOW)
            clock.advance(1)

        assert await persistent.entry_count() == 6
        assert (await persistent.get("k0", Category.OTHER)).value == 0

    async def test_prunes_oldest_once_threshold_exceeded(self, backend, clock):
        persistent = PersistentCache(backend, prune_threshold=5, prune_ratio=0.2, clock=clock)
        await persistent.initialize()
        for i in range(6):
            await persistent.set(f"k{i}", i, category=Category.OTHER, priority=Priority.LOW)
            clock.advance(1)

        await persistent.set("k6", 6, category=Category.OTHER, priority=Priority.LOW)

        # ceil(6 * 0.2) = 2 oldest removed before k6 lands
        assert await persistent.entry_count() == 5
        assert await persistent.get("k0", Category.OTHER) is None
        assert await persistent.get("k1", Category.OTHER) is None
        assert (await persistent.get("k2", Category.OTHER)).value == 2
        assert (await persistent.get("k6", Category.OTHER)).value == 6


@pytest.mark.unit
class TestRemoval:
    async def test_invalidate_by_category_and_prefix(self, tier):
        await tier.set("getMyUserProfile:u1:a", 1, category=Category.PROFILE, priority=Priority.HIGH)
        await tier.set("findDoctors:anonymous:b", 2, category=Category.LISTING, priority=Priority.NORMAL)
        await tier.set("getAvailableSlots:anonymous:c", 3, category=Category.AVAILABILITY, priority=Priority.NORMAL)

        assert await tier.invalidate("profile") == 1
        assert await tier.invalidate("findDoctors") == 1
        assert await tier.entry_count() == 1

    async def test_delete_without_category(self, tier):
        await tier.set("k", 1, category=Category.PROFILE, priority=Priority.HIGH)
        assert await tier.delete("k") is True
        assert await tier.get("k", Category.PROFILE) is None

    async def test_clear_keeps_version_marker(self, tier, backend):
        await tier.set("a", 1, category=Category.PROFILE, priority=Priority.HIGH)
        await tier.set("b", 2, category=Category.OTHER, priority=Priority.LOW)

        assert await tier.clear() == 2
        assert await backend.get(REDIS_KEY_SCHEMA_VERSION) == CACHE_SCHEMA_VERSION

    async def test_promote_caps_at_persistent_ttl(self, tier, clock):
        entry = CacheTestFactory.entry("k", now=clock(), ttl=10 * PERSISTENT_TTL[Category.PROFILE])
        await tier.promote(entry)

        stored = await tier.get("k", Category.PROFILE)
        assert stored.fresh_until == clock() + PERSISTENT_TTL[Category.PROFILE]
