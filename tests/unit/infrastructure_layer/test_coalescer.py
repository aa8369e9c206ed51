"""
Unit Tests for Coalescer

Tests pending-operation bookkeeping: registration, stale release and
guarded release by future identity.
"""

import asyncio

import pytest

from callcache.core.config.constants import Category
from callcache.infrastructure.cache.coalescer import Coalescer


@pytest.fixture
def coalescer(clock):
    return Coalescer(max_age=30, clock=clock)


@pytest.mark.unit
class TestCoalescer:
    async def test_register_and_lookup(self, coalescer):
        future = asyncio.get_running_loop().create_future()
        coalescer.register("k", future, signature="getMyUserProfile", category=Category.PROFILE)

        pending = coalescer.lookup("k")

        assert pending.future is future
        assert pending.signature == "getMyUserProfile"
        assert coalescer.pending_count == 1
        assert "k" in coalescer

    async def test_lookup_drops_stale_operation(self, coalescer, clock):
        coalescer.register("k", asyncio.get_running_loop().create_future())
        clock.advance(30.5)

        assert "k" not in coalescer
        assert coalescer.lookup("k") is None
        assert coalescer.pending_count == 0

    async def test_release_ignores_other_future(self, coalescer):
        loop = asyncio.get_running_loop()
        old, new = loop.create_future(), loop.create_future()
        coalescer.register("k", old)
        coalescer.register("k", new)

        assert coalescer.release("k", old) is False
        assert coalescer.lookup("k").future is new
        assert coalescer.release("k", new) is True
        assert coalescer.pending_count == 0

    async def test_release_matching(self, coalescer):
        loop = asyncio.get_running_loop()
        coalescer.register("getMyUserProfile:u1:a", loop.create_future(), category=Category.PROFILE)
        coalescer.register("findDoctors:anonymous:b", loop.create_future(), category=Category.LISTING)

        released = coalescer.release_matching(lambda op: op.category is Category.PROFILE)

        assert released == 1
        assert coalescer.is_pending("findDoctors:anonymous:b")
        assert not coalescer.is_pending("getMyUserProfile:u1:a")

    async def test_sweep(self, coalescer, clock):
        loop = asyncio.get_running_loop()
        coalescer.register("old", loop.create_future())
        clock.advance(20)
        coalescer.register("young", loop.create_future())
        clock.advance(15)

        assert coalescer.sweep() == 1
        assert coalescer.is_pending("young")
