"""
Cache Data Model

CacheEntry is what every tier stores and returns; PendingOperation is what the
coalescer tracks for each key with a remote call in flight.

All timestamps are seconds since the epoch as produced by the orchestrator's
clock. An entry is fresh until fresh_until, servable (stale) until
expires_at, and logically absent afterwards.

Author: System Architect
Date: 2026-03-02
"""

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Any

import orjson

from callcache.core.config.constants import Category, Priority


def estimate_size(value: Any) -> int:
    """Approximate the in-memory footprint of value by its JSON encoding length."""
    try:
        return len(orjson.dumps(value, default=str, option=orjson.OPT_NON_STR_KEYS))
    except orjson.JSONEncodeError:
        return len(repr(value))


@dataclass
class CacheEntry:
    """
    A cached value plus its lifetime metadata.

    Attributes:
        key: Cache key
        value: Cached payload
        created_at: When the value was obtained from the remote
        fresh_until: created_at + ttl
        expires_at: fresh_until + stale tolerance (hard expiry)
        category: Category the key belongs to
        priority: Eviction priority
        size_bytes: Approximate encoded size
    """

    key: str
    value: Any
    created_at: float
    fresh_until: float
    expires_at: float
    category: Category = Category.OTHER
    priority: Priority = Priority.NORMAL
    size_bytes: int = 0

    def __post_init__(self):
        if self.expires_at <= self.created_at:
            raise ValueError(
                f"expires_at ({self.expires_at}) must be later than created_at ({self.created_at})"
            )
        if self.fresh_until > self.expires_at:
            raise ValueError("fresh_until must not be later than expires_at")

    @classmethod
    def create(
        cls,
        key: str,
        value: Any,
        *,
        now: float,
        ttl: float,
        stale_tolerance: float = 0.0,
        category: Category = Category.OTHER,
        priority: Priority = Priority.NORMAL,
        size_bytes: int | None = None,
    ) -> "CacheEntry":
        fresh_until = now + ttl
        return cls(
            key=key,
            value=value,
            created_at=now,
            fresh_until=fresh_until,
            expires_at=fresh_until + max(stale_tolerance, 0.0),
            category=category,
            priority=priority,
            size_bytes=estimate_size(value) if size_bytes is None else size_bytes,
        )

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def is_fresh(self, now: float) -> bool:
        return now <= self.fresh_until

    def age(self, now: float) -> float:
        return now - self.created_at

    def clamped(self, fresh_until: float, expires_at: float) -> "CacheEntry":
        """
        Copy of this entry whose lifetime does not exceed the given bounds.

        Used on promotion: an entry moving into a shorter-lived tier keeps its
        created_at but can never outlive that tier's own lifetime.
        """
        new_fresh = min(self.fresh_until, fresh_until)
        new_expiry = max(min(self.expires_at, expires_at), new_fresh)
        if new_fresh == self.fresh_until and new_expiry == self.expires_at:
            return self
        return dataclasses.replace(self, fresh_until=new_fresh, expires_at=new_expiry)


@dataclass
class PendingOperation:
    """
    An in-flight remote call shared by every caller of the same key.

    Attributes:
        key: Cache key
        future: Task resolving to the remote result
        started_at: When the call was launched
        expires_at: started_at + maximum pending age
        signature: Operation name that launched the call
        category: Category the result will be cached under
    """

    key: str
    future: asyncio.Future
    started_at: float
    expires_at: float
    signature: str = ""
    category: Category | None = None

    def is_stale(self, now: float) -> bool:
        return now > self.expires_at
