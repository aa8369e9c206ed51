"""
Ephemeral Cache Tier

In-process map with per-entry lifetimes and priority-aware eviction.

STAGE-2.1: Ephemeral lookup

Implementation Details:
- All operations are synchronous: nothing here ever awaits, so a set() and
  the eviction it triggers cannot interleave with another coroutine
- Lazy expiry: an entry past expires_at is removed when it is next read
- Capacity is bounded by entry count and by approximate encoded size; a set()
  that crosses either ceiling evicts down to EVICTION_TARGET_RATIO of both
- Eviction order: lowest priority first, then soonest expires_at
- The key just written and keys pinned by an in-flight remote call are
  never evicted

EphemeralTier adapts EphemeralCache to the async CacheProvider interface the
orchestrator probes.

Author: System Architect
Date: 2026-03-02
"""

import math
import time
from collections.abc import Callable
from typing import Any

from callcache.core.config.constants import (
    EPHEMERAL_MAX_ENTRIES,
    EPHEMERAL_MAX_SIZE_BYTES,
    EPHEMERAL_TTL,
    EVICTION_TARGET_RATIO,
    CacheTier,
    Category,
    Priority,
    Stage,
)
from callcache.core.logging.logger import get_logger, log_stage, short_key
from callcache.infrastructure.cache.models import CacheEntry

logger = get_logger(__name__)


def matches_target(entry: CacheEntry, target: str) -> bool:
    """True if target names the entry's category, its exact key or a prefix of it."""
    return entry.category.value == target or entry.key.startswith(target)


class EphemeralCache:
    """
    Bounded in-memory cache.

    Usage:
        cache = EphemeralCache(max_entries=750)
        cache.set("k", {"a": 1}, ttl=60, category=Category.PROFILE)
        cache.get("k")  # {"a": 1}
    """

    def __init__(
        self,
        max_entries: int = EPHEMERAL_MAX_ENTRIES,
        max_size_bytes: int = EPHEMERAL_MAX_SIZE_BYTES,
        target_ratio: float = EVICTION_TARGET_RATIO,
        clock: Callable[[], float] = time.time,
        is_pinned: Callable[[str], bool] | None = None,
    ):
        """
        Initialize the ephemeral cache.

        Args:
            max_entries: Entry count ceiling
            max_size_bytes: Total approximate size ceiling
            target_ratio: Fraction of each ceiling eviction brings usage down to
            clock: Time source in seconds
            is_pinned: Returns True for keys that must not be evicted
        """
        self._entries: dict[str, CacheEntry] = {}
        self._size_bytes = 0
        self._max_entries = max_entries
        self._max_size_bytes = max_size_bytes
        self._target_entries = math.floor(max_entries * target_ratio)
        self._target_size_bytes = math.floor(max_size_bytes * target_ratio)
        self._clock = clock
        self._is_pinned = is_pinned or (lambda key: False)
        self._on_evict: Callable[[int], None] | None = None

        self.evictions = 0

    def set_pin_check(self, is_pinned: Callable[[str], bool]) -> None:
        self._is_pinned = is_pinned

    def set_eviction_listener(self, listener: Callable[[int], None]) -> None:
        self._on_evict = listener

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._remove(key)
            return None
        return entry

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def __contains__(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set(
        self,
        key: str,
        value: Any,
        ttl: float,
        category: Category = Category.OTHER,
        priority: Priority = Priority.NORMAL,
        stale_tolerance: float = 0.0,
    ) -> CacheEntry:
        """
        Store value under key for ttl seconds (plus stale_tolerance).

        Raises:
            ValueError: If ttl is not positive
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        entry = CacheEntry.create(
            key,
            value,
            now=self._clock(),
            ttl=ttl,
            stale_tolerance=stale_tolerance,
            category=category,
            priority=priority,
        )
        return self.put(entry)

    def put(self, entry: CacheEntry) -> CacheEntry:
        """Store a pre-built entry, evicting others if a ceiling is crossed."""
        self._remove(entry.key)
        self._entries[entry.key] = entry
        self._size_bytes += entry.size_bytes

        if len(self._entries) > self._max_entries or self._size_bytes > self._max_size_bytes:
            self._shrink(exempt=entry.key)

        return entry

    def delete(self, key: str) -> bool:
        return self._remove(key) is not None

    def invalidate(self, target: str) -> int:
        """Remove entries matching a category name, exact key or key prefix."""
        doomed = [key for key, entry in self._entries.items() if matches_target(entry, target)]
        for key in doomed:
            self._remove(key)
        return len(doomed)

    def prune_expired(self) -> int:
        now = self._clock()
        doomed = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in doomed:
            self._remove(key)
        return len(doomed)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._size_bytes = 0
        return count

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def _candidates(self, exempt: str | None = None) -> list[CacheEntry]:
        candidates = [
            entry
            for key, entry in self._entries.items()
            if key != exempt and not self._is_pinned(key)
        ]
        candidates.sort(key=lambda entry: (entry.priority.rank, entry.expires_at))
        return candidates

    def evict(self, count: int) -> int:
        """
        Remove up to count entries in eviction order.

        Returns:
            Number of entries removed
        """
        if count <= 0:
            return 0
        victims = self._candidates()[:count]
        for entry in victims:
            self._remove(entry.key)
        self._record_evictions(len(victims))
        return len(victims)

    def _shrink(self, exempt: str) -> None:
        """
        Evict until both ceilings are back under their target ratio.

        Expired entries go first regardless of priority.
        """
        now = self._clock()
        removed = 0
        for key in [k for k, e in self._entries.items() if k != exempt and e.is_expired(now)]:
            self._remove(key)
            removed += 1

        for entry in self._candidates(exempt=exempt):
            if len(self._entries) <= self._target_entries and self._size_bytes <= self._target_size_bytes:
                break
            self._remove(entry.key)
            removed += 1

        if len(self._entries) > self._max_entries or self._size_bytes > self._max_size_bytes:
            log_stage(
                logger,
                Stage.EVICTION,
                "Ephemeral tier still over capacity after eviction",
                level="warning",
                entries=len(self._entries),
                size_bytes=self._size_bytes,
            )

        self._record_evictions(removed)

    def _record_evictions(self, count: int) -> None:
        if count <= 0:
            return
        self.evictions += count
        log_stage(
            logger,
            Stage.EVICTION,
            "Ephemeral entries evicted",
            level="debug",
            evicted=count,
            remaining=len(self._entries),
        )
        if self._on_evict is not None:
            self._on_evict(count)

    def _remove(self, key: str) -> CacheEntry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._size_bytes -= entry.size_bytes
        return entry

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "size_bytes": self._size_bytes,
            "max_size_bytes": self._max_size_bytes,
            "evictions": self.evictions,
            "capacity_utilization": round(len(self._entries) / self._max_entries * 100, 2),
        }


class EphemeralTier:
    """
    CacheProvider adapter over an EphemeralCache.

    ttl=None selects the ephemeral default for the category.
    """

    tier = CacheTier.EPHEMERAL

    def __init__(
        self,
        cache: EphemeralCache,
        default_ttls: dict[Category, float] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self._default_ttls = default_ttls or EPHEMERAL_TTL
        self._clock = clock

    @property
    def available(self) -> bool:
        return True

    def default_ttl(self, category: Category) -> float:
        return self._default_ttls[category]

    async def get(self, key: str, category: Category) -> CacheEntry | None:
        entry = self.cache.get_entry(key)
        if entry is not None:
            log_stage(logger, Stage.EPHEMERAL_LOOKUP, "Ephemeral hit", level="debug", key=short_key(key))
        return entry

    async def set(
        self,
        key: str,
        value: Any,
        *,
        category: Category,
        priority: Priority,
        ttl: float | None = None,
        stale_tolerance: float = 0.0,
    ) -> CacheEntry | None:
        return self.cache.set(
            key,
            value,
            ttl=ttl if ttl is not None else self.default_ttl(category),
            category=category,
            priority=priority,
            stale_tolerance=stale_tolerance,
        )

    async def promote(self, entry: CacheEntry) -> None:
        """
        Copy a lower-tier entry in, capped at this tier's own lifetime.

        The cap is measured from now, not from created_at, so a durable entry
        that is still fresh stays servable here for at most one ephemeral TTL.
        """
        now = self._clock()
        tolerance = entry.expires_at - entry.fresh_until
        fresh_cap = now + self.default_ttl(entry.category)
        promoted = entry.clamped(fresh_until=fresh_cap, expires_at=fresh_cap + tolerance)
        if promoted.expires_at <= now:
            return
        self.cache.put(promoted)

    async def delete(self, key: str, category: Category | None = None) -> bool:
        return self.cache.delete(key)

    async def invalidate(self, target: str) -> int:
        return self.cache.invalidate(target)

    async def clear(self) -> int:
        return self.cache.clear()

    async def entry_count(self) -> int:
        return len(self.cache)

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy", **self.cache.stats()}
