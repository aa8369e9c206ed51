"""
Cache Backend and Tier Protocols

This module defines the abstract protocols for the durable key-value substrate
and for the cache tiers the orchestrator probes, enabling dependency injection
and testability.

Architectural Decision: Protocol-based abstraction
- Enables multiple backend implementations (Redis, In-Memory)
- Lets the orchestrator hold an ordered list of tiers with one interface
- Facilitates testing with in-memory implementations
- Type-safe interface with runtime checking

Author: System Architect
Date: 2026-03-02
"""

import fnmatch
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from callcache.core.config.constants import CacheTier, Category, Priority
    from callcache.infrastructure.cache.models import CacheEntry


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol defining the interface for durable key-value backends.

    The persistent tier stores encoded envelopes through this interface and
    never talks to Redis directly.

    Implementations:
    - RedisClient: Production Redis-backed store
    - InMemoryBackend: Development/testing in-process store

    Usage:
        async def read_marker(backend: CacheBackend) -> str | None:
            return await backend.get("callcache:schema_version")
    """

    async def connect(self) -> None:
        """
        Establish connection to the backend.

        Raises:
            CacheConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close connection to the backend."""
        ...

    async def ping(self) -> bool:
        """
        Check if backend is healthy.

        Returns:
            bool: True if healthy, False otherwise
        """
        ...

    async def get(self, key: str) -> str | None:
        """
        Get value from the backend.

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Set value in the backend.

        Args:
            key: Storage key
            value: Encoded value
            ttl: Time-to-live in seconds (optional)

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def delete(self, *keys: str) -> int:
        """
        Delete keys from the backend.

        Returns:
            int: Number of keys deleted

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def scan_keys(self, pattern: str) -> list[str]:
        """
        Enumerate keys matching a glob pattern.

        Raises:
            CacheKeyError: If operation fails
        """
        ...

    async def health_check(self) -> dict[str, Any]:
        """
        Perform comprehensive health check.

        Returns:
            Dict with health status and metrics
        """
        ...


@runtime_checkable
class CacheProvider(Protocol):
    """
    Protocol for one cache tier as seen by the orchestrator.

    Tiers are probed in list order; a hit in a later tier is promoted into
    every earlier one through promote().

    Implementations:
    - EphemeralTier: in-process map
    - PersistentCache: durable envelopes over a CacheBackend
    """

    tier: "CacheTier"

    @property
    def available(self) -> bool:
        """False when the tier cannot currently serve reads or writes."""
        ...

    async def get(self, key: str, category: "Category") -> "CacheEntry | None":
        """Return the non-expired entry for key, or None on a miss."""
        ...

    async def set(
        self,
        key: str,
        value: Any,
        *,
        category: "Category",
        priority: "Priority",
        ttl: float | None = None,
        stale_tolerance: float = 0.0,
    ) -> "CacheEntry | None":
        """Store value; ttl=None selects the tier's own category default."""
        ...

    async def promote(self, entry: "CacheEntry") -> None:
        """Store an entry found in a lower tier."""
        ...

    async def delete(self, key: str, category: "Category | None" = None) -> bool:
        """Remove one key."""
        ...

    async def invalidate(self, target: str) -> int:
        """Remove entries by exact key, key prefix or category name."""
        ...

    async def clear(self) -> int:
        """Remove every entry owned by the tier."""
        ...

    async def entry_count(self) -> int:
        """Number of stored entries."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Tier status for the admin surface."""
        ...


class InMemoryBackend:
    """
    Simple in-memory backend implementation.

    Implements the CacheBackend protocol without external dependencies.
    Useful for unit tests and for CACHE_PERSISTENT_BACKEND=memory.

    Note: This is NOT distributed and does not survive restarts.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: dict[str, str] = {}
        self._deadlines: dict[str, float] = {}
        self._clock = clock
        self._connected = False

    async def connect(self) -> None:
        """Simulate connection."""
        self._connected = True

    async def disconnect(self) -> None:
        """Simulate disconnection. Stored data is kept."""
        self._connected = False

    async def ping(self) -> bool:
        """Check if connected."""
        return self._connected

    def _purge_if_expired(self, key: str) -> None:
        deadline = self._deadlines.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._store.pop(key, None)
            self._deadlines.pop(key, None)

    async def get(self, key: str) -> str | None:
        """Get value from in-memory store."""
        self._purge_if_expired(key)
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in in-memory store."""
        self._store[key] = value
        if ttl:
            self._deadlines[key] = self._clock() + ttl
        else:
            self._deadlines.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        """Delete keys from in-memory store."""
        count = 0
        for key in keys:
            if key in self._store:
                del self._store[key]
                self._deadlines.pop(key, None)
                count += 1
        return count

    async def scan_keys(self, pattern: str) -> list[str]:
        """Enumerate keys matching a Redis-style glob pattern."""
        for key in list(self._store):
            self._purge_if_expired(key)
        return [key for key in self._store if fnmatch.fnmatchcase(key, pattern)]

    async def health_check(self) -> dict[str, Any]:
        """Health check."""
        return {
            "status": "healthy" if self._connected else "unhealthy",
            "connected": self._connected,
            "keys_count": len(self._store),
        }
