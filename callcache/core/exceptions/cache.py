"""
Cache-Related Exceptions

All exceptions related to caching operations (Redis, in-memory tiers, envelopes).
None of these reach callers of fetch(): the orchestrator degrades them to a miss.

Author: System Architect
Date: 2026-03-02
"""

from callcache.core.exceptions.base import CallCacheError


class CacheError(CallCacheError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the durable backend (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key cannot be built or a key operation fails.

    Common causes:
    - Arguments that cannot be canonicalized
    - Operation timeout
    - Memory limit exceeded on the backend
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a stored envelope cannot be decoded or a value cannot be encoded."""
    pass


class CacheCapacityError(CacheError):
    """Raised when a single item exceeds the persistent tier's per-item limit."""
    pass


class CacheVersionMismatchError(CacheError):
    """
    Raised when the stored schema version differs from the expected one.

    Handled by the persistent tier itself: all namespaced entries are purged
    and the version marker is rewritten.
    """
    pass
