"""
Cache Module

Multi-tier caching (ephemeral in-process + persistent Redis) with request
coalescing, debouncing and stale-while-revalidate.
"""

from .coalescer import Coalescer
from .debouncer import Debouncer
from .ephemeral import EphemeralCache, EphemeralTier
from .key_builder import CacheKeyBuilder, build_key, canonicalize
from .models import CacheEntry, PendingOperation
from .orchestrator import CacheOrchestrator, FetchOptions, FetchResult
from .persistent import PersistedEnvelope, PersistentCache
from .redis_client import RedisClient
from .revalidator import StaleRevalidator

__all__ = [
    "CacheEntry",
    "CacheKeyBuilder",
    "CacheOrchestrator",
    "Coalescer",
    "Debouncer",
    "EphemeralCache",
    "EphemeralTier",
    "FetchOptions",
    "FetchResult",
    "PendingOperation",
    "PersistedEnvelope",
    "PersistentCache",
    "RedisClient",
    "StaleRevalidator",
    "build_key",
    "canonicalize",
]
