"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the call cache engine.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for TTLs, capacities and key prefixes
- Type-safe enums for categories, priorities and fetch states
- Easy to update and track changes

All durations are in seconds.

Author: System Architect
Date: 2026-03-02
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Fetch processing stages for structured logging.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: Numeric order (0.0, 1.0, 2.1) or alphabetic prefix (EV, PC)
    - DESCRIPTIVE_NAME: Clear, uppercase description with underscores

    Examples:
        stage="2.1_EPHEMERAL_LOOKUP"
        stage="EV_EVICTION"
    """

    # Main fetch lifecycle (Sequential 0.0 - 6.0)
    INITIALIZATION = "0.0_INITIALIZATION"
    KEY_BUILD = "1.0_KEY_BUILD"
    EPHEMERAL_LOOKUP = "2.1_EPHEMERAL_LOOKUP"
    PERSISTENT_LOOKUP = "2.2_PERSISTENT_LOOKUP"
    COALESCING = "3.0_COALESCING"
    DEBOUNCE = "3.1_DEBOUNCE"
    REMOTE_CALL = "4.0_REMOTE_CALL"
    WRITE_BACK = "5.0_WRITE_BACK"
    SHUTDOWN = "6.0_SHUTDOWN"

    # Cross-cutting concerns (Alphabetic Prefixes)
    REVALIDATION = "SWR_REVALIDATION"
    EVICTION = "EV_EVICTION"
    INVALIDATION = "INV_INVALIDATION"
    PERSISTENT_CACHE = "PC_PERSISTENT_CACHE"
    MAINTENANCE = "MT_MAINTENANCE"
    REDIS = "REDIS"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache tiers, probed in this order.

    EPHEMERAL: In-process map (fastest, lost on restart)
    PERSISTENT: Durable key-value store (survives restarts)
    """

    EPHEMERAL = "ephemeral"
    PERSISTENT = "persistent"


# ============================================================================
# Categories and Priorities
# ============================================================================


class Category(str, Enum):
    """
    Grouping of cache keys that share TTL and eviction defaults.

    Every cache key belongs to exactly one category.
    """

    PROFILE = "profile"
    LISTING = "listing"
    AVAILABILITY = "availability"
    MESSAGE = "message"
    OTHER = "other"


class Priority(str, Enum):
    """Eviction priority. Lower ranks are evicted first."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {Priority.LOW: 0, Priority.NORMAL: 1, Priority.HIGH: 2}


# ============================================================================
# Freshness and Fetch States
# ============================================================================


class Freshness(str, Enum):
    """
    Stale-while-revalidate classification of a cache entry.

    FRESH: now <= fresh_until
    STALE: fresh_until < now <= fresh_until + stale tolerance
    EXPIRED: beyond the tolerance window (treated as a miss)
    """

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"


class FetchState(str, Enum):
    """
    Orchestrator state machine.

    IDLE → KEY_BUILT → {FRESH_HIT, STALE_HIT, COALESCED, DEBOUNCED,
    MISS → IN_FLIGHT → SETTLED_SUCCESS | SETTLED_FAILURE}
    """

    IDLE = "idle"
    KEY_BUILT = "key_built"
    FRESH_HIT = "fresh_hit"
    STALE_HIT = "stale_hit"
    COALESCED = "coalesced"
    DEBOUNCED = "debounced"
    MISS = "miss"
    IN_FLIGHT = "in_flight"
    SETTLED_SUCCESS = "settled_success"
    SETTLED_FAILURE = "settled_failure"


# ============================================================================
# Per-Category Defaults (seconds)
# ============================================================================

EPHEMERAL_TTL = {
    Category.PROFILE: 60.0,
    Category.LISTING: 120.0,
    Category.AVAILABILITY: 30.0,
    Category.MESSAGE: 15.0,
    Category.OTHER: 30.0,
}

PERSISTENT_TTL = {
    Category.PROFILE: 24 * 60 * 60.0,
    Category.LISTING: 12 * 60 * 60.0,
    Category.AVAILABILITY: 3 * 60 * 60.0,
    Category.MESSAGE: 30 * 60.0,
    Category.OTHER: 6 * 60 * 60.0,
}

STALE_TOLERANCE = {
    Category.PROFILE: 300.0,
    Category.LISTING: 120.0,
    Category.AVAILABILITY: 30.0,
    Category.MESSAGE: 15.0,
    Category.OTHER: 60.0,
}

DEFAULT_PRIORITY = {
    Category.PROFILE: Priority.HIGH,
    Category.LISTING: Priority.NORMAL,
    Category.AVAILABILITY: Priority.NORMAL,
    Category.MESSAGE: Priority.LOW,
    Category.OTHER: Priority.LOW,
}

# ============================================================================
# Capacity Limits
# ============================================================================

# Ephemeral tier
EPHEMERAL_MAX_ENTRIES = 750
EPHEMERAL_MAX_SIZE_BYTES = 15 * 1024 * 1024  # 15MB
EVICTION_TARGET_RATIO = 0.8  # Evict down to 80% of a ceiling

# Persistent tier
PERSISTENT_CAPACITY_BYTES = 2 * 1024 * 1024  # 2MB
PERSISTENT_MAX_ITEM_FRACTION = 0.25  # Reject items over 1/4 of capacity
PERSISTENT_PRUNE_THRESHOLD = 100  # Prune once more than this many entries are stored
PERSISTENT_PRUNE_RATIO = 0.2  # Remove oldest 20% on a pruning pass

# Coalescing
PENDING_MAX_AGE = 30.0  # Pending operations older than this are released

# Maintenance loop
MAINTENANCE_INTERVAL = 60.0
SHUTDOWN_TIMEOUT = 5.0  # Seconds shutdown waits for background refreshes before cancelling

# ============================================================================
# Keys
# ============================================================================

ANONYMOUS_IDENTITY = "anonymous"
IDENTITY_TAG = "u="  # Prefixes every real identity so none can equal ANONYMOUS_IDENTITY
KEY_SEPARATOR = ":"

CACHE_SCHEMA_VERSION = "1.0.0"
REDIS_KEY_PREFIX = "callcache"
REDIS_KEY_ENTRY_PREFIX = f"{REDIS_KEY_PREFIX}:entry:"
REDIS_KEY_SCHEMA_VERSION = f"{REDIS_KEY_PREFIX}:schema_version"

# Number of key characters kept in log lines
LOG_KEY_LENGTH = 48
