"""
Configuration Module

This module provides centralized, type-safe configuration management
for the call cache engine.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and per-category defaults

Usage:
------
```python
from callcache.core.config import get_settings
from callcache.core.config.constants import Category, Stage

settings = get_settings()
max_entries = settings.ephemeral.CACHE_EPHEMERAL_MAX_ENTRIES
stage = Stage.EPHEMERAL_LOOKUP  # "2.1_EPHEMERAL_LOOKUP"
```

Environment Variables:
---------------------
```bash
CACHE_PERSISTENT_BACKEND=redis
REDIS_HOST=localhost
CACHE_EPHEMERAL_MAX_ENTRIES=750
CACHE_DEBOUNCE_INTERVALS='{"getMyNotifications": 1.5}'
LOG_LEVEL=INFO
```

Testing:
-------
```python
import os
from callcache.core.config import reload_settings

os.environ["CACHE_PERSISTENT_BACKEND"] = "memory"
settings = reload_settings()
```

Author: System Architect
Date: 2026-03-02
"""

from callcache.core.config.constants import (
    CACHE_SCHEMA_VERSION,
    DEFAULT_PRIORITY,
    EPHEMERAL_TTL,
    PERSISTENT_TTL,
    STALE_TOLERANCE,
    CacheTier,
    Category,
    FetchState,
    Freshness,
    Priority,
    Stage,
)
from callcache.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CacheTier",
    "Category",
    "Priority",
    "Freshness",
    "FetchState",
    # Per-category defaults
    "EPHEMERAL_TTL",
    "PERSISTENT_TTL",
    "STALE_TOLERANCE",
    "DEFAULT_PRIORITY",
    "CACHE_SCHEMA_VERSION",
]
