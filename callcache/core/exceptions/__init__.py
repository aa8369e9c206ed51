"""
Exception Module

Structured exception hierarchy for the call cache engine.

Module Structure:
-----------------
- **base.py**: CallCacheError base class + ConfigurationError
- **cache.py**: Cache tier exceptions (Redis, envelopes, capacity, versions)
- **registry.py**: Operation registry exceptions

Remote failures are not wrapped: the collaborator's own exception reaches
every waiter unchanged.

Usage:
------
```python
from callcache.core.exceptions import CacheConnectionError, UnknownOperationError
```

Author: System Architect
Date: 2026-03-02
"""

# Base exception
from callcache.core.exceptions.base import CallCacheError, ConfigurationError

# Cache exceptions
from callcache.core.exceptions.cache import (
    CacheCapacityError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheVersionMismatchError,
)

# Registry exceptions
from callcache.core.exceptions.registry import (
    DuplicateOperationError,
    OperationRegistryError,
    UnknownOperationError,
)

__all__ = [
    # Base
    "CallCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheCapacityError",
    "CacheVersionMismatchError",
    # Registry
    "OperationRegistryError",
    "UnknownOperationError",
    "DuplicateOperationError",
]
