"""
Core Interfaces Module

This module provides protocols for the durable backend and the cache tiers,
enabling dependency injection, testability, and loose coupling.

Components:
-----------
- **cache.py**: CacheBackend and CacheProvider protocols, InMemoryBackend

Usage:
------
```python
from callcache.core.interfaces import CacheBackend, InMemoryBackend

backend: CacheBackend = InMemoryBackend()
await backend.connect()
```

Author: System Architect
Date: 2026-03-02
"""

from callcache.core.interfaces.cache import CacheBackend, CacheProvider, InMemoryBackend

__all__ = [
    "CacheBackend",
    "CacheProvider",
    "InMemoryBackend",
]
