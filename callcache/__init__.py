"""
callcache: multi-tier client-side cache and request-coalescing engine.

Usage:
    from callcache import CacheOrchestrator, FetchOptions, build_default_registry

    orchestrator = CacheOrchestrator.from_settings(build_default_registry(invoker))
    await orchestrator.initialize()
    profile = await orchestrator.fetch("getMyUserProfile", identity="u1")
"""

from callcache.application.operations import build_default_registry
from callcache.application.registry import OperationRegistry, OperationSpec
from callcache.core.config.constants import Category, FetchState, Freshness, Priority
from callcache.infrastructure.cache.orchestrator import CacheOrchestrator, FetchOptions, FetchResult

__version__ = "1.0.0"

__all__ = [
    "CacheOrchestrator",
    "Category",
    "FetchOptions",
    "FetchResult",
    "FetchState",
    "Freshness",
    "OperationRegistry",
    "OperationSpec",
    "Priority",
    "build_default_registry",
]
