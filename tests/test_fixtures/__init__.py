"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, FakeClock, UnreachableBackend
from .invoker_factory import RecordingInvoker

__all__ = ["CacheTestFactory", "FakeClock", "RecordingInvoker", "UnreachableBackend"]
