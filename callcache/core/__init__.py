"""
Core Module

Foundational components: configuration, logging, exceptions, and interfaces.
"""

from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CallCacheError,
    ConfigurationError,
    UnknownOperationError,
)
from .logging import get_logger, log_stage, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "log_stage",
    "CallCacheError",
    "ConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "UnknownOperationError",
]
