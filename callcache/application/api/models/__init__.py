"""
API Models Package
==================

Pydantic models for admin request/response validation.
"""

from callcache.application.api.models.admin import (
    CacheHealthResponse,
    CacheStatsResponse,
    InvalidateRequest,
    InvalidateResponse,
)

__all__ = [
    "CacheHealthResponse",
    "CacheStatsResponse",
    "InvalidateRequest",
    "InvalidateResponse",
]
