"""
Admin API Models
================

Pydantic request/response models for the cache admin endpoints.

- **Type Safety**: Responses match the orchestrator's stats and health shape
- **Validation**: Invalidation targets must be non-empty
- **Documentation**: Field descriptions feed the OpenAPI schema
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CacheStatsResponse(BaseModel):
    """Counters for one orchestrator instance."""

    hits: int = Field(..., ge=0, description="Fetches served from a cache tier (fresh or stale)")
    misses: int = Field(..., ge=0, description="Fetches that launched a remote call")
    evictions: int = Field(..., ge=0, description="Ephemeral entries evicted for capacity")
    pending_count: int = Field(..., ge=0, description="Remote calls currently in flight")
    persistent_entry_count: int = Field(..., ge=0, description="Entries stored in the persistent tier")
    stale_hits: int = Field(0, ge=0, description="Hits served stale while a refresh ran")
    coalesced: int = Field(0, ge=0, description="Fetches that joined an in-flight call")
    debounced: int = Field(0, ge=0, description="Forced refreshes served from cache")
    remote_failures: int = Field(0, ge=0, description="Remote calls that raised")
    ephemeral_entries: int = Field(0, ge=0, description="Entries held in the ephemeral tier")
    background_refreshes: int = Field(0, ge=0, description="Background refreshes in progress")

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total, 3) if total else 0.0


class InvalidateRequest(BaseModel):
    """Invalidation target: an exact cache key, a key prefix or a category name."""

    target: str = Field(..., description="Exact key, key prefix (e.g. an operation name) or category")

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("target must not be empty")
        return v


class InvalidateResponse(BaseModel):
    """Result of an invalidation."""

    target: str
    removed: int = Field(..., ge=0, description="Entries removed across all tiers")


class CacheHealthResponse(BaseModel):
    """Per-tier health."""

    status: str = Field(..., description="healthy or degraded")
    caching_enabled: bool
    initialized: bool
    pending_count: int = Field(..., ge=0)
    tiers: dict[str, dict[str, Any]] = Field(default_factory=dict)
