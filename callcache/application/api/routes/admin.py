"""
Admin Routes
============

Operational endpoints for the cache engine:

- GET  /admin/cache/stats       Per-instance counters
- POST /admin/cache/invalidate  Drop entries by key, key prefix or category
- GET  /admin/cache/health      Per-tier health
- GET  /admin/metrics           Prometheus text format

In production these belong behind authentication on an internal port.
"""

import structlog
from fastapi import APIRouter, Depends, Response

from callcache.application.api.dependencies import OrchestratorDep
from callcache.application.api.models.admin import (
    CacheHealthResponse,
    CacheStatsResponse,
    InvalidateRequest,
    InvalidateResponse,
)
from callcache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


async def verify_admin_access() -> None:
    """
    Placeholder for admin authentication.

    Replace with token verification (e.g. fastapi.security.HTTPBearer) and
    raise HTTPException(403) for non-admin callers.
    """


@router.get(
    "/cache/stats",
    response_model=CacheStatsResponse,
    summary="Cache counters",
    dependencies=[Depends(verify_admin_access)],
)
async def get_cache_stats(orchestrator: OrchestratorDep):
    """Hits, misses, evictions, pending calls and persistent entry count."""
    return CacheStatsResponse(**await orchestrator.get_stats())


@router.post(
    "/cache/invalidate",
    response_model=InvalidateResponse,
    summary="Invalidate cache entries",
    dependencies=[Depends(verify_admin_access)],
)
async def invalidate_cache(request: InvalidateRequest, orchestrator: OrchestratorDep):
    """Remove matching entries from every tier."""
    removed = await orchestrator.invalidate(request.target)
    logger.info("Admin invalidation", stage="INV_INVALIDATION", removed=removed)
    return InvalidateResponse(target=request.target, removed=removed)


@router.get(
    "/cache/health",
    response_model=CacheHealthResponse,
    summary="Cache tier health",
    dependencies=[Depends(verify_admin_access)],
)
async def get_cache_health(orchestrator: OrchestratorDep):
    """Overall status is degraded when any configured tier is unhealthy."""
    return CacheHealthResponse(**await orchestrator.health_check())


@router.get("/metrics")
async def get_prometheus_metrics():
    """
    Expose metrics in Prometheus text format for scraping.

    Returned through Response so the body is not JSON-encoded and the
    Prometheus Content-Type is set.
    """
    metrics_collector = get_metrics_collector()
    return Response(
        content=metrics_collector.get_prometheus_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
