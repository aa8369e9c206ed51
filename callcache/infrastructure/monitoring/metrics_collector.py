#!/usr/bin/env python3
"""
Cache Engine Metrics

Prometheus instruments for the fetch path:
- callcache_hits_total{tier, freshness} and callcache_misses_total
- eviction and capacity-rejection counters
- coalesced and debounced call counters
- remote call outcomes and a latency histogram
- a gauge of pending remote operations

Instruments are module-level because the Prometheus registry is
process-wide. The per-orchestrator numbers returned by get_stats() are
plain counters on the orchestrator, not read back from here.

Author: System Architect
Date: 2026-03-02
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from callcache.core.config.settings import get_settings
from callcache.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Metric Definitions
# ============================================================================

CACHE_HITS = Counter(
    'callcache_hits_total',
    'Total cache hits',
    ['tier', 'freshness']  # ephemeral/persistent, fresh/stale
)

CACHE_MISSES = Counter(
    'callcache_misses_total',
    'Total lookups that reached the remote collaborator',
    ['operation']
)

EVICTIONS = Counter(
    'callcache_evictions_total',
    'Total ephemeral entries evicted for capacity'
)

CAPACITY_REJECTIONS = Counter(
    'callcache_capacity_rejections_total',
    'Total items refused by the persistent tier for size'
)

COALESCED_CALLS = Counter(
    'callcache_coalesced_total',
    'Total fetches that joined an in-flight remote call',
    ['operation']
)

DEBOUNCED_CALLS = Counter(
    'callcache_debounced_total',
    'Total forced refreshes served from cache by the debouncer',
    ['operation']
)

REMOTE_CALLS = Counter(
    'callcache_remote_calls_total',
    'Total remote collaborator invocations',
    ['operation', 'outcome']  # success, failure
)

REMOTE_LATENCY = Histogram(
    'callcache_remote_latency_seconds',
    'Remote collaborator latency',
    ['operation'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

PENDING_OPERATIONS = Gauge(
    'callcache_pending_operations',
    'Remote calls currently in flight'
)

APP_INFO = Info(
    'callcache_app',
    'Application information'
)


class MetricsCollector:
    """
    Centralized metrics collector.

    STAGE-M: Metrics collection

    Usage:
        metrics = get_metrics_collector()
        metrics.record_cache_hit("ephemeral", "fresh")
        output = metrics.get_prometheus_metrics()
    """

    def __init__(self):
        """Initialize metrics collector."""
        self.settings = get_settings()

        APP_INFO.info({
            'version': self.settings.app.APP_VERSION,
            'environment': self.settings.app.ENVIRONMENT,
            'app_name': self.settings.app.APP_NAME
        })

        logger.info("Metrics collector initialized", stage="M.0")

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def record_cache_hit(self, tier: str, freshness: str) -> None:
        """Record cache hit."""
        CACHE_HITS.labels(tier=tier, freshness=freshness).inc()

    def record_cache_miss(self, operation: str) -> None:
        """Record cache miss."""
        CACHE_MISSES.labels(operation=operation).inc()

    def record_evictions(self, count: int) -> None:
        """Record evicted entries."""
        EVICTIONS.inc(count)

    def record_capacity_rejection(self) -> None:
        """Record an oversized item refused by the persistent tier."""
        CAPACITY_REJECTIONS.inc()

    # =========================================================================
    # Coalescing Metrics
    # =========================================================================

    def record_coalesced(self, operation: str) -> None:
        """Record a fetch that joined an in-flight call."""
        COALESCED_CALLS.labels(operation=operation).inc()

    def record_debounced(self, operation: str) -> None:
        """Record a forced refresh the debouncer served from cache."""
        DEBOUNCED_CALLS.labels(operation=operation).inc()

    def set_pending_operations(self, count: int) -> None:
        """Set in-flight remote call count."""
        PENDING_OPERATIONS.set(count)

    # =========================================================================
    # Remote Metrics
    # =========================================================================

    def record_remote_call(self, operation: str, outcome: str, duration_seconds: float) -> None:
        """Record a remote call and its latency."""
        REMOTE_CALLS.labels(operation=operation, outcome=outcome).inc()
        REMOTE_LATENCY.labels(operation=operation).observe(duration_seconds)

    # =========================================================================
    # Export
    # =========================================================================

    def get_prometheus_metrics(self) -> bytes:
        """
        Get Prometheus metrics output.

        Returns:
            bytes: Prometheus text format metrics
        """
        return generate_latest(REGISTRY)

    def get_content_type(self) -> str:
        """Get Prometheus content type."""
        return CONTENT_TYPE_LATEST


# Global metrics collector
_metrics: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
