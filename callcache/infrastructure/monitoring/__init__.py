"""
Monitoring Module

Prometheus metrics for the cache tiers, coalescing and remote calls.
"""

from callcache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

__all__ = [
    "MetricsCollector",
    "get_metrics_collector",
]
