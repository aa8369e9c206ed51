"""
Unit Tests for MetricsCollector
"""

import pytest
from prometheus_client import REGISTRY

from callcache.infrastructure.monitoring.metrics_collector import get_metrics_collector


def sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.unit
class TestMetricsCollector:
    def test_singleton(self):
        assert get_metrics_collector() is get_metrics_collector()

    def test_cache_hit_counter(self):
        before = sample("callcache_hits_total", tier="ephemeral", freshness="fresh")
        get_metrics_collector().record_cache_hit("ephemeral", "fresh")
        assert sample("callcache_hits_total", tier="ephemeral", freshness="fresh") == before + 1

    def test_remote_call_records_latency(self):
        before = sample("callcache_remote_latency_seconds_count", operation="findDoctors")
        get_metrics_collector().record_remote_call("findDoctors", "success", 0.05)
        assert sample("callcache_remote_latency_seconds_count", operation="findDoctors") == before + 1

    def test_pending_gauge(self):
        get_metrics_collector().set_pending_operations(3)
        assert sample("callcache_pending_operations") == 3

    def test_prometheus_export(self):
        collector = get_metrics_collector()
        output = collector.get_prometheus_metrics()
        assert b"callcache_hits_total" in output
        assert collector.get_content_type().startswith("text/plain")
