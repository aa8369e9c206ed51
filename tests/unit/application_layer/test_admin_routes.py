"""
Unit Tests for Admin Routes

Tests the FastAPI admin surface with TestClient over an ephemeral-only
orchestrator.
"""

import pytest
from fastapi.testclient import TestClient

from callcache.application.app import create_app
from callcache.core.config.constants import Category
from callcache.core.exceptions import UnknownOperationError
from callcache.infrastructure.cache.orchestrator import CacheOrchestrator


@pytest.mark.unit
class TestAdminRoutes:
    """Test suite for /admin routes."""

    @pytest.fixture
    def orchestrator(self, registry, test_settings, clock):
        settings = test_settings.model_copy(update={"CACHE_PERSISTENT_BACKEND": "none"})
        return CacheOrchestrator.from_settings(registry, settings, clock=clock)

    @pytest.fixture
    def client(self, orchestrator):
        app = create_app(orchestrator, manage_lifecycle=False)

        @app.get("/boom")
        async def boom():
            raise UnknownOperationError("getNothing")

        with TestClient(app) as client:
            yield client

    def test_stats(self, client, orchestrator):
        orchestrator.ephemeral.set("getMyUserProfile:u1:abc", {"id": "u1"}, ttl=60, category=Category.PROFILE)

        response = client.get("/admin/cache/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["ephemeral_entries"] == 1
        assert data["persistent_entry_count"] == 0
        assert data["pending_count"] == 0

    def test_invalidate(self, client, orchestrator):
        orchestrator.ephemeral.set("getMyUserProfile:u1:abc", 1, ttl=60, category=Category.PROFILE)
        orchestrator.ephemeral.set("findDoctors:anonymous:def", 2, ttl=60, category=Category.LISTING)

        response = client.post("/admin/cache/invalidate", json={"target": "profile"})

        assert response.status_code == 200
        assert response.json() == {"target": "profile", "removed": 1}
        assert len(orchestrator.ephemeral) == 1

    def test_invalidate_rejects_blank_target(self, client):
        response = client.post("/admin/cache/invalidate", json={"target": "   "})
        assert response.status_code == 422

    def test_health(self, client):
        response = client.get("/admin/cache/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "ephemeral" in data["tiers"]

    def test_metrics(self, client):
        response = client.get("/admin/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert b"callcache_hits_total" in response.content

    def test_engine_errors_become_json(self, client):
        response = client.get("/boom")

        assert response.status_code == 404
        assert response.json()["error_type"] == "UnknownOperationError"
