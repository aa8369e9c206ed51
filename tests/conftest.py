"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import pytest
import pytest_asyncio

from callcache.application.operations import build_default_registry
from callcache.core.config.settings import Settings
from callcache.core.interfaces.cache import InMemoryBackend
from callcache.infrastructure.cache.orchestrator import CacheOrchestrator
from tests.test_fixtures import FakeClock, RecordingInvoker

# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Settings for orchestrator tests.

    Uses the in-memory persistent backend and disables the background
    maintenance loop so tests control every pass.
    """
    return Settings(
        ENABLE_CACHING=True,
        CACHE_PERSISTENT_BACKEND="memory",
        CACHE_MAINTENANCE_INTERVAL=0,
        CACHE_SERVE_STALE_ON_ERROR=True,
        ENVIRONMENT="development",
    )


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Manually advanced clock shared by every component under test."""
    return FakeClock()


@pytest.fixture
def backend(clock):
    """In-memory durable backend driven by the fake clock."""
    return InMemoryBackend(clock=clock)


@pytest.fixture
def invoker():
    """Recording remote collaborator."""
    return RecordingInvoker()


@pytest.fixture
def registry(invoker):
    """Default operation catalogue bound to the recording invoker."""
    return build_default_registry(invoker)


@pytest.fixture
def make_orchestrator(registry, test_settings, clock, backend):
    """
    Factory for orchestrators sharing the fixture clock and backend.

    Keyword overrides replace Settings fields.
    """

    def _make(**overrides) -> CacheOrchestrator:
        settings = test_settings.model_copy(update=overrides) if overrides else test_settings
        return CacheOrchestrator.from_settings(registry, settings, clock=clock, backend=backend)

    return _make


@pytest_asyncio.fixture
async def orchestrator(make_orchestrator):
    """Initialized orchestrator with ephemeral and in-memory persistent tiers."""
    orchestrator = make_orchestrator()
    await orchestrator.initialize()
    yield orchestrator
    await orchestrator.shutdown()
