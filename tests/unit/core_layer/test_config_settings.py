"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError

from callcache.core.config.constants import (
    CACHE_SCHEMA_VERSION,
    EPHEMERAL_MAX_ENTRIES,
    REDIS_KEY_SCHEMA_VERSION,
)
from callcache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Test Settings defaults."""

    def test_caching_enabled_by_default(self):
        settings = Settings()
        assert settings.ENABLE_CACHING is True

    def test_ephemeral_defaults(self):
        settings = Settings()
        assert settings.ephemeral.CACHE_EPHEMERAL_MAX_ENTRIES == EPHEMERAL_MAX_ENTRIES
        assert 0 < settings.ephemeral.CACHE_EVICTION_TARGET_RATIO <= 1

    def test_persistent_defaults(self):
        settings = Settings()
        assert settings.persistent.CACHE_PERSISTENT_BACKEND == "redis"
        assert settings.persistent.CACHE_SCHEMA_VERSION == CACHE_SCHEMA_VERSION
        assert settings.persistent.CACHE_PERSISTENT_VERSION_KEY == REDIS_KEY_SCHEMA_VERSION

    def test_nested_sections_mirror_flat_fields(self):
        settings = Settings(REDIS_HOST="cache.internal", CACHE_PENDING_MAX_AGE=12.5)
        assert settings.redis.REDIS_HOST == "cache.internal"
        assert settings.coalescing.CACHE_PENDING_MAX_AGE == 12.5

    def test_shutdown_timeout(self):
        assert Settings().coalescing.CACHE_SHUTDOWN_TIMEOUT == 5.0
        assert Settings(CACHE_SHUTDOWN_TIMEOUT=0.5).coalescing.CACHE_SHUTDOWN_TIMEOUT == 0.5
        with pytest.raises(ValidationError):
            Settings(CACHE_SHUTDOWN_TIMEOUT=0)

    def test_app_settings(self):
        settings = Settings()
        assert settings.app.APP_NAME == "Call Cache Engine"
        assert settings.app.ENVIRONMENT in ("development", "staging", "production")


@pytest.mark.unit
class TestSettingsValidation:
    """Test field validators."""

    def test_log_level_is_normalized(self):
        settings = Settings(LOG_LEVEL="debug")
        assert settings.LOG_LEVEL == "DEBUG"
        assert settings.logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LOG_LEVEL="VERBOSE")

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_PERSISTENT_BACKEND="memcached")

    def test_eviction_ratio_bounds(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_EVICTION_TARGET_RATIO=1.5)

    def test_pending_max_age_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(CACHE_PENDING_MAX_AGE=0)


@pytest.mark.unit
class TestSettingsEnvironment:
    """Test environment variable loading."""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CACHE_PERSISTENT_BACKEND", "memory")
        monkeypatch.setenv("CACHE_EPHEMERAL_MAX_ENTRIES", "42")
        settings = Settings()
        assert settings.CACHE_PERSISTENT_BACKEND == "memory"
        assert settings.CACHE_EPHEMERAL_MAX_ENTRIES == 42

    def test_debounce_intervals_parsed_from_json(self, monkeypatch):
        monkeypatch.setenv("CACHE_DEBOUNCE_INTERVALS", '{"findDoctors": 3}')
        settings = Settings()
        assert settings.coalescing.CACHE_DEBOUNCE_INTERVALS == {"findDoctors": 3.0}

    def test_reload_settings_replaces_singleton(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("APP_VERSION", "9.9.9")
        reloaded = reload_settings()
        try:
            assert reloaded is not first
            assert get_settings() is reloaded
            assert reloaded.APP_VERSION == "9.9.9"
        finally:
            monkeypatch.delenv("APP_VERSION")
            reload_settings()
