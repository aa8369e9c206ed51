#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
call cache engine. All tunables are centralized here so the orchestrator and
its tiers agree on capacities, lifetimes and the durable backend.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- IDE autocomplete for all settings
- Easy testing with override mechanisms

Author: System Architect
Date: 2026-03-02
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from callcache.core.config.constants import (
    CACHE_SCHEMA_VERSION,
    EPHEMERAL_MAX_ENTRIES,
    EPHEMERAL_MAX_SIZE_BYTES,
    EVICTION_TARGET_RATIO,
    MAINTENANCE_INTERVAL,
    PENDING_MAX_AGE,
    PERSISTENT_CAPACITY_BYTES,
    PERSISTENT_MAX_ITEM_FRACTION,
    PERSISTENT_PRUNE_RATIO,
    PERSISTENT_PRUNE_THRESHOLD,
    REDIS_KEY_ENTRY_PREFIX,
    REDIS_KEY_SCHEMA_VERSION,
    SHUTDOWN_TIMEOUT,
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class RedisSettings(BaseSettings):
    """
    Redis configuration for the persistent cache tier.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_ATTEMPTS: int = Field(default=3, description="Connection attempts before giving up")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class EphemeralCacheSettings(BaseSettings):
    """
    In-process cache tier configuration.

    STAGE-2.1: Ephemeral tier capacity
    """

    CACHE_EPHEMERAL_MAX_ENTRIES: int = Field(default=EPHEMERAL_MAX_ENTRIES, gt=0)
    CACHE_EPHEMERAL_MAX_SIZE_BYTES: int = Field(default=EPHEMERAL_MAX_SIZE_BYTES, gt=0)
    CACHE_EVICTION_TARGET_RATIO: float = Field(default=EVICTION_TARGET_RATIO, gt=0, le=1)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class PersistentCacheSettings(BaseSettings):
    """
    Durable cache tier configuration.

    STAGE-2.2: Persistent tier capacity and schema version

    Backends:
    - redis: production, survives restarts
    - memory: in-process stand-in for development
    - none: persistent tier disabled (ephemeral only)
    """

    CACHE_PERSISTENT_BACKEND: Literal["redis", "memory", "none"] = Field(default="redis")
    CACHE_SCHEMA_VERSION: str = Field(default=CACHE_SCHEMA_VERSION)
    CACHE_PERSISTENT_KEY_PREFIX: str = Field(default=REDIS_KEY_ENTRY_PREFIX)
    CACHE_PERSISTENT_VERSION_KEY: str = Field(default=REDIS_KEY_SCHEMA_VERSION)
    CACHE_PERSISTENT_CAPACITY_BYTES: int = Field(default=PERSISTENT_CAPACITY_BYTES, gt=0)
    CACHE_PERSISTENT_MAX_ITEM_FRACTION: float = Field(default=PERSISTENT_MAX_ITEM_FRACTION, gt=0, le=1)
    CACHE_PERSISTENT_PRUNE_THRESHOLD: int = Field(default=PERSISTENT_PRUNE_THRESHOLD, gt=0)
    CACHE_PERSISTENT_PRUNE_RATIO: float = Field(default=PERSISTENT_PRUNE_RATIO, gt=0, le=1)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CoalescingSettings(BaseSettings):
    """
    Coalescing, debouncing and revalidation configuration.

    STAGE-3: In-flight request sharing
    """

    CACHE_PENDING_MAX_AGE: float = Field(default=PENDING_MAX_AGE, gt=0)
    CACHE_DEBOUNCE_INTERVALS: dict[str, float] = Field(
        default_factory=dict,
        description="Minimum seconds between remote calls, per operation",
    )
    CACHE_SERVE_STALE_ON_ERROR: bool = Field(default=True)
    CACHE_MAINTENANCE_INTERVAL: float = Field(default=MAINTENANCE_INTERVAL, ge=0)
    CACHE_SHUTDOWN_TIMEOUT: float = Field(default=SHUTDOWN_TIMEOUT, gt=0)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(default="development")
    APP_NAME: str = Field(default="Call Cache Engine", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from callcache.core.config.settings import get_settings

        settings = get_settings()
        max_entries = settings.ephemeral.CACHE_EPHEMERAL_MAX_ENTRIES
        redis_host = settings.redis.REDIS_HOST
    """

    ENABLE_CACHING: bool = Field(default=True, description="Master switch for all cache tiers")

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_ATTEMPTS: int = Field(default=3, description="Connection attempts before giving up")

    # Ephemeral tier
    CACHE_EPHEMERAL_MAX_ENTRIES: int = Field(default=EPHEMERAL_MAX_ENTRIES, gt=0)
    CACHE_EPHEMERAL_MAX_SIZE_BYTES: int = Field(default=EPHEMERAL_MAX_SIZE_BYTES, gt=0)
    CACHE_EVICTION_TARGET_RATIO: float = Field(default=EVICTION_TARGET_RATIO, gt=0, le=1)

    # Persistent tier
    CACHE_PERSISTENT_BACKEND: Literal["redis", "memory", "none"] = Field(default="redis")
    CACHE_SCHEMA_VERSION: str = Field(default=CACHE_SCHEMA_VERSION)
    CACHE_PERSISTENT_KEY_PREFIX: str = Field(default=REDIS_KEY_ENTRY_PREFIX)
    CACHE_PERSISTENT_VERSION_KEY: str = Field(default=REDIS_KEY_SCHEMA_VERSION)
    CACHE_PERSISTENT_CAPACITY_BYTES: int = Field(default=PERSISTENT_CAPACITY_BYTES, gt=0)
    CACHE_PERSISTENT_MAX_ITEM_FRACTION: float = Field(default=PERSISTENT_MAX_ITEM_FRACTION, gt=0, le=1)
    CACHE_PERSISTENT_PRUNE_THRESHOLD: int = Field(default=PERSISTENT_PRUNE_THRESHOLD, gt=0)
    CACHE_PERSISTENT_PRUNE_RATIO: float = Field(default=PERSISTENT_PRUNE_RATIO, gt=0, le=1)

    # Coalescing / debouncing / revalidation
    CACHE_PENDING_MAX_AGE: float = Field(default=PENDING_MAX_AGE, gt=0)
    CACHE_DEBOUNCE_INTERVALS: dict[str, float] = Field(default_factory=dict)
    CACHE_SERVE_STALE_ON_ERROR: bool = Field(default=True)
    CACHE_MAINTENANCE_INTERVAL: float = Field(default=MAINTENANCE_INTERVAL, ge=0)
    CACHE_SHUTDOWN_TIMEOUT: float = Field(default=SHUTDOWN_TIMEOUT, gt=0)

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(default="development")
    APP_NAME: str = Field(default="Call Cache Engine", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> "RedisSettings":
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_CONNECT_ATTEMPTS=self.REDIS_CONNECT_ATTEMPTS,
        )

    @property
    def ephemeral(self) -> "EphemeralCacheSettings":
        """Get ephemeral tier settings."""
        return EphemeralCacheSettings(
            CACHE_EPHEMERAL_MAX_ENTRIES=self.CACHE_EPHEMERAL_MAX_ENTRIES,
            CACHE_EPHEMERAL_MAX_SIZE_BYTES=self.CACHE_EPHEMERAL_MAX_SIZE_BYTES,
            CACHE_EVICTION_TARGET_RATIO=self.CACHE_EVICTION_TARGET_RATIO,
        )

    @property
    def persistent(self) -> "PersistentCacheSettings":
        """Get persistent tier settings."""
        return PersistentCacheSettings(
            CACHE_PERSISTENT_BACKEND=self.CACHE_PERSISTENT_BACKEND,
            CACHE_SCHEMA_VERSION=self.CACHE_SCHEMA_VERSION,
            CACHE_PERSISTENT_KEY_PREFIX=self.CACHE_PERSISTENT_KEY_PREFIX,
            CACHE_PERSISTENT_VERSION_KEY=self.CACHE_PERSISTENT_VERSION_KEY,
            CACHE_PERSISTENT_CAPACITY_BYTES=self.CACHE_PERSISTENT_CAPACITY_BYTES,
            CACHE_PERSISTENT_MAX_ITEM_FRACTION=self.CACHE_PERSISTENT_MAX_ITEM_FRACTION,
            CACHE_PERSISTENT_PRUNE_THRESHOLD=self.CACHE_PERSISTENT_PRUNE_THRESHOLD,
            CACHE_PERSISTENT_PRUNE_RATIO=self.CACHE_PERSISTENT_PRUNE_RATIO,
        )

    @property
    def coalescing(self) -> "CoalescingSettings":
        """Get coalescing, debouncing and revalidation settings."""
        return CoalescingSettings(
            CACHE_PENDING_MAX_AGE=self.CACHE_PENDING_MAX_AGE,
            CACHE_DEBOUNCE_INTERVALS=self.CACHE_DEBOUNCE_INTERVALS,
            CACHE_SERVE_STALE_ON_ERROR=self.CACHE_SERVE_STALE_ON_ERROR,
            CACHE_MAINTENANCE_INTERVAL=self.CACHE_MAINTENANCE_INTERVAL,
            CACHE_SHUTDOWN_TIMEOUT=self.CACHE_SHUTDOWN_TIMEOUT,
        )

    @property
    def logging(self) -> "LoggingSettings":
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> "ApplicationSettings":
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.3: Settings initialization

    Settings are configuration, not cache state: sharing one instance is safe.
    Cache state always lives on a CacheOrchestrator instance.

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
