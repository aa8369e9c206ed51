"""
Persistent Cache Tier

Durable cache entries stored as versioned JSON envelopes on a CacheBackend
(Redis in production, InMemoryBackend for development and tests).

STAGE-2.2: Persistent lookup

Storage layout:
    callcache:entry:<category>:<cache key>  -> envelope (orjson JSON)
    callcache:schema_version                -> schema version string

Envelope:
    {data, created_at, fresh_until, expires_at, category, priority, schema_version}

Degradation rules:
- Backend failures (CacheError) turn reads into misses and writes into no-ops
- Undecodable or wrong-version envelopes are deleted and reported as misses
- Items larger than max_item_fraction of capacity are refused (logged)
- A failed connection at initialize() marks the tier unavailable; the
  orchestrator keeps serving from the ephemeral tier alone

Author: System Architect
Date: 2026-03-02
"""

import dataclasses
import math
import time
from collections.abc import Callable
from typing import Any

import orjson
from pydantic import BaseModel, ValidationError

from callcache.core.config.constants import (
    CACHE_SCHEMA_VERSION,
    PERSISTENT_CAPACITY_BYTES,
    PERSISTENT_MAX_ITEM_FRACTION,
    PERSISTENT_PRUNE_RATIO,
    PERSISTENT_PRUNE_THRESHOLD,
    PERSISTENT_TTL,
    REDIS_KEY_ENTRY_PREFIX,
    REDIS_KEY_SCHEMA_VERSION,
    CacheTier,
    Category,
    Priority,
    Stage,
)
from callcache.core.config.settings import Settings
from callcache.core.exceptions import (
    CacheCapacityError,
    CacheError,
    CacheSerializationError,
    CacheVersionMismatchError,
)
from callcache.core.interfaces.cache import CacheBackend
from callcache.core.logging.logger import get_logger, log_stage, short_key
from callcache.infrastructure.cache.models import CacheEntry
from callcache.infrastructure.monitoring.metrics_collector import MetricsCollector

logger = get_logger(__name__)


class PersistedEnvelope(BaseModel):
    """On-disk representation of one cache entry."""

    data: Any = None
    created_at: float
    fresh_until: float
    expires_at: float
    category: Category
    priority: Priority = Priority.NORMAL
    schema_version: str


def _encode_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class PersistentCache:
    """
    Durable cache tier implementing the CacheProvider interface.

    Usage:
        tier = PersistentCache(RedisClient())
        await tier.initialize()
        await tier.set("k", {"a": 1}, category=Category.PROFILE, priority=Priority.HIGH)
        entry = await tier.get("k", Category.PROFILE)
    """

    tier = CacheTier.PERSISTENT

    def __init__(
        self,
        backend: CacheBackend | None,
        *,
        schema_version: str = CACHE_SCHEMA_VERSION,
        key_prefix: str = REDIS_KEY_ENTRY_PREFIX,
        version_key: str = REDIS_KEY_SCHEMA_VERSION,
        capacity_bytes: int = PERSISTENT_CAPACITY_BYTES,
        max_item_fraction: float = PERSISTENT_MAX_ITEM_FRACTION,
        prune_threshold: int = PERSISTENT_PRUNE_THRESHOLD,
        prune_ratio: float = PERSISTENT_PRUNE_RATIO,
        default_ttls: dict[Category, float] | None = None,
        clock: Callable[[], float] = time.time,
        metrics: MetricsCollector | None = None,
    ):
        self._backend = backend
        self._schema_version = schema_version
        self._key_prefix = key_prefix
        self._version_key = version_key
        self._max_item_bytes = int(capacity_bytes * max_item_fraction)
        self._prune_threshold = prune_threshold
        self._prune_ratio = prune_ratio
        self._default_ttls = default_ttls or PERSISTENT_TTL
        self._clock = clock
        self._metrics = metrics
        self._available = False

        self.capacity_rejections = 0

    @classmethod
    def from_settings(
        cls,
        backend: CacheBackend | None,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        metrics: MetricsCollector | None = None,
    ) -> "PersistentCache":
        persistent = settings.persistent
        return cls(
            backend,
            schema_version=persistent.CACHE_SCHEMA_VERSION,
            key_prefix=persistent.CACHE_PERSISTENT_KEY_PREFIX,
            version_key=persistent.CACHE_PERSISTENT_VERSION_KEY,
            capacity_bytes=persistent.CACHE_PERSISTENT_CAPACITY_BYTES,
            max_item_fraction=persistent.CACHE_PERSISTENT_MAX_ITEM_FRACTION,
            prune_threshold=persistent.CACHE_PERSISTENT_PRUNE_THRESHOLD,
            prune_ratio=persistent.CACHE_PERSISTENT_PRUNE_RATIO,
            clock=clock,
            metrics=metrics,
        )

    @property
    def available(self) -> bool:
        return self._backend is not None and self._available

    @property
    def max_item_bytes(self) -> int:
        return self._max_item_bytes

    def default_ttl(self, category: Category) -> float:
        return self._default_ttls[category]

    # -------------------------------------------------------------------------
    # Key layout
    # -------------------------------------------------------------------------

    def storage_key(self, key: str, category: Category) -> str:
        return f"{self._key_prefix}{category.value}:{key}"

    def _parse_storage_key(self, storage_key: str) -> tuple[str, str]:
        """Split a storage key back into (category value, cache key)."""
        category, _, key = storage_key[len(self._key_prefix):].partition(":")
        return category, key

    async def _namespace_keys(self, category: Category | None = None) -> list[str]:
        scope = f"{category.value}:" if category is not None else ""
        return await self._backend.scan_keys(f"{self._key_prefix}{scope}*")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Connect, then reconcile the stored schema version.

        STAGE-0.2: Persistent tier initialization

        A missing or different version marker purges every namespaced entry and
        rewrites the marker. A matching marker prunes expired entries instead.
        """
        if self._backend is None:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent tier disabled")
            return

        try:
            await self._backend.connect()
        except CacheError as e:
            self._available = False
            log_stage(
                logger,
                Stage.PERSISTENT_CACHE,
                "Persistent backend unavailable, continuing with ephemeral tier only",
                level="warning",
                error=str(e),
            )
            return

        self._available = True

        try:
            try:
                await self._check_version()
            except CacheVersionMismatchError as e:
                purged = await self._purge_namespace()
                await self._backend.set(self._version_key, self._schema_version)
                log_stage(
                    logger,
                    Stage.PERSISTENT_CACHE,
                    "Persistent schema version changed, tier purged",
                    level="warning",
                    purged=purged,
                    **e.details,
                )
            else:
                pruned = await self.prune_expired()
                log_stage(
                    logger,
                    Stage.PERSISTENT_CACHE,
                    "Persistent tier ready",
                    schema_version=self._schema_version,
                    pruned=pruned,
                )
        except CacheError as e:
            self._available = False
            log_stage(
                logger,
                Stage.PERSISTENT_CACHE,
                "Persistent tier initialization failed",
                level="error",
                error=str(e),
            )

    async def _check_version(self) -> None:
        stored = await self._backend.get(self._version_key)
        if stored != self._schema_version:
            raise CacheVersionMismatchError(
                "Persistent schema version mismatch",
                details={"stored_version": stored, "expected_version": self._schema_version},
            )

    async def _purge_namespace(self) -> int:
        keys = await self._namespace_keys()
        if not keys:
            return 0
        return await self._backend.delete(*keys)

    async def close(self) -> None:
        if self._backend is None:
            return
        try:
            await self._backend.disconnect()
        except CacheError as e:
            log_stage(logger, Stage.SHUTDOWN, "Persistent backend disconnect failed", level="warning", error=str(e))
        self._available = False

    # -------------------------------------------------------------------------
    # Envelope codec
    # -------------------------------------------------------------------------

    def _encode(self, entry: CacheEntry) -> bytes:
        envelope = {
            "data": entry.value,
            "created_at": entry.created_at,
            "fresh_until": entry.fresh_until,
            "expires_at": entry.expires_at,
            "category": entry.category.value,
            "priority": entry.priority.value,
            "schema_version": self._schema_version,
        }
        try:
            return orjson.dumps(envelope, default=_encode_default)
        except orjson.JSONEncodeError as e:
            raise CacheSerializationError.from_exception(
                e, message=f"Value cannot be persisted: {e}", key=entry.key
            ) from e

    def _decode(self, raw: str | bytes, storage_key: str) -> PersistedEnvelope:
        try:
            envelope = PersistedEnvelope.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise CacheSerializationError.from_exception(
                e, message="Persisted envelope is undecodable", key=storage_key
            ) from e
        if envelope.schema_version != self._schema_version:
            raise CacheSerializationError(
                "Persisted envelope has a stale schema version",
                key=storage_key,
                details={"schema_version": envelope.schema_version},
            )
        return envelope

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str, category: Category) -> CacheEntry | None:
        if not self.available:
            return None

        storage_key = self.storage_key(key, category)
        try:
            raw = await self._backend.get(storage_key)
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_LOOKUP, "Persistent read failed", level="warning",
                      key=short_key(key), error=str(e))
            return None

        if raw is None:
            return None

        try:
            envelope = self._decode(raw, storage_key)
        except CacheSerializationError as e:
            log_stage(logger, Stage.PERSISTENT_LOOKUP, "Dropping unreadable persistent entry",
                      level="warning", key=short_key(key), error=e.message)
            await self._safe_delete(storage_key)
            return None

        if self._clock() > envelope.expires_at:
            await self._safe_delete(storage_key)
            return None

        log_stage(logger, Stage.PERSISTENT_LOOKUP, "Persistent hit", level="debug", key=short_key(key))
        return CacheEntry(
            key=key,
            value=envelope.data,
            created_at=envelope.created_at,
            fresh_until=envelope.fresh_until,
            expires_at=envelope.expires_at,
            category=envelope.category,
            priority=envelope.priority,
            size_bytes=len(raw),
        )

    async def entry_count(self) -> int:
        if not self.available:
            return 0
        try:
            return len(await self._namespace_keys())
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent count failed", level="warning", error=str(e))
            return 0

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        *,
        category: Category,
        priority: Priority,
        ttl: float | None = None,
        stale_tolerance: float = 0.0,
    ) -> CacheEntry | None:
        """
        Persist value. Returns the stored entry, or None if nothing was written.
        """
        if not self.available:
            return None

        entry = CacheEntry.create(
            key,
            value,
            now=self._clock(),
            ttl=ttl if ttl is not None else self.default_ttl(category),
            stale_tolerance=stale_tolerance,
            category=category,
            priority=priority,
            size_bytes=0,
        )
        return await self._write(entry)

    async def promote(self, entry: CacheEntry) -> None:
        now = self._clock()
        tolerance = entry.expires_at - entry.fresh_until
        fresh_cap = now + self.default_ttl(entry.category)
        await self._write(entry.clamped(fresh_until=fresh_cap, expires_at=fresh_cap + tolerance))

    async def _write(self, entry: CacheEntry) -> CacheEntry | None:
        if not self.available:
            return None

        try:
            encoded = self._encode(entry)
            self._check_capacity(entry.key, len(encoded))
        except CacheSerializationError as e:
            log_stage(logger, Stage.WRITE_BACK, "Skipping persistent write", level="warning",
                      key=short_key(entry.key), error=e.message)
            return None
        except CacheCapacityError as e:
            self.capacity_rejections += 1
            if self._metrics is not None:
                self._metrics.record_capacity_rejection()
            log_stage(logger, Stage.WRITE_BACK, "Item too large for persistent tier", level="warning",
                      key=short_key(entry.key), **e.details)
            return None

        expires_in = math.ceil(entry.expires_at - self._clock())
        if expires_in <= 0:
            return None

        try:
            await self._prune_if_full()
            await self._backend.set(
                self.storage_key(entry.key, entry.category), encoded.decode("utf-8"), ttl=expires_in
            )
        except CacheError as e:
            log_stage(logger, Stage.WRITE_BACK, "Persistent write failed", level="warning",
                      key=short_key(entry.key), error=str(e))
            return None

        return dataclasses.replace(entry, size_bytes=len(encoded))

    def _check_capacity(self, key: str, size_bytes: int) -> None:
        if size_bytes > self._max_item_bytes:
            raise CacheCapacityError(
                "Item exceeds persistent per-item limit",
                key=key,
                details={"size_bytes": size_bytes, "max_item_bytes": self._max_item_bytes},
            )

    async def _prune_if_full(self) -> int:
        """
        Drop the oldest prune_ratio of entries once more than prune_threshold are stored.

        Age is by created_at, regardless of remaining TTL. Unreadable entries
        sort first.
        """
        keys = await self._namespace_keys()
        if len(keys) <= self._prune_threshold:
            return 0

        aged: list[tuple[float, str]] = []
        for storage_key in keys:
            raw = await self._backend.get(storage_key)
            try:
                created_at = self._decode(raw, storage_key).created_at if raw is not None else 0.0
            except CacheSerializationError:
                created_at = 0.0
            aged.append((created_at, storage_key))

        aged.sort()
        doomed = [storage_key for _, storage_key in aged[: math.ceil(len(aged) * self._prune_ratio)]]
        removed = await self._backend.delete(*doomed)
        log_stage(logger, Stage.PERSISTENT_CACHE, "Pruned oldest persistent entries",
                  removed=removed, stored=len(keys))
        return removed

    async def _safe_delete(self, storage_key: str) -> None:
        try:
            await self._backend.delete(storage_key)
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent delete failed", level="warning", error=str(e))

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    async def delete(self, key: str, category: Category | None = None) -> bool:
        if not self.available:
            return False
        try:
            if category is not None:
                return await self._backend.delete(self.storage_key(key, category)) > 0
            doomed = [k for k in await self._namespace_keys() if self._parse_storage_key(k)[1] == key]
            return bool(doomed) and await self._backend.delete(*doomed) > 0
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent delete failed", level="warning", error=str(e))
            return False

    async def invalidate(self, target: str) -> int:
        """Remove entries matching a category name, exact key or key prefix."""
        if not self.available:
            return 0
        try:
            doomed = []
            for storage_key in await self._namespace_keys():
                category, key = self._parse_storage_key(storage_key)
                if category == target or key.startswith(target):
                    doomed.append(storage_key)
            if not doomed:
                return 0
            return await self._backend.delete(*doomed)
        except CacheError as e:
            log_stage(logger, Stage.INVALIDATION, "Persistent invalidation failed", level="warning", error=str(e))
            return 0

    async def prune_expired(self) -> int:
        """Remove expired and unreadable entries."""
        if not self.available:
            return 0
        now = self._clock()
        doomed = []
        try:
            for storage_key in await self._namespace_keys():
                raw = await self._backend.get(storage_key)
                if raw is None:
                    continue
                try:
                    if now > self._decode(raw, storage_key).expires_at:
                        doomed.append(storage_key)
                except CacheSerializationError:
                    doomed.append(storage_key)
            if not doomed:
                return 0
            return await self._backend.delete(*doomed)
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent prune failed", level="warning", error=str(e))
            return 0

    async def clear(self) -> int:
        if not self.available:
            return 0
        try:
            return await self._purge_namespace()
        except CacheError as e:
            log_stage(logger, Stage.PERSISTENT_CACHE, "Persistent clear failed", level="warning", error=str(e))
            return 0

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        if self._backend is None:
            return {"status": "disabled"}
        if not self._available:
            return {"status": "unavailable"}
        backend_health = await self._backend.health_check()
        return {
            "status": backend_health.get("status", "unknown"),
            "schema_version": self._schema_version,
            "entries": await self.entry_count(),
            "capacity_rejections": self.capacity_rejections,
            "backend": backend_health,
        }
