#!/usr/bin/env python3
"""
Cache Orchestrator

Single entry point between application call sites and the remote
collaborator.

Architecture:
    CacheOrchestrator (Public API)
        ├── CacheKeyBuilder (canonical keys)
        ├── Tiers, probed in order (CacheProvider)
        │   ├── EphemeralTier (in-process)
        │   └── PersistentCache (durable envelopes)
        ├── Coalescer (one in-flight call per key)
        ├── Debouncer (minimum interval per operation)
        ├── StaleRevalidator (background refresh of stale hits)
        └── MetricsCollector (Prometheus)

Fetch state machine:
    IDLE → KEY_BUILT → FRESH_HIT
                     → STALE_HIT (schedules one background refresh)
                     → COALESCED (awaits the shared call)
                     → DEBOUNCED (forced refresh served from cache)
                     → MISS → IN_FLIGHT → SETTLED_SUCCESS | SETTLED_FAILURE

Every remote call runs as its own task registered in the coalescer. The task
writes its result to every tier before it completes, so all waiters resolve
after the write. Callers await it through asyncio.shield: a cancelled caller
never cancels the shared call. A failed call writes nothing.

Author: System Architect
Date: 2026-03-02
"""

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from callcache.core.config.constants import (
    DEFAULT_PRIORITY,
    STALE_TOLERANCE,
    CacheTier,
    Category,
    FetchState,
    Freshness,
    Priority,
    Stage,
)
from callcache.core.config.settings import Settings, get_settings
from callcache.core.interfaces.cache import CacheBackend, CacheProvider, InMemoryBackend
from callcache.core.logging.logger import get_logger, log_stage, short_key
from callcache.infrastructure.cache.coalescer import Coalescer
from callcache.infrastructure.cache.debouncer import Debouncer
from callcache.infrastructure.cache.ephemeral import EphemeralCache, EphemeralTier
from callcache.infrastructure.cache.key_builder import CacheKeyBuilder
from callcache.infrastructure.cache.models import CacheEntry, PendingOperation
from callcache.infrastructure.cache.persistent import PersistentCache
from callcache.infrastructure.cache.redis_client import RedisClient
from callcache.infrastructure.cache.revalidator import StaleRevalidator
from callcache.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)

if TYPE_CHECKING:
    from callcache.application.registry import OperationRegistry, OperationSpec

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchOptions:
    """
    Per-call overrides.

    Attributes:
        ttl: Fresh lifetime in seconds, applied to every tier
        priority: Eviction priority
        force_refresh: Skip the tier lookup (the debouncer may still serve cache)
        category: Category override (changes TTL, tolerance and priority defaults)
    """

    ttl: float | None = None
    priority: Priority | None = None
    force_refresh: bool = False
    category: Category | None = None

    def __post_init__(self):
        if self.ttl is not None and self.ttl <= 0:
            raise ValueError(f"ttl must be positive, got {self.ttl}")


@dataclass(frozen=True)
class FetchResult:
    """Value returned by fetch_detailed() with the path that produced it."""

    value: Any
    state: FetchState
    key: str
    tier: CacheTier | None = None


@dataclass(frozen=True)
class _CallPlan:
    spec: "OperationSpec"
    key: str
    args: Mapping[str, Any] | None
    identity: str | None
    category: Category
    priority: Priority
    ttl: float | None


@dataclass(eq=False)
class _Flight:
    """A launched remote call. An invalidated flight settles without writing back."""

    plan: _CallPlan
    task: asyncio.Task | None = None
    invalidated: bool = False

    def matches(self, target: str) -> bool:
        return _matches(self.plan.key, self.plan.category, target)


def _matches(key: str, category: Category | None, target: str) -> bool:
    return key.startswith(target) or (category is not None and category.value == target)


class CacheOrchestrator:
    """
    Multi-tier cache and request-coalescing engine.

    Usage:
        orchestrator = CacheOrchestrator.from_settings(build_default_registry(invoker))
        await orchestrator.initialize()

        profile = await orchestrator.fetch("getMyUserProfile", identity="u1")
        slots = await orchestrator.fetch(
            "getAvailableSlots",
            {"doctorId": "d1", "date": "2026-03-02"},
            options=FetchOptions(force_refresh=True),
        )

        await orchestrator.invalidate("availability")
        stats = await orchestrator.get_stats()

        await orchestrator.shutdown()
    """

    def __init__(
        self,
        registry: "OperationRegistry",
        ephemeral: EphemeralCache | None = None,
        persistent: PersistentCache | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
        metrics: MetricsCollector | None = None,
        key_builder: CacheKeyBuilder | None = None,
    ):
        """
        Initialize the orchestrator.

        STAGE-0.1: Orchestrator construction

        Args:
            registry: Operation registry resolving every fetch
            ephemeral: In-process tier (built from settings if omitted)
            persistent: Durable tier (None = ephemeral only)
            settings: Settings (global settings if omitted)
            clock: Time source in seconds, shared by every component
            metrics: Prometheus collector
            key_builder: Cache key builder
        """
        self._settings = settings or get_settings()
        self._registry = registry
        self._clock = clock
        self._metrics = metrics or get_metrics_collector()
        self._keys = key_builder or CacheKeyBuilder()

        coalescing = self._settings.coalescing
        self._coalescer = Coalescer(max_age=coalescing.CACHE_PENDING_MAX_AGE, clock=clock)

        intervals = registry.debounce_intervals()
        intervals.update(coalescing.CACHE_DEBOUNCE_INTERVALS)
        self._debouncer = Debouncer(intervals)
        self._revalidator = StaleRevalidator(self._coalescer, STALE_TOLERANCE)

        if ephemeral is None:
            eph = self._settings.ephemeral
            ephemeral = EphemeralCache(
                max_entries=eph.CACHE_EPHEMERAL_MAX_ENTRIES,
                max_size_bytes=eph.CACHE_EPHEMERAL_MAX_SIZE_BYTES,
                target_ratio=eph.CACHE_EVICTION_TARGET_RATIO,
                clock=clock,
            )
        ephemeral.set_pin_check(self._coalescer.__contains__)
        ephemeral.set_eviction_listener(self._metrics.record_evictions)
        self._ephemeral = ephemeral
        self._persistent = persistent

        self._tiers: list[CacheProvider] = [EphemeralTier(ephemeral, clock=clock)]
        if persistent is not None:
            self._tiers.append(persistent)

        self._enabled = self._settings.ENABLE_CACHING
        self._serve_stale_on_error = coalescing.CACHE_SERVE_STALE_ON_ERROR
        self._maintenance_interval = coalescing.CACHE_MAINTENANCE_INTERVAL
        self._shutdown_timeout = coalescing.CACHE_SHUTDOWN_TIMEOUT
        self._maintenance_task: asyncio.Task | None = None
        self._initialized = False

        # Remote calls still running, including ones released from the
        # coalescer by invalidation.
        self._flights: set[_Flight] = set()

        self._hits = 0
        self._stale_hits = 0
        self._misses = 0
        self._coalesced = 0
        self._debounced = 0
        self._remote_failures = 0

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache orchestrator created",
            tiers=[tier.tier.value for tier in self._tiers],
            operations=len(registry),
            caching_enabled=self._enabled,
        )

    @classmethod
    def from_settings(
        cls,
        registry: "OperationRegistry",
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.time,
        backend: CacheBackend | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "CacheOrchestrator":
        """
        Build an orchestrator whose persistent backend follows CACHE_PERSISTENT_BACKEND.

        An explicit backend takes precedence over the setting.
        """
        settings = settings or get_settings()
        metrics = metrics or get_metrics_collector()

        if backend is None:
            kind = settings.persistent.CACHE_PERSISTENT_BACKEND
            if kind == "redis":
                backend = RedisClient(settings)
            elif kind == "memory":
                backend = InMemoryBackend(clock=clock)

        persistent = (
            PersistentCache.from_settings(backend, settings, clock=clock, metrics=metrics)
            if backend is not None
            else None
        )
        return cls(registry, persistent=persistent, settings=settings, clock=clock, metrics=metrics)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def registry(self) -> "OperationRegistry":
        return self._registry

    @property
    def ephemeral(self) -> EphemeralCache:
        return self._ephemeral

    @property
    def persistent(self) -> PersistentCache | None:
        return self._persistent

    @property
    def coalescer(self) -> Coalescer:
        return self._coalescer

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def revalidator(self) -> StaleRevalidator:
        return self._revalidator

    @property
    def tiers(self) -> list[CacheProvider]:
        return list(self._tiers)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Reconcile the persistent tier and start the maintenance loop.

        STAGE-0.2: Tier initialization
        """
        if self._initialized:
            return

        if self._persistent is not None:
            await self._persistent.initialize()

        if self._maintenance_interval > 0:
            self._maintenance_task = asyncio.create_task(self._maintenance_loop())

        self._initialized = True
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache orchestrator initialized",
            persistent_available=bool(self._persistent and self._persistent.available),
        )

    async def shutdown(self) -> None:
        """
        Stop maintenance, drain background refreshes and close the backend.

        STAGE-6.0: Shutdown

        Refreshes get CACHE_SHUTDOWN_TIMEOUT seconds to settle before they
        are cancelled. Remote calls still running after that are cancelled
        too, and their waiters see CancelledError.
        """
        if self._maintenance_task is not None:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass
            self._maintenance_task = None

        await self._revalidator.drain(self._shutdown_timeout)

        running = [flight.task for flight in self._flights if flight.task is not None and not flight.task.done()]
        if running:
            log_stage(logger, Stage.SHUTDOWN, "Cancelling unsettled remote calls", level="warning",
                      count=len(running))
            for task in running:
                task.cancel()
            await asyncio.gather(*running, return_exceptions=True)

        if self._persistent is not None:
            await self._persistent.close()

        self._ephemeral.clear()
        self._initialized = False
        log_stage(logger, Stage.SHUTDOWN, "Cache orchestrator shutdown")

    async def clear(self) -> int:
        """Remove every entry from every tier."""
        for flight in self._flights:
            flight.invalidated = True
        self._coalescer.release_matching(lambda operation: True)
        self._debouncer.reset()
        removed = 0
        for tier in self._tiers:
            removed += await tier.clear()
        log_stage(logger, Stage.INVALIDATION, "All tiers cleared", removed=removed)
        return removed

    # -------------------------------------------------------------------------
    # Fetch
    # -------------------------------------------------------------------------

    async def fetch(
        self,
        operation: str,
        args: Mapping[str, Any] | None = None,
        identity: str | None = None,
        options: FetchOptions | None = None,
    ) -> Any:
        """
        Return the result of operation(args) for identity, from cache when possible.

        Raises:
            UnknownOperationError: If operation is not registered
            Exception: Whatever the remote collaborator raised, unchanged
        """
        result = await self.fetch_detailed(operation, args, identity, options)
        return result.value

    async def fetch_detailed(
        self,
        operation: str,
        args: Mapping[str, Any] | None = None,
        identity: str | None = None,
        options: FetchOptions | None = None,
    ) -> FetchResult:
        """Like fetch(), but also reports which path served the value."""
        options = options or FetchOptions()
        self._coalescer.sweep()

        plan = self._plan(operation, args, identity, options)
        key = plan.key
        log_stage(logger, Stage.KEY_BUILD, "Key built", level="debug", operation=operation, key=short_key(key))

        # STAGE-2: tier lookup
        if self._enabled and not options.force_refresh:
            found = await self._lookup(key, plan.category)
            if found is not None:
                entry, tier = found
                freshness = self._revalidator.classify(entry, self._clock())
                if freshness is Freshness.FRESH:
                    self._hits += 1
                    self._metrics.record_cache_hit(tier.value, freshness.value)
                    return FetchResult(entry.value, FetchState.FRESH_HIT, key, tier)
                if freshness is Freshness.STALE:
                    self._hits += 1
                    self._stale_hits += 1
                    self._metrics.record_cache_hit(tier.value, freshness.value)
                    self._revalidator.revalidate(key, lambda: self._refresh(plan))
                    log_stage(logger, Stage.REVALIDATION, "Serving stale entry", level="debug", key=short_key(key))
                    return FetchResult(entry.value, FetchState.STALE_HIT, key, tier)

        # STAGE-3.0: join an in-flight call
        pending = self._coalescer.lookup(key)
        if pending is not None:
            return await self._join(pending, plan)

        # STAGE-3.1: debounce forced refreshes
        if self._enabled and options.force_refresh and self._debouncer.should_defer(operation, self._clock()):
            found = await self._lookup(key, plan.category)
            if found is not None:
                entry, tier = found
                self._debounced += 1
                self._metrics.record_debounced(operation)
                log_stage(logger, Stage.DEBOUNCE, "Forced refresh debounced", level="debug", operation=operation)
                return FetchResult(entry.value, FetchState.DEBOUNCED, key, tier)
            # The lookup suspended; another caller may have launched meanwhile.
            pending = self._coalescer.lookup(key)
            if pending is not None:
                return await self._join(pending, plan)

        # STAGE-4.0: genuine miss
        self._misses += 1
        self._metrics.record_cache_miss(operation)
        task = self._launch(plan)
        try:
            value = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception:
            if self._enabled and options.force_refresh and self._serve_stale_on_error:
                found = await self._lookup(key, plan.category)
                if found is not None:
                    entry, tier = found
                    log_stage(logger, Stage.REMOTE_CALL, "Remote failed, serving cached entry",
                              level="warning", operation=operation, key=short_key(key))
                    return FetchResult(entry.value, FetchState.STALE_HIT, key, tier)
            raise
        return FetchResult(value, FetchState.SETTLED_SUCCESS, key)

    def _plan(
        self,
        operation: str,
        args: Mapping[str, Any] | None,
        identity: str | None,
        options: FetchOptions,
    ) -> _CallPlan:
        spec = self._registry.resolve(operation)
        category = options.category or spec.category
        return _CallPlan(
            spec=spec,
            key=self._keys.build_key(operation, identity if spec.identity_scoped else None, args),
            args=args,
            identity=identity,
            category=category,
            priority=options.priority or spec.priority or DEFAULT_PRIORITY[category],
            ttl=options.ttl if options.ttl is not None else spec.ttl,
        )

    async def _join(self, pending: PendingOperation, plan: _CallPlan) -> FetchResult:
        self._coalesced += 1
        self._metrics.record_coalesced(plan.spec.name)
        log_stage(logger, Stage.COALESCING, "Joined in-flight call", level="debug", key=short_key(plan.key))
        value = await asyncio.shield(pending.future)
        return FetchResult(value, FetchState.COALESCED, plan.key)

    async def _lookup(self, key: str, category: Category) -> tuple[CacheEntry, CacheTier] | None:
        """
        Probe tiers in order, promoting a hit into every earlier tier.
        """
        for index, tier in enumerate(self._tiers):
            if not tier.available:
                continue
            entry = await tier.get(key, category)
            if entry is None:
                continue
            for upper in self._tiers[:index]:
                if upper.available:
                    await upper.promote(entry)
            return entry, tier.tier
        return None

    async def _refresh(self, plan: _CallPlan) -> Any:
        pending = self._coalescer.lookup(plan.key)
        task = pending.future if pending is not None else self._launch(plan)
        return await asyncio.shield(task)

    # -------------------------------------------------------------------------
    # Remote calls
    # -------------------------------------------------------------------------

    def _launch(self, plan: _CallPlan) -> asyncio.Task:
        """
        Start the remote call for plan and register it.

        Nothing here awaits, so the registration is visible to the next
        caller of the same key.
        """
        self._debouncer.record_attempt(plan.spec.name, self._clock())
        flight = _Flight(plan)
        task = asyncio.create_task(self._call_remote(flight))
        flight.task = task
        self._flights.add(flight)
        self._coalescer.register(plan.key, task, signature=plan.spec.name, category=plan.category)
        task.add_done_callback(lambda settled: self._on_settled(flight, settled))
        self._metrics.set_pending_operations(self._coalescer.pending_count)
        return task

    def _on_settled(self, flight: _Flight, task: asyncio.Task) -> None:
        self._flights.discard(flight)
        self._coalescer.release(flight.plan.key, task)
        self._metrics.set_pending_operations(self._coalescer.pending_count)
        if not task.cancelled():
            # Mark the exception retrieved; every live waiter re-raises it.
            task.exception()

    async def _call_remote(self, flight: _Flight) -> Any:
        plan = flight.plan
        operation = plan.spec.name
        log_stage(logger, Stage.REMOTE_CALL, "Calling remote", level="debug", operation=operation,
                  key=short_key(plan.key))
        started = time.perf_counter()
        try:
            value = await plan.spec.handler(plan.args, plan.identity)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._remote_failures += 1
            self._metrics.record_remote_call(operation, "failure", time.perf_counter() - started)
            log_stage(
                logger,
                Stage.REMOTE_CALL,
                "Remote call failed",
                level="warning",
                operation=operation,
                key=short_key(plan.key),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        self._metrics.record_remote_call(operation, "success", time.perf_counter() - started)

        if not self._enabled:
            return value
        if flight.invalidated:
            log_stage(logger, Stage.WRITE_BACK, "Skipping write-back after invalidation", level="debug",
                      key=short_key(plan.key))
            return value

        await self._write_back(plan, value)
        return value

    async def _write_back(self, plan: _CallPlan, value: Any) -> None:
        """
        Store value in every tier.

        STAGE-5.0: Write-back
        """
        tolerance = self._revalidator.stale_tolerance_for(plan.category)
        for tier in self._tiers:
            if not tier.available:
                continue
            await tier.set(
                plan.key,
                value,
                category=plan.category,
                priority=plan.priority,
                ttl=plan.ttl,
                stale_tolerance=tolerance,
            )
        log_stage(logger, Stage.WRITE_BACK, "Result cached", level="debug", key=short_key(plan.key),
                  category=plan.category.value)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate(self, target: str) -> int:
        """
        Remove entries matching an exact key, a key prefix or a category name.

        STAGE-INV: Invalidation

        In-flight calls for matching keys are forgotten and will not write
        back, so the next fetch goes to the remote. Calls for other keys are
        untouched.

        Returns:
            Number of entries removed across all tiers
        """
        for flight in self._flights:
            if flight.matches(target):
                flight.invalidated = True
        released = self._coalescer.release_matching(
            lambda operation: _matches(operation.key, operation.category, target)
        )
        removed = 0
        for tier in self._tiers:
            removed += await tier.invalidate(target)
        log_stage(logger, Stage.INVALIDATION, "Cache invalidated", target=short_key(target),
                  removed=removed, released_pending=released)
        return removed

    # -------------------------------------------------------------------------
    # Warming
    # -------------------------------------------------------------------------

    async def warm(
        self, requests: Iterable[tuple[str, Mapping[str, Any] | None, str | None]]
    ) -> int:
        """
        Prefetch a batch of (operation, args, identity) calls concurrently.

        Returns:
            Number of calls that succeeded
        """
        requests = list(requests)
        if not requests:
            return 0

        results = await asyncio.gather(
            *(self.fetch(operation, args, identity) for operation, args, identity in requests),
            return_exceptions=True,
        )
        warmed = 0
        for (operation, _, _), result in zip(requests, results):
            if isinstance(result, BaseException):
                log_stage(logger, Stage.INITIALIZATION, "Warm-up call failed", level="warning",
                          operation=operation, error_type=type(result).__name__, error=str(result))
            else:
                warmed += 1

        log_stage(logger, Stage.INITIALIZATION, "Cache warming complete", requested=len(requests), warmed=warmed)
        return warmed

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def run_maintenance(self) -> dict[str, int]:
        """Prune expired ephemeral entries and sweep stale pending operations."""
        pruned = self._ephemeral.prune_expired()
        swept = self._coalescer.sweep()
        self._metrics.set_pending_operations(self._coalescer.pending_count)
        if pruned or swept:
            log_stage(logger, Stage.MAINTENANCE, "Maintenance pass", level="debug", pruned=pruned, swept=swept)
        return {"pruned": pruned, "swept": swept}

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self._maintenance_interval)
            try:
                self.run_maintenance()
            except Exception as e:
                log_stage(logger, Stage.MAINTENANCE, "Maintenance pass failed", level="error", error=str(e))

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    async def get_stats(self) -> dict[str, Any]:
        """
        Counters for this orchestrator instance.

        Returns:
            Dict with hits, misses, evictions, pending_count,
            persistent_entry_count and the finer-grained counters
        """
        persistent_count = await self._persistent.entry_count() if self._persistent is not None else 0
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._ephemeral.evictions,
            "pending_count": self._coalescer.pending_count,
            "persistent_entry_count": persistent_count,
            "stale_hits": self._stale_hits,
            "coalesced": self._coalesced,
            "debounced": self._debounced,
            "remote_failures": self._remote_failures,
            "ephemeral_entries": len(self._ephemeral),
            "background_refreshes": self._revalidator.in_progress,
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Per-tier health.

        Returns:
            Dict with overall status ("healthy" or "degraded") and tier details
        """
        tiers = {tier.tier.value: await tier.health_check() for tier in self._tiers}
        degraded = any(
            detail.get("status") not in ("healthy", "disabled") for detail in tiers.values()
        )
        return {
            "status": "degraded" if degraded else "healthy",
            "caching_enabled": self._enabled,
            "initialized": self._initialized,
            "pending_count": self._coalescer.pending_count,
            "tiers": tiers,
        }
