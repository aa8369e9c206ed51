"""
Stale-While-Revalidate

Classifies entries as fresh, stale or expired and runs at most one
background refresh per key for stale hits.

STAGE-SWR: Revalidation

Classification:
    FRESH:   now <= fresh_until
    STALE:   fresh_until < now <= expires_at (= fresh_until + stale tolerance)
    EXPIRED: now > expires_at

A refresh is skipped while the coalescer already holds a pending operation
for the key; the refresh itself registers through the coalescer, so the
foreground and background paths can never run two remote calls for one key.

Author: System Architect
Date: 2026-03-02
"""

import asyncio
from collections.abc import Awaitable, Callable

from callcache.core.config.constants import STALE_TOLERANCE, Category, Freshness, Stage
from callcache.core.logging.logger import get_logger, log_stage, short_key
from callcache.infrastructure.cache.coalescer import Coalescer
from callcache.infrastructure.cache.models import CacheEntry

logger = get_logger(__name__)


class StaleRevalidator:
    """
    Freshness classifier and background refresh runner.

    Usage:
        revalidator = StaleRevalidator(coalescer)
        if revalidator.classify(entry, now) is Freshness.STALE:
            revalidator.revalidate(key, lambda: orchestrator.refresh(...))
    """

    def __init__(
        self,
        coalescer: Coalescer,
        tolerances: dict[Category, float] | None = None,
    ):
        self._coalescer = coalescer
        self._tolerances = tolerances or STALE_TOLERANCE
        self._tasks: set[asyncio.Task] = set()
        self._keys: set[str] = set()

    def stale_tolerance_for(self, category: Category) -> float:
        return self._tolerances[category]

    def classify(self, entry: CacheEntry, now: float) -> Freshness:
        if now <= entry.fresh_until:
            return Freshness.FRESH
        if now <= entry.expires_at:
            return Freshness.STALE
        return Freshness.EXPIRED

    @property
    def in_progress(self) -> int:
        return len(self._tasks)

    def revalidate(self, key: str, start: Callable[[], Awaitable[object]]) -> asyncio.Task | None:
        """
        Launch one background refresh for key unless one is already pending.

        Args:
            key: Cache key being refreshed
            start: Coroutine factory performing the refresh through the coalescer

        Returns:
            The background task, or None if a refresh was already in flight
        """
        if key in self._keys or self._coalescer.is_pending(key):
            return None

        self._keys.add(key)
        task = asyncio.create_task(self._run(key, start))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: self._keys.discard(key))
        log_stage(logger, Stage.REVALIDATION, "Background refresh scheduled", level="debug", key=short_key(key))
        return task

    async def _run(self, key: str, start: Callable[[], Awaitable[object]]) -> None:
        try:
            await start()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_stage(
                logger,
                Stage.REVALIDATION,
                "Background refresh failed, keeping stale entry",
                level="warning",
                key=short_key(key),
                error=str(e),
                error_type=type(e).__name__,
            )

    async def wait_idle(self) -> None:
        """Wait for every outstanding background refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()

    async def drain(self, timeout: float) -> int:
        """
        Wait up to timeout seconds for outstanding refreshes, then cancel the rest.

        Returns:
            Number of refreshes that had to be cancelled
        """
        if not self._tasks:
            return 0
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            log_stage(
                logger,
                Stage.REVALIDATION,
                "Cancelling background refreshes at shutdown",
                level="warning",
                count=len(still_running),
            )
            await self.cancel_all()
        return len(still_running)
