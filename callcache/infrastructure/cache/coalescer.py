"""
Request Coalescer

Tracks at most one in-flight remote call per cache key so that concurrent
fetches for the same key share a single invocation.

STAGE-3.0: Coalescing

A pending operation older than max_age is treated as leaked: lookup() and
sweep() drop it so a call that never settles cannot block its key forever.
Releasing only removes the entry the caller registered, so a late
done-callback from a replaced call cannot unregister its successor.

Author: System Architect
Date: 2026-03-02
"""

import asyncio
import time
from collections.abc import Callable

from callcache.core.config.constants import PENDING_MAX_AGE, Category, Stage
from callcache.core.logging.logger import get_logger, log_stage, short_key
from callcache.infrastructure.cache.models import PendingOperation

logger = get_logger(__name__)


class Coalescer:
    """
    Registry of in-flight remote calls keyed by cache key.

    Usage:
        pending = coalescer.lookup(key)
        if pending is not None:
            return await asyncio.shield(pending.future)
        task = asyncio.create_task(call())
        coalescer.register(key, task, signature="getMyUserProfile")
    """

    def __init__(self, max_age: float = PENDING_MAX_AGE, clock: Callable[[], float] = time.time):
        self._pending: dict[str, PendingOperation] = {}
        self._max_age = max_age
        self._clock = clock

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def register(
        self,
        key: str,
        future: asyncio.Future,
        signature: str = "",
        category: Category | None = None,
    ) -> PendingOperation:
        now = self._clock()
        operation = PendingOperation(
            key=key,
            future=future,
            started_at=now,
            expires_at=now + self._max_age,
            signature=signature,
            category=category,
        )
        self._pending[key] = operation
        return operation

    def lookup(self, key: str) -> PendingOperation | None:
        operation = self._pending.get(key)
        if operation is None:
            return None
        if operation.is_stale(self._clock()):
            del self._pending[key]
            log_stage(
                logger,
                Stage.COALESCING,
                "Released stale pending operation",
                level="warning",
                key=short_key(key),
                signature=operation.signature,
            )
            return None
        return operation

    def is_pending(self, key: str) -> bool:
        return self.lookup(key) is not None

    def __contains__(self, key: str) -> bool:
        """Non-mutating liveness check, safe to call while another map is being iterated."""
        operation = self._pending.get(key)
        return operation is not None and not operation.is_stale(self._clock())

    def release_matching(self, predicate: Callable[[PendingOperation], bool]) -> int:
        """Forget pending operations selected by predicate. Their tasks keep running."""
        doomed = [key for key, operation in self._pending.items() if predicate(operation)]
        for key in doomed:
            del self._pending[key]
        return len(doomed)

    def release(self, key: str, future: asyncio.Future | None = None) -> bool:
        operation = self._pending.get(key)
        if operation is None:
            return False
        if future is not None and operation.future is not future:
            return False
        del self._pending[key]
        return True

    def sweep(self) -> int:
        """Drop every pending operation older than max_age."""
        now = self._clock()
        stale = [key for key, operation in self._pending.items() if operation.is_stale(now)]
        for key in stale:
            del self._pending[key]
        if stale:
            log_stage(logger, Stage.COALESCING, "Swept stale pending operations", level="warning", count=len(stale))
        return len(stale)

    def clear(self) -> None:
        self._pending.clear()

    def futures(self) -> list[asyncio.Future]:
        return [operation.future for operation in self._pending.values()]
