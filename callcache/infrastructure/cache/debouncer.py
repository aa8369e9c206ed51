"""
Remote Call Debouncer

Enforces a minimum interval between remote calls of the same operation.
While an operation is inside its interval, the orchestrator serves whatever
non-expired entry the tiers hold instead of calling the remote again, even
for a forced refresh.

STAGE-3.1: Debounce

An interval of 0 (the default) never defers.

Author: System Architect
Date: 2026-03-02
"""

from collections.abc import Mapping


class Debouncer:
    """
    Per-operation minimum interval tracker.

    Usage:
        debouncer = Debouncer({"getMyNotifications": 1.5})
        if not debouncer.should_defer("getMyNotifications", now):
            debouncer.record_attempt("getMyNotifications", now)
            ...
    """

    def __init__(self, intervals: Mapping[str, float] | None = None, default_interval: float = 0.0):
        self._intervals: dict[str, float] = dict(intervals or {})
        self._default_interval = default_interval
        self._last_attempt: dict[str, float] = {}

    def configure(self, operation: str, interval: float) -> None:
        if interval < 0:
            raise ValueError(f"Debounce interval must not be negative, got {interval}")
        self._intervals[operation] = interval

    def interval_for(self, operation: str) -> float:
        return self._intervals.get(operation, self._default_interval)

    def should_defer(self, operation: str, now: float) -> bool:
        interval = self.interval_for(operation)
        if interval <= 0:
            return False
        last = self._last_attempt.get(operation)
        return last is not None and now - last < interval

    def record_attempt(self, operation: str, now: float) -> None:
        self._last_attempt[operation] = now

    def reset(self, operation: str | None = None) -> None:
        if operation is None:
            self._last_attempt.clear()
        else:
            self._last_attempt.pop(operation, None)
