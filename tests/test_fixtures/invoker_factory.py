"""
Remote Invoker Test Double

Records every remote call and lets tests hold calls open or make them fail.
"""

import asyncio
from collections import Counter
from collections.abc import Mapping
from typing import Any


class RecordingInvoker:
    """
    Fake remote collaborator.

    - calls: Counter of invocations per operation
    - failures: operation -> exception raised instead of returning
    - gate: when set to an asyncio.Event, every call waits for it
    """

    def __init__(self):
        self.calls: Counter[str] = Counter()
        self.history: list[tuple[str, Mapping[str, Any] | None, str | None]] = []
        self.failures: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def invoke(self, operation: str, args: Mapping[str, Any] | None, identity: str | None) -> Any:
        self.calls[operation] += 1
        self.history.append((operation, args, identity))
        call_number = self.calls[operation]

        if self.gate is not None:
            await self.gate.wait()

        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

        return {
            "operation": operation,
            "args": dict(args or {}),
            "identity": identity,
            "call": call_number,
        }
