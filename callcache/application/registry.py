"""
Operation Registry

Binds remote operation names to typed async handlers and their cache policy
once at start-up. fetch() resolves every call through the registry, so an
unknown operation fails before any cache work happens.

Handler signature:
    async def handler(args: Mapping[str, Any] | None, identity: str | None) -> Any

Author: System Architect
Date: 2026-03-02
"""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from callcache.core.config.constants import Category, Priority
from callcache.core.exceptions import DuplicateOperationError, UnknownOperationError

Handler = Callable[[Mapping[str, Any] | None, str | None], Awaitable[Any]]


@runtime_checkable
class RemoteInvoker(Protocol):
    """The remote collaborator: executes one named operation."""

    async def invoke(self, operation: str, args: Mapping[str, Any] | None, identity: str | None) -> Any:
        ...


@dataclass(frozen=True)
class OperationSpec:
    """
    One registered operation and its cache policy.

    Attributes:
        name: Operation name, also the first segment of its cache keys
        handler: Async callable performing the remote call
        category: Cache category (selects TTLs, tolerance, default priority)
        identity_scoped: Whether the caller identity is part of the key
        priority: Eviction priority override (None = category default)
        ttl: Fresh lifetime override in seconds (None = per-tier default)
        debounce_interval: Minimum seconds between remote calls
    """

    name: str
    handler: Handler
    category: Category = Category.OTHER
    identity_scoped: bool = True
    priority: Priority | None = None
    ttl: float | None = None
    debounce_interval: float = 0.0

    def __post_init__(self):
        if self.ttl is not None and self.ttl <= 0:
            raise ValueError(f"ttl for {self.name} must be positive")
        if self.debounce_interval < 0:
            raise ValueError(f"debounce_interval for {self.name} must not be negative")


class OperationRegistry:
    """
    Name → OperationSpec lookup.

    Usage:
        registry = OperationRegistry()
        registry.add("getMyUserProfile", handler, category=Category.PROFILE)
        spec = registry.resolve("getMyUserProfile")
    """

    def __init__(self, specs: list[OperationSpec] | None = None):
        self._specs: dict[str, OperationSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: OperationSpec) -> OperationSpec:
        if spec.name in self._specs:
            raise DuplicateOperationError(spec.name)
        self._specs[spec.name] = spec
        return spec

    def add(self, name: str, handler: Handler, **policy: Any) -> OperationSpec:
        return self.register(OperationSpec(name=name, handler=handler, **policy))

    def resolve(self, name: str) -> OperationSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[OperationSpec]:
        return iter(self._specs.values())

    def names(self) -> list[str]:
        return list(self._specs)

    def debounce_intervals(self) -> dict[str, float]:
        return {name: spec.debounce_interval for name, spec in self._specs.items()}

    @classmethod
    def from_invoker(
        cls, invoker: RemoteInvoker, policies: Mapping[str, Mapping[str, Any]]
    ) -> "OperationRegistry":
        """
        Build a registry whose handlers all delegate to one generic invoker.

        Args:
            invoker: Remote collaborator
            policies: Operation name → OperationSpec keyword arguments
        """
        registry = cls()
        for name, policy in policies.items():
            registry.add(name, _bind(invoker, name), **policy)
        return registry


def _bind(invoker: RemoteInvoker, operation: str) -> Handler:
    async def handler(args: Mapping[str, Any] | None, identity: str | None) -> Any:
        return await invoker.invoke(operation, args, identity)

    handler.__name__ = operation
    return handler
