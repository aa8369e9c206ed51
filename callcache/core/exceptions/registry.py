"""
Operation Registry Exceptions

Raised when a fetch names an operation the registry does not know, or when an
operation is registered twice. These are configuration errors and surface to
the caller before any cache work happens.

Author: System Architect
Date: 2026-03-02
"""

from callcache.core.exceptions.base import ConfigurationError


class OperationRegistryError(ConfigurationError):
    """Base exception for operation registry errors."""
    pass


class UnknownOperationError(OperationRegistryError):
    """Raised when fetch() names an operation that was never registered."""

    def __init__(self, operation: str):
        super().__init__(
            f"Unknown operation: {operation}",
            details={"operation": operation},
        )
        self.operation = operation


class DuplicateOperationError(OperationRegistryError):
    """Raised when the same operation name is registered twice."""

    def __init__(self, operation: str):
        super().__init__(
            f"Operation already registered: {operation}",
            details={"operation": operation},
        )
        self.operation = operation
