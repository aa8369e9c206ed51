"""
Application Layer

Operation registry, operation catalogue and the admin HTTP surface.
"""

from callcache.application.operations import DEFAULT_OPERATIONS, build_default_registry
from callcache.application.registry import (
    OperationRegistry,
    OperationSpec,
    RemoteInvoker,
)

__all__ = [
    "DEFAULT_OPERATIONS",
    "OperationRegistry",
    "OperationSpec",
    "RemoteInvoker",
    "build_default_registry",
]
