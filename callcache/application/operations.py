"""
Operation Catalogue

Cache policy for the remote operations the application calls. Categories
follow the data each operation returns; debounce intervals bound how often a
forced refresh may reach the remote.

Public catalogue data (doctor listings and slots) is shared across callers;
everything else is keyed per identity.

Author: System Architect
Date: 2026-03-02
"""

from typing import Any

from callcache.application.registry import OperationRegistry, RemoteInvoker
from callcache.core.config.constants import Category

DEFAULT_OPERATIONS: dict[str, dict[str, Any]] = {
    # Messages
    "getMyNotifications": {"category": Category.MESSAGE, "debounce_interval": 1.5},
    # Dashboard
    "getMyDashboardStats": {"category": Category.OTHER, "debounce_interval": 1.5},
    # Availability
    "getAvailableSlots": {
        "category": Category.AVAILABILITY,
        "identity_scoped": False,
        "debounce_interval": 1.0,
    },
    "getMyAppointments": {"category": Category.AVAILABILITY, "debounce_interval": 1.0},
    # Listings
    "findDoctors": {"category": Category.LISTING, "identity_scoped": False, "debounce_interval": 1.0},
    "getAllDoctors": {"category": Category.LISTING, "identity_scoped": False, "debounce_interval": 1.5},
    "getDoctorPublicProfile": {
        "category": Category.LISTING,
        "identity_scoped": False,
        "debounce_interval": 2.0,
    },
    # Profiles
    "getMyUserProfile": {"category": Category.PROFILE, "debounce_interval": 0.5},
    "getAllUsers": {"category": Category.PROFILE, "debounce_interval": 1.5},
    "getAllPatients": {"category": Category.PROFILE, "debounce_interval": 1.5},
    "getPatientDetails": {"category": Category.PROFILE, "debounce_interval": 1.0},
}


def build_default_registry(invoker: RemoteInvoker) -> OperationRegistry:
    """Registry for DEFAULT_OPERATIONS, every handler delegating to invoker."""
    return OperationRegistry.from_invoker(invoker, DEFAULT_OPERATIONS)
