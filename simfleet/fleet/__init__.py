"""
SimFleet Fleet - Instance registry, bulk operations, and confirmation gating.
"""

from .registry import InstanceRegistry
from .executor import (
    BULK_OPERATIONS,
    BulkOperation,
    BulkOperationExecutor,
    POWER_OFF_ALL,
    POWER_ON_ALL,
    RUN_ALL,
    STOP_ALL,
)
from .confirmation import AutoConfirm, CallbackGate, ConfirmationGate, Decision

__all__ = [
    # Registry
    "InstanceRegistry",
    # Bulk operations
    "BulkOperation",
    "BulkOperationExecutor",
    "BULK_OPERATIONS",
    "POWER_ON_ALL",
    "POWER_OFF_ALL",
    "RUN_ALL",
    "STOP_ALL",
    # Confirmation
    "ConfirmationGate",
    "AutoConfirm",
    "CallbackGate",
    "Decision",
]
