"""
Kernel services: the imperative shell around the pure domain core.

Only the TransactionCoordinator commits; every other service flushes within
the session it is handed.
"""

from jobclock_kernel.services.audit_logger import JobAuditLogger
from jobclock_kernel.services.inventory_service import InventoryAssignmentService
from jobclock_kernel.services.job_service import JobService
from jobclock_kernel.services.lifecycle_controller import JobLifecycleController
from jobclock_kernel.services.lock_registry import KeyedLockRegistry
from jobclock_kernel.services.product_service import ProductService
from jobclock_kernel.services.transaction_coordinator import (
    JobTransaction,
    TransactionCoordinator,
)

__all__ = [
    "InventoryAssignmentService",
    "JobAuditLogger",
    "JobLifecycleController",
    "JobService",
    "JobTransaction",
    "KeyedLockRegistry",
    "ProductService",
    "TransactionCoordinator",
]
