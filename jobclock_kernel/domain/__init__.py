"""
Pure domain layer.

Data transfer objects, mutation intents and the lifecycle / reconciliation
rules, with NO dependencies on a database session, the wall clock, or I/O.
"""

from jobclock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from jobclock_kernel.domain.dtos import (
    AtomicResult,
    ClockResult,
    InventoryHolding,
    JobLogEntry,
    JobState,
    JobView,
    OutcomeStatus,
    ProductOutcome,
    ReportedInventory,
    SkipReason,
    UsageView,
)
from jobclock_kernel.domain.lifecycle import (
    ClockOutPlan,
    check_clock_in,
    check_clock_out,
    clock_in_opens_at,
    minutes_until,
    plan_clock_in,
    plan_clock_out,
)
from jobclock_kernel.domain.mutations import (
    AppendLog,
    Mutation,
    UpdateInventory,
    UpdateJob,
    UpsertUsage,
)
from jobclock_kernel.domain.reconciler import Reconciliation, reconcile

__all__ = [
    # Time
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # DTOs
    "AtomicResult",
    "ClockResult",
    "InventoryHolding",
    "JobLogEntry",
    "JobState",
    "JobView",
    "OutcomeStatus",
    "ProductOutcome",
    "ReportedInventory",
    "SkipReason",
    "UsageView",
    # Mutations
    "AppendLog",
    "Mutation",
    "UpdateInventory",
    "UpdateJob",
    "UpsertUsage",
    # Rules
    "ClockOutPlan",
    "Reconciliation",
    "check_clock_in",
    "check_clock_out",
    "clock_in_opens_at",
    "minutes_until",
    "plan_clock_in",
    "plan_clock_out",
    "reconcile",
]
