"""
Data Transfer Objects for the jobclock kernel.

Responsibility:
    Frozen value objects that cross the boundary between the ORM shell and
    the pure domain core, and the discriminated results returned to callers.

Architecture position:
    Kernel > Domain -- pure data, no I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Quantities are Decimal, timestamps are timezone-aware.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from jobclock_kernel.exceptions import ErrorKind
from jobclock_kernel.models.job import JobStatus
from jobclock_kernel.models.job_log import JobLogAction


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReportedInventory:
    """One caller-supplied ``{productId, onHandQuantityAfter}`` pair.

    ``on_hand_after`` is left as supplied (str, int, float or Decimal); the
    reconciler decides whether it is well formed.
    """

    product_id: UUID
    on_hand_after: object


# ---------------------------------------------------------------------------
# Snapshots read under lock
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobState:
    """Locked snapshot of the fields the lifecycle rules read."""

    job_id: UUID
    primary_worker_id: UUID
    secondary_worker_ids: frozenset[UUID]
    status: JobStatus
    scheduled_start: datetime
    clock_in_at: datetime | None
    clock_out_at: datetime | None

    def is_assigned(self, worker_id: UUID) -> bool:
        return worker_id == self.primary_worker_id or worker_id in self.secondary_worker_ids


@dataclass(frozen=True)
class InventoryHolding:
    """A worker's current on-hand quantity of one product."""

    worker_id: UUID
    product_id: UUID
    product_name: str
    unit: str
    quantity: Decimal


# ---------------------------------------------------------------------------
# Per-product outcomes
# ---------------------------------------------------------------------------


class OutcomeStatus(str, Enum):
    RECONCILED = "RECONCILED"
    SKIPPED = "SKIPPED"


class SkipReason(str, Enum):
    """Why a reported product produced no usage."""

    NO_INVENTORY_ROW = "NO_INVENTORY_ROW"
    NO_CONSUMPTION = "NO_CONSUMPTION"
    REPORTED_INCREASE = "REPORTED_INCREASE"
    INVALID_QUANTITY = "INVALID_QUANTITY"


@dataclass(frozen=True)
class ProductOutcome:
    """What clock-out did with one reported product."""

    product_id: UUID
    status: OutcomeStatus
    skip_reason: SkipReason | None = None
    before: Decimal | None = None
    after: Decimal | None = None
    used: Decimal | None = None

    @classmethod
    def reconciled(
        cls, product_id: UUID, before: Decimal, after: Decimal, used: Decimal
    ) -> "ProductOutcome":
        return cls(
            product_id=product_id,
            status=OutcomeStatus.RECONCILED,
            before=before,
            after=after,
            used=used,
        )

    @classmethod
    def skipped(
        cls,
        product_id: UUID,
        reason: SkipReason,
        before: Decimal | None = None,
        after: Decimal | None = None,
    ) -> "ProductOutcome":
        return cls(
            product_id=product_id,
            status=OutcomeStatus.SKIPPED,
            skip_reason=reason,
            before=before,
            after=after,
        )

    @property
    def is_reconciled(self) -> bool:
        return self.status == OutcomeStatus.RECONCILED


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClockResult:
    """
    Discriminated result of Clock-In / Clock-Out.

    ``success`` is True with no error fields, or False with ``error_kind``
    and a pre-formatted, user-facing ``message``.
    """

    success: bool
    job_id: UUID | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    minutes_remaining: int | None = None
    outcomes: tuple[ProductOutcome, ...] = field(default_factory=tuple)

    @classmethod
    def ok(
        cls, job_id: UUID, outcomes: tuple[ProductOutcome, ...] = ()
    ) -> "ClockResult":
        return cls(success=True, job_id=job_id, outcomes=outcomes)

    @classmethod
    def failure(
        cls,
        job_id: UUID | None,
        error_kind: ErrorKind,
        message: str,
        minutes_remaining: int | None = None,
        outcomes: tuple[ProductOutcome, ...] = (),
    ) -> "ClockResult":
        return cls(
            success=False,
            job_id=job_id,
            error_kind=error_kind,
            message=message,
            minutes_remaining=minutes_remaining,
            outcomes=outcomes,
        )

    @property
    def reconciled(self) -> tuple[ProductOutcome, ...]:
        return tuple(o for o in self.outcomes if o.is_reconciled)

    @property
    def skipped(self) -> tuple[ProductOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.is_reconciled)


@dataclass(frozen=True)
class AtomicResult:
    """Result of TransactionCoordinator.run_atomic()."""

    success: bool
    applied: int = 0
    error_kind: ErrorKind | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JobView:
    job_id: UUID
    primary_worker_id: UUID
    secondary_worker_ids: frozenset[UUID]
    client_name: str
    status: JobStatus
    scheduled_start: datetime
    scheduled_end: datetime | None
    clock_in_at: datetime | None
    clock_out_at: datetime | None


@dataclass(frozen=True)
class UsageView:
    job_id: UUID
    product_id: UUID
    product_name: str
    unit: str
    quantity: Decimal
    inventory_before: Decimal | None
    inventory_after: Decimal | None


@dataclass(frozen=True)
class JobLogEntry:
    """A single entry in a job's audit trail."""

    job_id: UUID
    seq: int
    actor_id: UUID
    action: JobLogAction
    description: str
    field: str | None
    old_value: str | None
    new_value: str | None
    created_at: datetime
    hash: str
