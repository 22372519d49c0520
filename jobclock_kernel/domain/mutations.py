"""
Mutation intents -- the write set of one clock-in or clock-out.

Responsibility:
    Describe every write a lifecycle transition needs as plain immutable
    values, so the whole set can be built first (pure) and handed to the
    TransactionCoordinator to commit once.

Architecture position:
    Kernel > Domain -- pure data.  Produced by domain/lifecycle.py, consumed
    by services/transaction_coordinator.py.

Invariants enforced:
    - Mutations are frozen; the coordinator applies them in list order.
    - UpsertUsage carries a delta (``used``), never an absolute quantity,
      so usage can only grow.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Union
from uuid import UUID

from jobclock_kernel.models.job import JobStatus
from jobclock_kernel.models.job_log import JobLogAction


@dataclass(frozen=True)
class UpdateJob:
    """Set the job status and, when given, a clock timestamp."""

    job_id: UUID
    status: JobStatus
    clock_in_at: datetime | None = None
    clock_out_at: datetime | None = None


@dataclass(frozen=True)
class UpsertUsage:
    """Add ``used`` to the job's usage of a product, creating the row if absent."""

    job_id: UUID
    product_id: UUID
    used: Decimal
    inventory_before: Decimal
    inventory_after: Decimal


@dataclass(frozen=True)
class UpdateInventory:
    """Set a worker's on-hand quantity of a product."""

    worker_id: UUID
    product_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class AppendLog:
    """Append one entry to the job's audit trail."""

    job_id: UUID
    actor_id: UUID
    action: JobLogAction
    description: str
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None


Mutation = Union[UpdateJob, UpsertUsage, UpdateInventory, AppendLog]

DATA_MUTATIONS = (UpdateJob, UpsertUsage, UpdateInventory)
