"""
Job Lifecycle rules -- pure precondition checks and mutation planning.

Responsibility:
    Decide whether a clock-in or clock-out may happen for a locked job
    snapshot, and build the ordered list of mutation intents it produces.

Architecture position:
    Kernel > Domain -- pure functional core.  No session, no clock read:
    ``now`` is passed in by the controller, which read it once from its
    injected Clock.

Invariants enforced:
    - Preconditions are checked in order; the first failure wins and no
      mutation is produced.
    - Clock-in window opens exactly ``lead`` before scheduled start; minutes
      remaining are rounded up.
    - UpdateJob is the last data mutation in every plan; log entries follow
      the data they describe.

Failure modes:
    - JobNotFoundError, NotAssignedError, AlreadyClockedInError,
      ClockInTooEarlyError, NotClockedInError, AlreadyClockedOutError.
    - InvalidQuantityError from plan_clock_out() only when
      ``abort_on_invalid`` is set.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Mapping, Sequence
from uuid import UUID

from jobclock_kernel.db.types import DISPLAY_DECIMAL_PLACES, format_quantity
from jobclock_kernel.domain.dtos import (
    InventoryHolding,
    JobState,
    ProductOutcome,
    ReportedInventory,
    SkipReason,
)
from jobclock_kernel.domain.mutations import (
    AppendLog,
    Mutation,
    UpdateInventory,
    UpdateJob,
    UpsertUsage,
)
from jobclock_kernel.domain.reconciler import reconcile
from jobclock_kernel.exceptions import (
    AlreadyClockedInError,
    AlreadyClockedOutError,
    ClockInTooEarlyError,
    InvalidQuantityError,
    JobNotFoundError,
    NotAssignedError,
    NotClockedInError,
)
from jobclock_kernel.models.job import JobStatus
from jobclock_kernel.models.job_log import JobLogAction

DEFAULT_CLOCK_IN_LEAD = timedelta(minutes=15)

_ONE_MINUTE = timedelta(minutes=1)


# ---------------------------------------------------------------------------
# Time gate
# ---------------------------------------------------------------------------


def clock_in_opens_at(
    scheduled_start: datetime, lead: timedelta = DEFAULT_CLOCK_IN_LEAD
) -> datetime:
    """Earliest instant at which a worker may clock in."""
    return scheduled_start - lead


def minutes_until(opens_at: datetime, now: datetime) -> int:
    """
    Whole minutes from ``now`` until ``opens_at``, rounded up.

    Returns 0 when the window is already open.
    """
    if now >= opens_at:
        return 0
    minutes, remainder = divmod(opens_at - now, _ONE_MINUTE)
    return minutes + (1 if remainder else 0)


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------


def _require_assigned(job: JobState | None, job_id: UUID, actor_id: UUID) -> JobState:
    if job is None:
        raise JobNotFoundError(str(job_id))
    if not job.is_assigned(actor_id):
        raise NotAssignedError(str(job_id), str(actor_id))
    return job


def check_clock_in(
    job: JobState | None,
    job_id: UUID,
    actor_id: UUID,
    now: datetime,
    lead: timedelta = DEFAULT_CLOCK_IN_LEAD,
    display_tz: tzinfo | None = None,
) -> JobState:
    """
    Validate clock-in preconditions in order.

    ``display_tz`` only affects how the window opening is rendered in the
    TooEarly message.

    Returns:
        The job snapshot, narrowed to non-None.

    Raises:
        JobNotFoundError, NotAssignedError, AlreadyClockedInError,
        ClockInTooEarlyError.
    """
    job = _require_assigned(job, job_id, actor_id)
    if job.clock_in_at is not None:
        raise AlreadyClockedInError(str(job_id), job.clock_in_at)

    opens_at = clock_in_opens_at(job.scheduled_start, lead)
    if now < opens_at:
        remaining = minutes_until(opens_at, now)
        if display_tz is not None:
            opens_at = opens_at.astimezone(display_tz)
        raise ClockInTooEarlyError(str(job_id), remaining, opens_at)
    return job


def check_clock_out(job: JobState | None, job_id: UUID, actor_id: UUID) -> JobState:
    """
    Validate clock-out preconditions in order.

    Raises:
        JobNotFoundError, NotAssignedError, NotClockedInError,
        AlreadyClockedOutError.
    """
    job = _require_assigned(job, job_id, actor_id)
    if job.clock_in_at is None:
        raise NotClockedInError(str(job_id))
    if job.clock_out_at is not None:
        raise AlreadyClockedOutError(str(job_id), job.clock_out_at)
    return job


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClockOutPlan:
    mutations: tuple[Mutation, ...]
    outcomes: tuple[ProductOutcome, ...]


def _status_changed(
    job: JobState, actor_id: UUID, new_status: JobStatus
) -> AppendLog:
    return AppendLog(
        job_id=job.job_id,
        actor_id=actor_id,
        action=JobLogAction.STATUS_CHANGED,
        description=f"Status changed from {job.status.value} to {new_status.value}",
        field="status",
        old_value=job.status.value,
        new_value=new_status.value,
    )


def plan_clock_in(
    job: JobState, actor_id: UUID, actor_name: str, now: datetime
) -> tuple[Mutation, ...]:
    """Mutations for a validated clock-in: job update, then its two log entries."""
    return (
        UpdateJob(
            job_id=job.job_id,
            status=JobStatus.IN_PROGRESS,
            clock_in_at=now,
        ),
        AppendLog(
            job_id=job.job_id,
            actor_id=actor_id,
            action=JobLogAction.CLOCKED_IN,
            description=f"{actor_name} clocked in",
        ),
        _status_changed(job, actor_id, JobStatus.IN_PROGRESS),
    )


def plan_clock_out(
    job: JobState,
    actor_id: UUID,
    actor_name: str,
    now: datetime,
    reported: Sequence[ReportedInventory],
    holdings: Mapping[UUID, InventoryHolding],
    abort_on_invalid: bool = False,
    display_places: int = DISPLAY_DECIMAL_PLACES,
) -> ClockOutPlan:
    """
    Reconcile every reported product and build the clock-out write set.

    Entries are processed independently in the order given.  Each one is
    reconciled against the stored quantity in ``holdings``; a product
    reported twice accumulates usage across both entries and the last
    consuming entry sets the inventory row.

    Args:
        holdings: The worker's locked inventory rows keyed by product id.
            Products missing here are skipped with NO_INVENTORY_ROW.
        abort_on_invalid: Raise InvalidQuantityError on the first malformed
            or negative entry instead of skipping it.
    """
    mutations: list[Mutation] = []
    outcomes: list[ProductOutcome] = []

    for entry in reported:
        holding = holdings.get(entry.product_id)
        if holding is None:
            outcomes.append(
                ProductOutcome.skipped(entry.product_id, SkipReason.NO_INVENTORY_ROW)
            )
            continue

        before = holding.quantity
        result = reconcile(before, entry.on_hand_after)

        if not result.valid:
            if abort_on_invalid:
                raise InvalidQuantityError(str(entry.product_id), entry.on_hand_after)
            outcomes.append(
                ProductOutcome.skipped(
                    entry.product_id, SkipReason.INVALID_QUANTITY, before=before
                )
            )
            continue

        if not result.consumed:
            reason = (
                SkipReason.REPORTED_INCREASE
                if result.reported_increase
                else SkipReason.NO_CONSUMPTION
            )
            outcomes.append(
                ProductOutcome.skipped(
                    entry.product_id, reason, before=before, after=result.after
                )
            )
            continue

        after = result.after
        mutations.extend(
            (
                UpsertUsage(
                    job_id=job.job_id,
                    product_id=entry.product_id,
                    used=result.used,
                    inventory_before=before,
                    inventory_after=after,
                ),
                UpdateInventory(
                    worker_id=holding.worker_id,
                    product_id=entry.product_id,
                    quantity=after,
                ),
                AppendLog(
                    job_id=job.job_id,
                    actor_id=actor_id,
                    action=JobLogAction.PRODUCT_USED,
                    description=(
                        f"Used {format_quantity(result.used, display_places)} "
                        f"{holding.unit} of {holding.product_name}"
                    ),
                ),
            )
        )
        outcomes.append(
            ProductOutcome.reconciled(entry.product_id, before, after, result.used)
        )

    mutations.extend(
        (
            UpdateJob(
                job_id=job.job_id,
                status=JobStatus.COMPLETED,
                clock_out_at=now,
            ),
            AppendLog(
                job_id=job.job_id,
                actor_id=actor_id,
                action=JobLogAction.CLOCKED_OUT,
                description=f"{actor_name} clocked out",
            ),
            _status_changed(job, actor_id, JobStatus.COMPLETED),
        )
    )
    return ClockOutPlan(mutations=tuple(mutations), outcomes=tuple(outcomes))
