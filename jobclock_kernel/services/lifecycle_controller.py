"""
JobLifecycleController -- Clock-In and Clock-Out.

Responsibility:
    The entry point the worker-facing application calls.  Reads the time
    once from the injected Clock, validates preconditions against the
    locked job, plans the mutation set, and has the TransactionCoordinator
    commit it.  Converts every outcome into a discriminated ClockResult.

Architecture position:
    Kernel > Services -- imperative shell around the pure lifecycle rules in
    ``domain/lifecycle.py`` and the reconciler in ``domain/reconciler.py``.

Invariants enforced:
    - IN_PROGRESS is entered only by clock_in(); COMPLETED only by
      clock_out().
    - All precondition failures are detected before any mutation is
      applied; the transaction is rolled back with nothing written.
    - Clock-out reconciles only the acting worker's inventory, holding the
      worker+product locks for the whole transaction.

Failure modes:
    - Never raises for domain or storage failures; they are returned as
      ``ClockResult(success=False, ...)``.  Programming errors propagate.

Audit relevance:
    Every successful call appends CLOCKED_IN / CLOCKED_OUT, STATUS_CHANGED
    and PRODUCT_USED entries in the same transaction as the data.
"""

from datetime import timedelta, tzinfo
from typing import Sequence
from uuid import UUID

from jobclock_kernel.db.types import DISPLAY_DECIMAL_PLACES
from jobclock_kernel.domain.clock import Clock, SystemClock
from jobclock_kernel.domain.dtos import ClockResult, ProductOutcome, ReportedInventory
from jobclock_kernel.domain.lifecycle import (
    DEFAULT_CLOCK_IN_LEAD,
    check_clock_in,
    check_clock_out,
    plan_clock_in,
    plan_clock_out,
)
from jobclock_kernel.exceptions import ClockInTooEarlyError, ErrorKind, JobClockError
from jobclock_kernel.logging_config import LogContext, OperationTimer, get_logger
from jobclock_kernel.services.transaction_coordinator import TransactionCoordinator

logger = get_logger("services.lifecycle_controller")

CLOCK_IN_FAILED_MESSAGE = "Failed to clock in"
CLOCK_OUT_FAILED_MESSAGE = "Failed to clock out"


class JobLifecycleController:
    """
    State machine for worker time tracking.

    Contract:
        ``clock_in()`` and ``clock_out()`` each run in their own transaction
        and return a ClockResult.  The controller holds no per-call state
        and may be shared across threads.

    Guarantees:
        - A job can be clocked in at most once and clocked out at most once,
          even under concurrent calls (job lock held across check and write).
        - On TransactionFailed nothing from the call is visible.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        clock: Clock | None = None,
        clock_in_lead: timedelta = DEFAULT_CLOCK_IN_LEAD,
        abort_on_invalid_quantity: bool = False,
        display_places: int = DISPLAY_DECIMAL_PLACES,
        display_timezone: tzinfo | None = None,
    ):
        self._coordinator = coordinator
        self._clock = clock or SystemClock()
        self._lead = clock_in_lead
        self._abort_on_invalid = abort_on_invalid_quantity
        self._display_places = display_places
        self._display_tz = display_timezone

    def clock_in(
        self,
        job_id: UUID,
        actor_id: UUID,
        actor_name: str | None = None,
    ) -> ClockResult:
        """
        Start work on a job.

        Preconditions checked in order: job exists, actor assigned, not yet
        clocked in, clock-in window open.

        Args:
            actor_name: Display name used in the CLOCKED_IN description.
                Falls back to the actor id.
        """
        now = self._clock.now_utc()
        name = actor_name or str(actor_id)

        with LogContext.bind(
            job_id=str(job_id), actor_id=str(actor_id), operation="clock_in"
        ):
            timer = OperationTimer(logger, "clock_in")
            try:
                with self._coordinator.job_transaction(job_id, actor_id) as txn:
                    job = check_clock_in(
                        txn.job_state(),
                        job_id,
                        actor_id,
                        now,
                        lead=self._lead,
                        display_tz=self._display_tz,
                    )
                    txn.apply_all(plan_clock_in(job, actor_id, name, now))
            except JobClockError as exc:
                return self._failure("clock_in", job_id, exc, CLOCK_IN_FAILED_MESSAGE)

            timer.completed(clock_in_at=now)
            return ClockResult.ok(job_id)

    def clock_out(
        self,
        job_id: UUID,
        actor_id: UUID,
        reported_inventory: Sequence[ReportedInventory] = (),
        actor_name: str | None = None,
    ) -> ClockResult:
        """
        Finish work on a job and reconcile the worker's reported inventory.

        Preconditions checked in order: job exists, actor assigned, clocked
        in, not yet clocked out.

        For each reported product the worker holds, ``used = before - after``
        is recorded when positive; every entry yields a ProductOutcome.
        """
        now = self._clock.now_utc()
        name = actor_name or str(actor_id)
        outcomes: tuple[ProductOutcome, ...] = ()

        with LogContext.bind(
            job_id=str(job_id), actor_id=str(actor_id), operation="clock_out"
        ):
            timer = OperationTimer(
                logger, "clock_out", reported_count=len(reported_inventory)
            )
            try:
                with self._coordinator.job_transaction(job_id, actor_id) as txn:
                    job = check_clock_out(txn.job_state(), job_id, actor_id)
                    txn.lock_inventory(
                        (actor_id, entry.product_id) for entry in reported_inventory
                    )
                    plan = plan_clock_out(
                        job,
                        actor_id,
                        name,
                        now,
                        reported_inventory,
                        txn.holdings(actor_id),
                        abort_on_invalid=self._abort_on_invalid,
                        display_places=self._display_places,
                    )
                    outcomes = plan.outcomes
                    txn.apply_all(plan.mutations)
            except JobClockError as exc:
                return self._failure("clock_out", job_id, exc, CLOCK_OUT_FAILED_MESSAGE)

            reconciled = sum(1 for o in outcomes if o.is_reconciled)
            timer.completed(
                clock_out_at=now,
                products_reconciled=reconciled,
                products_skipped=len(outcomes) - reconciled,
            )
            return ClockResult.ok(job_id, outcomes)

    def _failure(
        self,
        operation: str,
        job_id: UUID,
        exc: JobClockError,
        generic_message: str,
    ) -> ClockResult:
        kind = exc.error_kind or ErrorKind.TRANSACTION_FAILED
        if kind == ErrorKind.TRANSACTION_FAILED:
            logger.error(
                f"{operation}_failed",
                extra={"error_code": exc.code},
                exc_info=True,
            )
            return ClockResult.failure(job_id, kind, generic_message)

        logger.info(
            f"{operation}_rejected",
            extra={"error_code": exc.code, "error_kind": kind.value},
        )
        minutes = exc.minutes_remaining if isinstance(exc, ClockInTooEarlyError) else None
        return ClockResult.failure(job_id, kind, str(exc), minutes_remaining=minutes)
