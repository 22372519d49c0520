"""
ORM-Level Ledger Guards.

===============================================================================
WHY THIS EXISTS
===============================================================================

The lifecycle controller is the only code that should clock a job in or
out or decrement a worker's inventory, but any code holding a Session
could try.  These guards make the ledger invariants hold no matter which
code path flushes:

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         +--> _check_*() --> ImmutabilityViolationError / LedgerInvariantError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush raises and the caller's transaction must be
rolled back.  The database is never modified.

Database CHECK constraints (see models/) back the non-negative quantity
rules for raw SQL access.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                    | Rule
--------------------------|-----------------------------------------------------
JobLog                    | Never updated, never deleted
Job.clock_in_at           | Write-once
Job.clock_out_at          | Write-once; only after clock_in_at is set
Job (COMPLETED)           | Both clock timestamps set, or neither
Job.log_seq               | Never decreases
EmployeeProductInventory  | quantity >= 0
JobProductUsage           | quantity >= 0 and never decreases

===============================================================================
USAGE
===============================================================================

    from jobclock_kernel.db.immutability import register_ledger_guards
    register_ledger_guards()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_ledger_guards()
"""

from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from jobclock_kernel.exceptions import ImmutabilityViolationError, LedgerInvariantError
from jobclock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )


def _previous_value(target, attribute: str):
    """Return (changed, old_value) for an attribute pending flush."""
    history = get_history(target, attribute)
    if not history.added:
        return False, None
    old = history.deleted[0] if history.deleted else None
    return True, old


# ---------------------------------------------------------------------------
# JobLog
# ---------------------------------------------------------------------------


def _check_job_log_update(mapper, connection, target):
    _blocked("JobLog", target.id, "UPDATE", "job_log_append_only")
    raise ImmutabilityViolationError(
        entity_type="JobLog",
        entity_id=str(target.id),
        reason="Job log entries are append-only",
    )


def _check_job_log_delete(mapper, connection, target):
    _blocked("JobLog", target.id, "DELETE", "job_log_append_only")
    raise ImmutabilityViolationError(
        entity_type="JobLog",
        entity_id=str(target.id),
        reason="Job log entries cannot be deleted",
    )


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------


def _check_job_consistency(target) -> None:
    """State rules that hold for every persisted Job row."""
    from jobclock_kernel.models.job import JobStatus

    if target.clock_out_at is not None and target.clock_in_at is None:
        raise LedgerInvariantError(
            entity_type="Job",
            entity_id=str(target.id),
            reason="clock_out_at requires clock_in_at",
        )

    if JobStatus(target.status) == JobStatus.COMPLETED:
        has_in = target.clock_in_at is not None
        has_out = target.clock_out_at is not None
        if has_in != has_out:
            raise LedgerInvariantError(
                entity_type="Job",
                entity_id=str(target.id),
                reason="COMPLETED job must have both clock timestamps or neither",
            )

    if target.clock_out_at is not None and target.clock_out_at < target.clock_in_at:
        raise LedgerInvariantError(
            entity_type="Job",
            entity_id=str(target.id),
            reason="clock_out_at precedes clock_in_at",
        )


def _check_job_insert(mapper, connection, target):
    _check_job_consistency(target)


def _check_job_update(mapper, connection, target):
    for attribute in ("clock_in_at", "clock_out_at"):
        changed, old = _previous_value(target, attribute)
        if changed and old is not None:
            _blocked("Job", target.id, "UPDATE", f"{attribute}_write_once")
            raise ImmutabilityViolationError(
                entity_type="Job",
                entity_id=str(target.id),
                reason=f"{attribute} cannot change once set",
            )

    changed, old_seq = _previous_value(target, "log_seq")
    if changed and old_seq is not None and target.log_seq < old_seq:
        _blocked("Job", target.id, "UPDATE", "log_seq_decrease")
        raise ImmutabilityViolationError(
            entity_type="Job",
            entity_id=str(target.id),
            reason="log_seq cannot decrease",
        )

    _check_job_consistency(target)


# ---------------------------------------------------------------------------
# Quantity ledgers
# ---------------------------------------------------------------------------


def _check_inventory_quantity(mapper, connection, target):
    if target.quantity is None or Decimal(target.quantity) < 0:
        raise LedgerInvariantError(
            entity_type="EmployeeProductInventory",
            entity_id=str(target.id),
            reason=f"quantity must be non-negative, got {target.quantity}",
        )


def _check_usage_insert(mapper, connection, target):
    if target.quantity is None or Decimal(target.quantity) < 0:
        raise LedgerInvariantError(
            entity_type="JobProductUsage",
            entity_id=str(target.id),
            reason=f"quantity must be non-negative, got {target.quantity}",
        )


def _check_usage_update(mapper, connection, target):
    _check_usage_insert(mapper, connection, target)
    changed, old = _previous_value(target, "quantity")
    if changed and old is not None and Decimal(target.quantity) < Decimal(old):
        _blocked("JobProductUsage", target.id, "UPDATE", "usage_decrease")
        raise ImmutabilityViolationError(
            entity_type="JobProductUsage",
            entity_id=str(target.id),
            reason=f"usage quantity cannot decrease ({old} -> {target.quantity})",
        )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listeners():
    from jobclock_kernel.models.inventory import EmployeeProductInventory, JobProductUsage
    from jobclock_kernel.models.job import Job
    from jobclock_kernel.models.job_log import JobLog

    return [
        (JobLog, "before_update", _check_job_log_update),
        (JobLog, "before_delete", _check_job_log_delete),
        (Job, "before_insert", _check_job_insert),
        (Job, "before_update", _check_job_update),
        (EmployeeProductInventory, "before_insert", _check_inventory_quantity),
        (EmployeeProductInventory, "before_update", _check_inventory_quantity),
        (JobProductUsage, "before_insert", _check_usage_insert),
        (JobProductUsage, "before_update", _check_usage_update),
    ]


def register_ledger_guards():
    """
    Register all ledger guard event listeners (idempotent).

    Call this after all models are imported but before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_ledger_guards():
    """
    Remove ledger guard event listeners.

    WARNING: Only use this in tests that need to write a forbidden state
    to verify detection elsewhere (e.g. audit chain validation).
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
