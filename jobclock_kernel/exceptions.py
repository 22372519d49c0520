"""
Typed Exception Hierarchy for the JobClock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers render clock-in / clock-out failures straight to a worker's screen
and decide whether to refresh, retry, or give up based on the kind of
failure.  That decision must never depend on parsing a message string.

Every exception here therefore has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. An ERROR_KIND class attribute (the user-facing taxonomy, see ErrorKind)
  4. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        controller.clock_in(job_id, worker_id)
    except Exception as e:
        if "minutes" in str(e):  # FRAGILE
            show_countdown()

Example - RIGHT way:
    except ClockInTooEarlyError as e:
        show_countdown(e.minutes_remaining)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from JobClockError:

    JobClockError (base)
    |
    +-- JobError
    |   +-- JobNotFoundError
    |   +-- NotAssignedError
    |
    +-- LifecycleError
    |   +-- AlreadyClockedInError
    |   +-- AlreadyClockedOutError
    |   +-- NotClockedInError
    |   +-- ClockInTooEarlyError
    |
    +-- InventoryError
    |   +-- InvalidQuantityError
    |   +-- InventoryNotAssignedError
    |
    +-- ProductError
    |   +-- ProductNotFoundError
    |   +-- InvalidProductError
    |   +-- DuplicateProductError
    |
    +-- StorageError
    |   +-- TransactionFailedError
    |   +-- LockTimeoutError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- LedgerInvariantError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | Error kind         | When Raised
-------------|-------------------------|--------------------|---------------------------
Job          | JOB_NOT_FOUND           | NotFound           | Job ID doesn't exist
             | NOT_ASSIGNED            | Forbidden          | Actor not on the job
-------------|-------------------------|--------------------|---------------------------
Lifecycle    | ALREADY_CLOCKED_IN      | AlreadyClockedIn   | clock_in_at already set
             | ALREADY_CLOCKED_OUT     | AlreadyClockedOut  | clock_out_at already set
             | NOT_CLOCKED_IN          | NotClockedIn       | Clock-out before clock-in
             | CLOCK_IN_TOO_EARLY      | TooEarly           | Before the clock-in window
-------------|-------------------------|--------------------|---------------------------
Inventory    | INVALID_QUANTITY        | InvalidQuantity    | Negative / malformed count
-------------|-------------------------|--------------------|---------------------------
Storage      | TRANSACTION_FAILED      | TransactionFailed  | Commit failed, rolled back
             | LOCK_TIMEOUT            | TransactionFailed  | Job/inventory lock timeout
-------------|-------------------------|--------------------|---------------------------
Immutability | IMMUTABILITY_VIOLATION  | TransactionFailed  | Append-only row modified
             | LEDGER_INVARIANT        | TransactionFailed  | Row would break invariant
-------------|-------------------------|--------------------|---------------------------
Audit        | AUDIT_CHAIN_BROKEN      | (none)             | Job log hash chain mismatch

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY INHERIT FROM Exception (not ValueError, etc.)?
   Domain exceptions should be catchable as a group. Inheriting from
   built-in types mixes domain errors with programming errors.

2. WHY BOTH code AND error_kind?
   ``code`` identifies the precise failure; ``error_kind`` is the coarse
   taxonomy the caller switches on.  Several codes share one kind
   (lock timeout and commit failure are both TransactionFailed).

===============================================================================
"""

from datetime import datetime
from enum import Enum


class ErrorKind(str, Enum):
    """User-facing failure taxonomy returned in ClockResult.error_kind."""

    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    ALREADY_CLOCKED_IN = "AlreadyClockedIn"
    ALREADY_CLOCKED_OUT = "AlreadyClockedOut"
    NOT_CLOCKED_IN = "NotClockedIn"
    TOO_EARLY = "TooEarly"
    TRANSACTION_FAILED = "TransactionFailed"
    INVALID_QUANTITY = "InvalidQuantity"


class JobClockError(Exception):
    """
    Base exception for all jobclock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification and an `error_kind` for the caller-facing taxonomy.
    """

    code: str = "JOBCLOCK_ERROR"
    error_kind: ErrorKind | None = None


# Job-related exceptions


class JobError(JobClockError):
    """Base exception for job lookup and authorization errors."""

    code: str = "JOB_ERROR"


class JobNotFoundError(JobError):
    """Job with given ID was not found."""

    code: str = "JOB_NOT_FOUND"
    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Job not found")


class NotAssignedError(JobError):
    """Acting worker is neither the primary nor a secondary worker on the job."""

    code: str = "NOT_ASSIGNED"
    error_kind = ErrorKind.FORBIDDEN

    def __init__(self, job_id: str, actor_id: str):
        self.job_id = job_id
        self.actor_id = actor_id
        super().__init__("You are not assigned to this job")


# Lifecycle exceptions


class LifecycleError(JobClockError):
    """Base exception for clock-in / clock-out state machine violations."""

    code: str = "LIFECYCLE_ERROR"


class AlreadyClockedInError(LifecycleError):
    """Job already has a clock-in timestamp."""

    code: str = "ALREADY_CLOCKED_IN"
    error_kind = ErrorKind.ALREADY_CLOCKED_IN

    def __init__(self, job_id: str, clock_in_at: datetime):
        self.job_id = job_id
        self.clock_in_at = clock_in_at
        super().__init__("Already clocked in")


class AlreadyClockedOutError(LifecycleError):
    """Job already has a clock-out timestamp."""

    code: str = "ALREADY_CLOCKED_OUT"
    error_kind = ErrorKind.ALREADY_CLOCKED_OUT

    def __init__(self, job_id: str, clock_out_at: datetime):
        self.job_id = job_id
        self.clock_out_at = clock_out_at
        super().__init__("Already clocked out")


class NotClockedInError(LifecycleError):
    """Clock-out attempted on a job that was never clocked in."""

    code: str = "NOT_CLOCKED_IN"
    error_kind = ErrorKind.NOT_CLOCKED_IN

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Not clocked in")


class ClockInTooEarlyError(LifecycleError):
    """
    Clock-in attempted before the clock-in window opens.

    Carries the number of whole minutes (rounded up) until the window opens
    so the caller can render a countdown.
    """

    code: str = "CLOCK_IN_TOO_EARLY"
    error_kind = ErrorKind.TOO_EARLY

    def __init__(self, job_id: str, minutes_remaining: int, opens_at: datetime):
        self.job_id = job_id
        self.minutes_remaining = minutes_remaining
        self.opens_at = opens_at
        plural = "" if minutes_remaining == 1 else "s"
        super().__init__(
            f"You can clock in {minutes_remaining} minute{plural} before the scheduled "
            f"start time (at {_format_clock_time(opens_at)})"
        )


def _format_clock_time(value: datetime) -> str:
    """Render a timestamp as h:mm AM/PM without a leading zero."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


# Inventory exceptions


class InventoryError(JobClockError):
    """Base exception for inventory reconciliation errors."""

    code: str = "INVENTORY_ERROR"


class InvalidQuantityError(InventoryError):
    """Reported on-hand quantity is negative or not a well-formed decimal."""

    code: str = "INVALID_QUANTITY"
    error_kind = ErrorKind.INVALID_QUANTITY

    def __init__(self, product_id: str, value: object):
        self.product_id = product_id
        self.value = value
        super().__init__(f"Invalid quantity {value!r} reported for product {product_id}")


class InventoryNotAssignedError(InventoryError):
    """Worker holds no inventory row for the product."""

    code: str = "INVENTORY_NOT_ASSIGNED"

    def __init__(self, worker_id: str, product_id: str):
        self.worker_id = worker_id
        self.product_id = product_id
        super().__init__(f"Worker {worker_id} holds no inventory of product {product_id}")


# Product exceptions


class ProductError(JobClockError):
    """Base exception for product catalog errors."""

    code: str = "PRODUCT_ERROR"


class ProductNotFoundError(ProductError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"
    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class InvalidProductError(ProductError):
    """Product fields are missing or a numeric field is negative."""

    code: str = "INVALID_PRODUCT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class DuplicateProductError(ProductError):
    """A product with the same name (case-insensitive) already exists."""

    code: str = "DUPLICATE_PRODUCT"

    def __init__(self, name: str):
        self.name = name
        super().__init__("A product with this name already exists.")


# Storage exceptions


class StorageError(JobClockError):
    """Base exception for ledger store failures."""

    code: str = "STORAGE_ERROR"
    error_kind = ErrorKind.TRANSACTION_FAILED


class TransactionFailedError(StorageError):
    """
    The transaction could not commit and was rolled back.

    No partial writes are visible; retrying the whole call is safe.
    """

    code: str = "TRANSACTION_FAILED"

    def __init__(self, job_id: str | None, reason: str):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Transaction failed: {reason}")


class LockTimeoutError(StorageError):
    """A job or inventory lock could not be acquired in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, lock_key: str, timeout_seconds: float):
        self.lock_key = lock_key
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not acquire lock {lock_key} within {timeout_seconds}s"
        )


# Immutability exceptions


class ImmutabilityError(JobClockError):
    """Base exception for append-only / write-once violations."""

    code: str = "IMMUTABILITY_ERROR"
    error_kind = ErrorKind.TRANSACTION_FAILED


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete a write-once record or field."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


class LedgerInvariantError(ImmutabilityError):
    """A flush would leave a ledger row in a state its invariants forbid."""

    code: str = "LEDGER_INVARIANT"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Invariant violated on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(JobClockError):
    """Base exception for job audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Job log hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, job_id: str, seq: int, expected_hash: str, actual_hash: str):
        self.job_id = job_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken for job {job_id} at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
