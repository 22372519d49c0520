"""
Inventory Reconciler -- pure consumption arithmetic.

Responsibility:
    Given the on-hand quantity a worker held before a job and the on-hand
    quantity they report afterwards, derive how much was consumed.

Architecture position:
    Kernel > Domain -- pure functional core.  No I/O, no clock, no session.
    Called once per reported product by the lifecycle controller.

Invariants enforced:
    - used = max(before - after, 0); never negative.
    - A negative or malformed ``after`` is reported as invalid, never
      silently coerced.

Failure modes:
    - None.  Invalid input is a value (``valid=False``), not an exception.
"""

from dataclasses import dataclass
from decimal import Decimal

from jobclock_kernel.db.types import ZERO, parse_quantity


@dataclass(frozen=True)
class Reconciliation:
    """
    Outcome of reconciling one product.

    ``after`` is the parsed reported quantity (None when malformed).
    ``used`` is zero when nothing was consumed or the input was invalid;
    callers treat zero as "nothing to record".
    """

    before: Decimal
    after: Decimal | None
    used: Decimal
    valid: bool

    @property
    def consumed(self) -> bool:
        return self.valid and self.used > ZERO

    @property
    def reported_increase(self) -> bool:
        """True when the worker reported more than they held."""
        return self.valid and self.after is not None and self.after > self.before


def reconcile(before: Decimal, after: object) -> Reconciliation:
    """
    Derive consumed quantity from before/after on-hand counts.

    Args:
        before: The worker's currently recorded on-hand quantity.
        after: The newly reported on-hand quantity (Decimal, int, str or
            float as supplied by the caller).

    Returns:
        Reconciliation with ``valid=False`` when ``after`` is negative or not
        a well-formed finite decimal; otherwise ``used = max(before - after, 0)``.
    """
    parsed = parse_quantity(after)
    if parsed is None or parsed < ZERO:
        return Reconciliation(before=before, after=parsed, used=ZERO, valid=False)

    used = before - parsed
    if used < ZERO:
        used = ZERO
    return Reconciliation(before=before, after=parsed, used=used, valid=True)
