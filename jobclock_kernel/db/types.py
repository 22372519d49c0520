"""
Module: jobclock_kernel.db.types
Responsibility: Quantity parsing and display rounding shared by the domain
    and the services, so every caller applies identical rules.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats are stored.  Every quantity is a Decimal (ExactDecimal
      column, see db/base.py).
    - parse_quantity() is the ONLY sanctioned way to turn caller input into
      a quantity; it rejects NaN, infinities, booleans and unparsable text.

Failure modes:
    - parse_quantity() returns None for malformed input; callers decide
      whether that is an error.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

DISPLAY_DECIMAL_PLACES = 2

ZERO = Decimal("0")


def parse_quantity(value: object) -> Decimal | None:
    """
    Parse caller-supplied input into a finite Decimal.

    Accepts Decimal, int, str and float (floats go through their shortest
    repr so 0.1 becomes Decimal("0.1"), not the binary expansion).

    Returns:
        The Decimal, or None when the input is not a well-formed finite number.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = _decimal_or_none(repr(value))
    elif isinstance(value, str):
        result = _decimal_or_none(value.strip())
    else:
        return None

    if result is None or not result.is_finite():
        return None
    return result


def _decimal_or_none(text: str) -> Decimal | None:
    try:
        return Decimal(text)
    except (InvalidOperation, ValueError):
        return None


def round_quantity(value: Decimal, places: int = DISPLAY_DECIMAL_PLACES) -> Decimal:
    """Round a quantity half-up to the given number of places (display only)."""
    quantizer = Decimal(1).scaleb(-places)
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def format_quantity(value: Decimal, places: int = DISPLAY_DECIMAL_PLACES) -> str:
    """Render a quantity with a fixed number of places, e.g. ``4.00``."""
    return f"{round_quantity(value, places):.{places}f}"
