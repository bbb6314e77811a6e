"""
Decimal helpers shared by the kernel and the engines.

Every monetary figure in the ledger is a ``Decimal`` and is rounded exactly
once, at the point it is computed, with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    """
    Coerce a number to Decimal without binary float artifacts.

    Floats are routed through ``str`` so 0.1 becomes Decimal("0.1").

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric value: {value!r}") from exc


def round_money(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round a monetary value half-up to ``decimal_places`` (2 by default)."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)
