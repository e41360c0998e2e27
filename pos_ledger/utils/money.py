"""Fixed-point money helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT: Decimal = Decimal("0.01")
ZERO: Decimal = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Return value as a two-digit Decimal, rounding half up.

    Floats go through ``str`` first so binary representation noise never
    reaches the ledger.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc


def format_money(value: Decimal | int | float | str) -> str:
    """Format an amount with exactly two decimal digits."""
    return f"{to_money(value):.2f}"


def percentage(part: Decimal | int, whole: Decimal | int) -> Decimal:
    """Return ``100 * part / whole`` rounded to 2 dp, or 0 when whole is 0."""
    if not whole:
        return ZERO
    return to_money(Decimal(100) * Decimal(part) / Decimal(whole))
