"""
Monetary arithmetic helpers.

All money in the POS is Decimal, quantized to 2 places. Floats are never used
for arithmetic; a float arriving from JSON is converted through str() first so
its shortest repr is what gets parsed.

Rounding is banker's rounding (ROUND_HALF_EVEN) and is applied after every
derived field, not only to the final figure.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

# Derived comparisons (recomputed totals) vs. input-level checks (payments, variance)
TOTALS_TOLERANCE = Decimal("0.02")
INPUT_TOLERANCE = Decimal("0.01")

Numeric = Union[Decimal, str, int, float]


def to_decimal(value: Numeric | None) -> Decimal:
    """
    Convert any numeric input to Decimal without rounding.

    None -> 0. Raises ValueError for non-numeric input, NaN/Infinity, or a
    magnitude beyond MAX_AMOUNT.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if abs(result) > MAX_AMOUNT:
        raise ValueError(f"Amount out of range: {value!r}")
    return result


def quantize(amount: Numeric | None) -> Decimal:
    """
    Round to 2 decimal places using banker's rounding.

    >>> quantize("10.125")
    Decimal('10.12')
    >>> quantize("10.135")
    Decimal('10.14')
    """
    try:
        return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_EVEN)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {amount!r}")


def money_sum(amounts: Iterable[Numeric]) -> Decimal:
    """Sum then round once; the sum itself is exact."""
    total = Decimal(0)
    for amount in amounts:
        total += to_decimal(amount)
    return quantize(total)


def within_tolerance(a: Numeric, b: Numeric, tolerance: Decimal = INPUT_TOLERANCE) -> bool:
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance


def format_money(amount: Numeric | None) -> str:
    """Wire format: plain string with exactly 2 decimals ("682.00")."""
    return f"{quantize(amount):.2f}"
