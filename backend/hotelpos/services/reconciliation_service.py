# Overview: Shift cash reconciliation arithmetic.

"""
expected_cash = starting_cash + sum(cash payments) - sum(cash refunds)
variance      = ending_cash - expected_cash

Positive variance is an overage, negative a shortage. Sums are order
independent; with no movements expected cash is exactly the starting cash.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ..money import INPUT_TOLERANCE, money_sum, quantize, to_decimal

VARIANCE_OVER = "OVER"
VARIANCE_SHORT = "SHORT"
VARIANCE_BALANCED = "BALANCED"


def calculate_expected_cash(starting_cash, cash_payments: Iterable = (), cash_refunds: Iterable = ()) -> Decimal:
    return quantize(to_decimal(starting_cash) + money_sum(cash_payments) - money_sum(cash_refunds))


def calculate_variance(ending_cash, expected_cash) -> Decimal:
    return quantize(to_decimal(ending_cash) - to_decimal(expected_cash))


def classify_variance(variance) -> str:
    variance = quantize(variance)
    if variance > 0:
        return VARIANCE_OVER
    if variance < 0:
        return VARIANCE_SHORT
    return VARIANCE_BALANCED


def verify_shift_variance(starting_cash, cash_payments, cash_refunds, ending_cash, reported_variance) -> bool:
    """True when a stored variance agrees with a fresh recomputation (within 0.01)."""
    expected = calculate_expected_cash(starting_cash, cash_payments, cash_refunds)
    variance = calculate_variance(ending_cash, expected)
    return abs(variance - to_decimal(reported_variance)) <= INPUT_TOLERANCE
