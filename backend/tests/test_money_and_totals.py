"""
Money helpers and the order totals calculator.

Property checks run over a deterministic grid (seeded random) so failures are
reproducible.
"""

import importlib
import random
import unittest
from decimal import Decimal, getcontext, localcontext

import pytest

from hotelpos import money
from hotelpos.money import format_money, money_sum, quantize, to_decimal, within_tolerance
from hotelpos.services.totals_service import LineAmount, calculate_subtotal, calculate_totals, verify_totals

RATES = [Decimal("0"), Decimal("0.05"), Decimal("0.10"), Decimal("0.12"), Decimal("0.125")]


def _random_lines(rng: random.Random, count: int) -> list[LineAmount]:
    return [
        LineAmount(quantity=rng.randint(1, 9), unit_price=quantize(Decimal(rng.randint(1, 250000)) / 100))
        for _ in range(count)
    ]


class MoneyTests(unittest.TestCase):
    def test_quantize_uses_bankers_rounding(self):
        self.assertEqual(quantize("10.125"), Decimal("10.12"))
        self.assertEqual(quantize("10.135"), Decimal("10.14"))
        self.assertEqual(quantize("-0.005"), Decimal("-0.00"))

    def test_float_input_goes_through_str(self):
        self.assertEqual(to_decimal(0.1) + to_decimal(0.2), Decimal("0.3"))

    def test_rejects_non_numbers(self):
        for bad in ("abc", True, float("nan"), "Infinity"):
            with self.assertRaises(ValueError):
                to_decimal(bad)

    def test_rejects_amounts_beyond_column_range(self):
        for huge in (1e30, "1e30", Decimal("10000000000.00"), "-10000000000"):
            with self.assertRaises(ValueError):
                to_decimal(huge)
            with self.assertRaises(ValueError):
                quantize(huge)
        self.assertEqual(quantize("9999999999.99"), Decimal("9999999999.99"))

    def test_import_leaves_decimal_context_alone(self):
        with localcontext() as ctx:
            ctx.prec = 50
            importlib.reload(money)
            self.assertEqual(getcontext().prec, 50)

    def test_none_is_zero(self):
        self.assertEqual(to_decimal(None), Decimal(0))

    def test_money_sum_and_format(self):
        self.assertEqual(money_sum(["0.10", "0.20", 0.3]), Decimal("0.60"))
        self.assertEqual(format_money(682), "682.00")
        self.assertTrue(within_tolerance("10.00", "10.01"))
        self.assertFalse(within_tolerance("10.00", "10.02"))


class TotalsScenarioTests(unittest.TestCase):
    def test_two_lines_with_tax_and_service_charge(self):
        lines = [LineAmount(2, Decimal("250.00")), LineAmount(1, Decimal("100.00"))]
        totals = calculate_totals(lines, "0.12", "0.10")

        self.assertEqual(totals.subtotal, Decimal("600.00"))
        self.assertEqual(totals.tax_amount, Decimal("72.00"))
        self.assertEqual(totals.service_charge, Decimal("60.00"))
        self.assertEqual(totals.total, Decimal("732.00"))

    def test_discount_comes_off_after_tax(self):
        lines = [LineAmount(2, Decimal("250.00")), LineAmount(1, Decimal("100.00"))]
        totals = calculate_totals(lines, "0.12", "0.10", discount_amount="50.00")

        # tax and service charge stay on the full subtotal
        self.assertEqual(totals.tax_amount, Decimal("72.00"))
        self.assertEqual(totals.service_charge, Decimal("60.00"))
        self.assertEqual(totals.total, Decimal("682.00"))

    def test_empty_order_with_tip(self):
        totals = calculate_totals([], "0.12", "0.10", tip_amount="20")
        self.assertEqual(totals.subtotal, Decimal("0.00"))
        self.assertEqual(totals.total, Decimal("20.00"))

    def test_each_field_rounded_before_total(self):
        totals = calculate_totals([LineAmount(1, Decimal("0.05"))], "0.125", "0.125")
        # 0.05 x 0.125 = 0.00625 -> 0.01 per field
        self.assertEqual(totals.tax_amount, Decimal("0.01"))
        self.assertEqual(totals.service_charge, Decimal("0.01"))
        self.assertEqual(totals.total, Decimal("0.07"))

    def test_to_dict_uses_wire_strings(self):
        totals = calculate_totals([LineAmount(1, Decimal("10"))], "0", "0")
        self.assertEqual(totals.to_dict()["total"], "10.00")


# =============================================================================
# PROPERTY GRID
# =============================================================================


@pytest.mark.parametrize("seed_value", range(40))
def test_totals_properties(seed_value):
    rng = random.Random(seed_value)
    lines = _random_lines(rng, rng.randint(0, 8))
    tax_rate = rng.choice(RATES)
    service_rate = rng.choice(RATES)
    tip = quantize(Decimal(rng.randint(0, 50000)) / 100)

    subtotal = calculate_subtotal(lines)
    discount = quantize(subtotal * Decimal(rng.randint(0, 100)) / 100)

    totals = calculate_totals(lines, tax_rate, service_rate, discount_amount=discount, tip_amount=tip)

    assert totals.subtotal == quantize(sum((l.unit_price * l.quantity for l in lines), Decimal(0)))
    assert verify_totals(totals)
    assert totals.total >= 0
    for value in (totals.subtotal, totals.tax_amount, totals.service_charge, totals.total):
        assert value == quantize(value)


@pytest.mark.parametrize("seed_value", range(20))
def test_subtotal_is_order_independent(seed_value):
    rng = random.Random(1000 + seed_value)
    lines = _random_lines(rng, 6)
    shuffled = list(lines)
    rng.shuffle(shuffled)
    assert calculate_subtotal(lines) == calculate_subtotal(shuffled)


@pytest.mark.parametrize("seed_value", range(20))
def test_adding_a_line_never_lowers_the_total(seed_value):
    rng = random.Random(2000 + seed_value)
    lines = _random_lines(rng, rng.randint(0, 5))
    before = calculate_totals(lines, "0.12", "0.10")
    after = calculate_totals(lines + _random_lines(rng, 1), "0.12", "0.10")
    assert after.total > before.total


def test_verify_totals_detects_drift():
    totals = calculate_totals([LineAmount(1, Decimal("100.00"))], "0.12", "0.10")
    drifted = type(totals)(
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        service_charge=totals.service_charge,
        discount_amount=totals.discount_amount,
        tip_amount=totals.tip_amount,
        total=totals.total + Decimal("0.03"),
    )
    assert not verify_totals(drifted)
