"""
Pure cash rules: shift reconciliation, split-payment validation, change
allocation and folio arithmetic. No database needed.
"""

import random
from decimal import Decimal

import pytest

from hotelpos.money import quantize
from hotelpos.services.folio_service import apply_room_charge, validate_booking_for_room_charge
from hotelpos.services.payment_service import (
    PaymentLine,
    PaymentMethod,
    allocate_change,
    calculate_change_due,
    validate_payments,
    verify_split_payment_integrity,
)
from hotelpos.services.reconciliation_service import (
    VARIANCE_BALANCED,
    VARIANCE_OVER,
    VARIANCE_SHORT,
    calculate_expected_cash,
    calculate_variance,
    classify_variance,
    verify_shift_variance,
)
from hotelpos.validation import BusinessRuleError, NotFoundError, ValidationError


def _amount(rng: random.Random, low: int = 1, high: int = 500000) -> Decimal:
    return quantize(Decimal(rng.randint(low, high)) / 100)


# =============================================================================
# RECONCILIATION
# =============================================================================


class TestReconciliation:
    def test_close_with_overage(self):
        expected = calculate_expected_cash("1000.00", ["300.00", "150.00"], [])
        assert expected == Decimal("1450.00")
        variance = calculate_variance("1500.00", expected)
        assert variance == Decimal("50.00")
        assert classify_variance(variance) == VARIANCE_OVER

    def test_no_movements_expected_equals_starting(self):
        assert calculate_expected_cash("2000.00") == Decimal("2000.00")
        assert classify_variance(calculate_variance("2000.00", "2000.00")) == VARIANCE_BALANCED

    def test_refunds_reduce_expected_cash(self):
        expected = calculate_expected_cash("500.00", ["120.00"], ["20.00"])
        assert expected == Decimal("600.00")
        assert classify_variance(calculate_variance("590.00", expected)) == VARIANCE_SHORT

    @pytest.mark.parametrize("seed_value", range(30))
    def test_properties(self, seed_value):
        rng = random.Random(seed_value)
        starting = _amount(rng, 0, 300000)
        payments = [_amount(rng) for _ in range(rng.randint(0, 10))]
        refunds = [_amount(rng, 1, 5000) for _ in range(rng.randint(0, 3))]
        ending = _amount(rng, 0, 900000)

        expected = calculate_expected_cash(starting, payments, refunds)
        variance = calculate_variance(ending, expected)

        assert expected == quantize(starting + sum(payments, Decimal(0)) - sum(refunds, Decimal(0)))
        assert variance == ending - expected
        shuffled = list(payments)
        rng.shuffle(shuffled)
        assert calculate_expected_cash(starting, shuffled, refunds) == expected
        assert verify_shift_variance(starting, payments, refunds, ending, variance)
        assert not verify_shift_variance(starting, payments, refunds, ending, variance + Decimal("0.05"))


# =============================================================================
# SPLIT PAYMENTS
# =============================================================================


def _lines(*pairs):
    return [PaymentLine.build(method, amount) for method, amount in pairs]


class TestSplitPaymentValidation:
    def test_single_cash_over_tender_gives_change(self):
        lines = _lines(("CASH", "700.00"))
        assert validate_payments("682.00", lines)
        assert calculate_change_due("682.00", lines) == Decimal("18.00")

    def test_no_payments(self):
        result = validate_payments("100.00", [])
        assert not result.valid
        assert result.error == "At least one payment is required"

    def test_non_positive_amount(self):
        result = validate_payments("100.00", _lines(("CASH", "0")))
        assert result.error == "Payment amount must be positive"

    def test_cash_short(self):
        result = validate_payments("682.00", _lines(("CASH", "600.00")))
        assert result.error == "Payment total (600.00) is less than order total (682.00)"

    def test_card_must_match_exactly(self):
        assert validate_payments("682.00", _lines(("CREDIT_CARD", "682.01")))
        over = validate_payments("682.00", _lines(("CREDIT_CARD", "690.00")))
        assert over.error == "Payment total (690.00) does not match order total (682.00)"
        under = validate_payments("682.00", _lines(("DEBIT_CARD", "600.00")))
        assert under.error == "Payment total (600.00) is less than order total (682.00)"

    def test_card_plus_cash_may_over_tender(self):
        lines = _lines(("CREDIT_CARD", "500.00"), ("CASH", "200.00"))
        assert validate_payments("682.00", lines)
        assert calculate_change_due("682.00", lines) == Decimal("18.00")

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            PaymentLine.build("BITCOIN", "10")

    def test_change_allocated_to_cash_lines_only(self):
        lines = _lines(("CREDIT_CARD", "500.00"), ("CASH", "10.00"), ("CASH", "200.00"))
        assert allocate_change(lines, Decimal("28.00")) == [Decimal("0.00"), Decimal("10.00"), Decimal("18.00")]

    @pytest.mark.parametrize("seed_value", range(40))
    def test_properties(self, seed_value):
        rng = random.Random(seed_value)
        total = _amount(rng)
        parts = rng.randint(1, 4)
        cuts = sorted(rng.randint(1, int(total * 100) - 1) for _ in range(parts - 1)) if total > Decimal("0.05") else []
        points = [0] + cuts + [int(total * 100)]
        amounts = [quantize(Decimal(b - a) / 100) for a, b in zip(points, points[1:]) if b > a]
        methods = [rng.choice([PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD, PaymentMethod.VOUCHER]) for _ in amounts]
        exact = [PaymentLine.build(m, a) for m, a in zip(methods, amounts)]

        # exact non-cash split always settles
        assert validate_payments(total, exact)
        assert verify_split_payment_integrity(total, [p.amount for p in exact])
        assert calculate_change_due(total, exact) == Decimal("0.00")

        # adding cash on top is accepted and every extra cent is change
        extra = _amount(rng, 1, 10000)
        with_cash = exact + [PaymentLine.build("CASH", extra)]
        assert validate_payments(total, with_cash)
        assert calculate_change_due(total, with_cash) == extra
        assert sum(allocate_change(with_cash, extra), Decimal(0)) == extra

        # any non-cash shortfall beyond a cent is rejected
        short = exact[:-1] + [PaymentLine.build(exact[-1].method, exact[-1].amount - Decimal("0.02"))] \
            if exact[-1].amount > Decimal("0.02") else None
        if short is not None:
            assert not validate_payments(total, short)


# =============================================================================
# FOLIO ARITHMETIC
# =============================================================================


class _BookingStub:
    def __init__(self, status="CONFIRMED", authorized=True):
        self.status = status
        self.room_charge_authorized = authorized


class TestFolioRules:
    @pytest.mark.parametrize("seed_value", range(25))
    def test_charge_adds_exactly(self, seed_value):
        rng = random.Random(seed_value)
        current = _amount(rng, 0, 1000000)
        charge = _amount(rng, 0, 200000)
        assert apply_room_charge(current, charge) == current + charge

    @pytest.mark.parametrize("seed_value", range(25))
    def test_sequential_charges_equal_their_sum(self, seed_value):
        rng = random.Random(seed_value)
        start = _amount(rng, 0, 1000000)
        charges = [_amount(rng, 0, 200000) for _ in range(rng.randint(1, 6))]

        balance = start
        for charge in charges:
            balance = apply_room_charge(balance, charge)
        assert balance == apply_room_charge(start, sum(charges, Decimal(0)))

        shuffled = list(charges)
        rng.shuffle(shuffled)
        reordered = start
        for charge in shuffled:
            reordered = apply_room_charge(reordered, charge)
        assert reordered == balance
        assert balance >= 0

    def test_zero_charge_is_noop(self):
        assert apply_room_charge("1520.50", "0") == Decimal("1520.50")

    def test_negative_charge_refused(self):
        with pytest.raises(ValidationError):
            apply_room_charge("100.00", "-1.00")

    def test_booking_checks(self):
        assert validate_booking_for_room_charge(_BookingStub())
        with pytest.raises(NotFoundError):
            validate_booking_for_room_charge(None)
        with pytest.raises(BusinessRuleError) as exc:
            validate_booking_for_room_charge(_BookingStub(status="PENDING"))
        assert exc.value.message == "Booking must be confirmed for room charges. Current status: PENDING"
        with pytest.raises(BusinessRuleError) as exc:
            validate_booking_for_room_charge(_BookingStub(authorized=False))
        assert exc.value.message == "Guest is not authorized for room charges"
