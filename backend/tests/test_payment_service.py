"""
Settlement through the payment service: cash change, split tenders, partial
payments, room charges to the folio and rollback on folio errors.
"""

from decimal import Decimal

import pytest

from hotelpos.extensions import db
from hotelpos.models import Booking, BookingAdjustment, DiningTable, Order, OrderPayment
from hotelpos.models.bookings import BOOKING_PENDING
from hotelpos.services import order_service, payment_service
from hotelpos.validation import BusinessRuleError, StateTransitionError, ValidationError


def _order(seed, *, table=True, booking=None, discount=None):
    actor = seed.actor(seed.server)
    order = order_service.create_order(
        seed.outlet.id,
        actor,
        table_id=seed.t1.id if table else None,
        booking_id=booking.id if booking else None,
    )
    order_service.add_item(order.id, seed.sandwich.id, 2, actor)
    order_service.add_item(order.id, seed.iced_tea.id, 1, actor)
    if discount:
        order_service.apply_discount(order.id, actor, kind="FIXED_AMOUNT", value=discount)
    return db.session.get(Order, order.id)


def _pay(seed, order, *lines, partial=False):
    payments = [{"method": method, "amount": amount} for method, amount in lines]
    return payment_service.process_payment(order.id, payments, seed.actor(seed.cashier), partial=partial)


class TestCashSettlement:
    def test_cash_with_change(self, seed):
        order = _order(seed, discount="50.00")
        assert order.total == Decimal("682.00")

        result = _pay(seed, order, ("CASH", "700.00"))

        assert result.fully_paid
        assert result.change_due == Decimal("18.00")
        assert result.order.status == "PAID"
        assert result.order.paid_at is not None
        assert db.session.get(DiningTable, seed.t1.id).status == "DIRTY"

        payment = db.session.query(OrderPayment).filter_by(order_id=order.id).one()
        assert payment.amount == Decimal("700.00")
        assert payment.change_given == Decimal("18.00")
        assert payment.applied_amount == Decimal("682.00")

    def test_to_dict_wire_format(self, seed):
        order = _order(seed, discount="50.00")
        data = _pay(seed, order, ("CASH", "700.00")).to_dict()
        assert data["change_due"] == "18.00"
        assert data["fully_paid"] is True
        assert data["order"]["status"] == "PAID"
        assert data["payments"][0]["method"] == "CASH"

    def test_cash_short(self, seed):
        order = _order(seed)
        with pytest.raises(BusinessRuleError) as exc:
            _pay(seed, order, ("CASH", "700.00"))
        assert exc.value.message == "Payment total (700.00) is less than order total (732.00)"
        assert db.session.query(OrderPayment).count() == 0
        assert db.session.get(Order, order.id).status == "OPEN"

    def test_already_paid(self, seed):
        order = _order(seed)
        _pay(seed, order, ("CASH", "732.00"))
        with pytest.raises(BusinessRuleError, match="Order is already paid"):
            _pay(seed, order, ("CASH", "1.00"))

    def test_cancelled_order_cannot_be_paid(self, seed):
        order = _order(seed)
        order_service.cancel_order(order.id, seed.actor(seed.server))
        with pytest.raises(StateTransitionError):
            _pay(seed, order, ("CASH", "732.00"))

    def test_bad_lines(self, seed):
        order = _order(seed)
        with pytest.raises(ValidationError):
            payment_service.process_payment(order.id, [], seed.actor(seed.cashier))
        with pytest.raises(ValidationError):
            _pay(seed, order, ("CASH", "0"))
        with pytest.raises(ValidationError):
            _pay(seed, order, ("IOU", "732.00"))

    def test_out_of_range_amount(self, seed):
        order = _order(seed)
        with pytest.raises(ValidationError, match="Payment amount must be a number"):
            _pay(seed, order, ("CASH", 1e30))
        with pytest.raises(ValidationError, match="Payment amount must be a number"):
            _pay(seed, order, ("CREDIT_CARD", "432.00"), ("CASH", "1e30"))
        assert db.session.query(OrderPayment).count() == 0
        assert db.session.get(Order, order.id).status == "OPEN"


class TestSplitPayments:
    def test_card_and_cash(self, seed):
        order = _order(seed)
        result = _pay(seed, order, ("CREDIT_CARD", "500.00"), ("CASH", "250.00"))

        assert result.fully_paid
        assert result.change_due == Decimal("18.00")
        card, cash = result.payments
        assert card.change_given == Decimal("0.00")
        assert cash.change_given == Decimal("18.00")

    def test_card_must_match(self, seed):
        order = _order(seed)
        with pytest.raises(BusinessRuleError, match="does not match order total"):
            _pay(seed, order, ("CREDIT_CARD", "750.00"))

    def test_non_cash_cannot_exceed_balance(self, seed):
        order = _order(seed)
        with pytest.raises(BusinessRuleError) as exc:
            _pay(seed, order, ("CREDIT_CARD", "800.00"), ("CASH", "10.00"))
        assert exc.value.message == "Non-cash payments (800.00) cannot exceed the remaining balance (732.00)"

    def test_partial_then_settle(self, seed):
        order = _order(seed)

        first = _pay(seed, order, ("CASH", "300.00"), partial=True)
        assert not first.fully_paid
        assert first.order.status == "OPEN"
        assert db.session.get(DiningTable, seed.t1.id).status == "OCCUPIED"

        summary = payment_service.get_order_payments(order.id)
        assert summary["total_paid"] == "300.00"
        assert summary["remaining_balance"] == "432.00"

        # the next call is validated against the remaining balance only
        with pytest.raises(BusinessRuleError, match="does not match order total \\(432.00\\)"):
            _pay(seed, order, ("DEBIT_CARD", "732.00"))

        second = _pay(seed, order, ("DEBIT_CARD", "432.00"))
        assert second.fully_paid
        assert second.order.status == "PAID"

        summary = payment_service.get_order_payments(order.id)
        assert summary["total_paid"] == "732.00"
        assert summary["remaining_balance"] == "0.00"
        assert len(summary["payments"]) == 2


class TestRoomCharge:
    def test_room_charge_posts_to_folio(self, seed):
        order = _order(seed, table=False, booking=seed.booking)
        result = _pay(seed, order, ("ROOM_CHARGE", "732.00"))

        assert result.fully_paid
        booking = db.session.get(Booking, seed.booking.id)
        assert booking.amount_due == Decimal("732.00")
        adjustment = db.session.query(BookingAdjustment).filter_by(booking_id=booking.id).one()
        assert adjustment.amount == Decimal("732.00")
        assert adjustment.description == f"Room Service Charge - Order {order.order_number}"

    def test_room_charge_split_with_cash(self, seed):
        order = _order(seed, table=False, booking=seed.booking)
        _pay(seed, order, ("ROOM_CHARGE", "500.00"), ("CASH", "300.00"))
        assert db.session.get(Booking, seed.booking.id).amount_due == Decimal("500.00")

    def test_room_charge_needs_booking(self, seed):
        order = _order(seed)
        with pytest.raises(BusinessRuleError, match="requires an associated booking"):
            _pay(seed, order, ("ROOM_CHARGE", "732.00"))

    def test_unauthorized_guest_rolls_back(self, seed):
        order = _order(seed, table=False, booking=seed.unauthorized_booking)
        with pytest.raises(BusinessRuleError, match="not authorized for room charges"):
            _pay(seed, order, ("ROOM_CHARGE", "732.00"))

        assert db.session.query(OrderPayment).count() == 0
        assert db.session.query(BookingAdjustment).count() == 0
        assert db.session.get(Order, order.id).status == "OPEN"

    def test_booking_no_longer_confirmed(self, seed):
        order = _order(seed, table=False, booking=seed.booking)
        seed.booking.status = BOOKING_PENDING
        db.session.commit()

        with pytest.raises(BusinessRuleError) as exc:
            _pay(seed, order, ("ROOM_CHARGE", "732.00"))
        assert exc.value.message == "Booking must be confirmed for room charges. Current status: PENDING"
        assert db.session.get(Booking, seed.booking.id).amount_due == Decimal("0.00")
