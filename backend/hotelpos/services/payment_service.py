# Overview: Split-payment validation and order settlement.

"""
Payment Processing Service

DESIGN PRINCIPLES:
- One call may carry several payment lines (split payment)
- Non-cash lines must settle the balance exactly (within 0.01)
- Cash may over-tender; the excess is change, recorded on the cash line(s)
  rather than as a separate negative payment
- Payments are append-only
- ROOM_CHARGE lines post to the booking folio inside the same transaction;
  a folio failure aborts the whole payment
- When cumulative payments reach the order total the order becomes PAID and
  its table is released as DIRTY
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Order, OrderPayment
from ..money import INPUT_TOLERANCE, ZERO, format_money, money_sum, quantize, to_decimal
from ..validation import BusinessRuleError, NotFoundError, StateTransitionError, ValidationError
from hotelpos.time_utils import utcnow
from . import folio_service, table_service
from .concurrency import lock_for_update, unit_of_work
from .session_service import Actor
from .status_rules import OrderStatus, forward_path


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    ROOM_CHARGE = "ROOM_CHARGE"
    VOUCHER = "VOUCHER"
    COMPLIMENTARY = "COMPLIMENTARY"


CARD_METHODS = frozenset({PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD})


def to_payment_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Invalid payment method: {value}. Must be one of: {allowed}")


@dataclass(frozen=True)
class PaymentLine:
    method: PaymentMethod
    amount: Decimal
    reference: str | None = None

    @classmethod
    def build(cls, method, amount, reference: str | None = None) -> "PaymentLine":
        try:
            value = to_decimal(amount)
        except ValueError:
            raise ValidationError("Payment amount must be a number")
        return cls(method=to_payment_method(method), amount=quantize(value), reference=reference)

    @classmethod
    def from_dict(cls, data: dict) -> "PaymentLine":
        if not isinstance(data, dict):
            raise ValidationError("Each payment must be an object with method and amount")
        return cls.build(data.get("method"), data.get("amount"), data.get("reference"))


@dataclass(frozen=True)
class PaymentValidation:
    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class PaymentResult:
    order: Order
    payments: list = field(default_factory=list)
    change_due: Decimal = ZERO
    fully_paid: bool = False

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(include_items=True, include_payments=True),
            "payments": [p.to_dict() for p in self.payments],
            "change_due": format_money(self.change_due),
            "fully_paid": self.fully_paid,
        }


# =============================================================================
# PURE RULES
# =============================================================================

def _has_cash(payments) -> bool:
    return any(to_payment_method(p.method) == PaymentMethod.CASH for p in payments)


def validate_payments(order_total, payments: Iterable) -> PaymentValidation:
    """
    Check payment lines against an amount due.

    - at least one line, every amount positive
    - without cash: sum must equal the total within 0.01
    - with cash: sum may exceed the total (change), never fall short
    """
    payments = list(payments)
    if not payments:
        return PaymentValidation(False, "At least one payment is required")

    for payment in payments:
        to_payment_method(payment.method)
        if to_decimal(payment.amount) <= 0:
            return PaymentValidation(False, "Payment amount must be positive")

    total_payment = money_sum(p.amount for p in payments)
    order_total = quantize(order_total)

    if _has_cash(payments):
        if total_payment < order_total:
            return PaymentValidation(
                False,
                f"Payment total ({format_money(total_payment)}) is less than order total ({format_money(order_total)})",
            )
    else:
        if abs(total_payment - order_total) > INPUT_TOLERANCE:
            if total_payment < order_total:
                message = "is less than"
            else:
                message = "does not match"
            return PaymentValidation(
                False,
                f"Payment total ({format_money(total_payment)}) {message} order total ({format_money(order_total)})",
            )

    return PaymentValidation(True)


def calculate_change_due(order_total, payments: Iterable) -> Decimal:
    """max(0, sum(payments) - total). Accepts payment lines or bare amounts."""
    amounts = [p.amount if hasattr(p, "amount") else p for p in payments]
    return max(ZERO, quantize(money_sum(amounts) - to_decimal(order_total)))


def verify_split_payment_integrity(order_total, amounts: Iterable) -> bool:
    return abs(money_sum(amounts) - to_decimal(order_total)) <= INPUT_TOLERANCE


def allocate_change(payments: list, change_due) -> list[Decimal]:
    """
    Spread change over the cash lines in order, each line giving back at most
    what it tendered. Non-cash lines always get zero.
    """
    remaining = quantize(change_due)
    allocation = []
    for payment in payments:
        if remaining > 0 and to_payment_method(payment.method) == PaymentMethod.CASH:
            share = min(remaining, quantize(payment.amount))
            allocation.append(share)
            remaining -= share
        else:
            allocation.append(ZERO)
    return allocation


def amount_paid(order: Order) -> Decimal:
    """What the order has actually received so far (tendered minus change)."""
    return money_sum(p.applied_amount for p in order.payments)


# =============================================================================
# SETTLEMENT
# =============================================================================

def process_payment(
    order_id: int,
    payments: Iterable,
    actor: Actor,
    *,
    partial: bool = False,
) -> PaymentResult:
    """
    Apply one or more payment lines to an order's remaining balance.

    partial=True accepts lines that leave a balance outstanding; they must
    still be positive, and change is only possible when the balance is settled.
    """
    lines = [p if isinstance(p, PaymentLine) else PaymentLine.from_dict(p) for p in payments]
    if not lines:
        raise ValidationError("At least one payment is required")
    for line in lines:
        if line.amount <= 0:
            raise ValidationError("Payment amount must be positive")

    def _work():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError("Order not found")

        if order.status == OrderStatus.PAID.value:
            raise BusinessRuleError("Order is already paid")
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.VOID.value):
            raise StateTransitionError(
                f"Cannot process payment for a {order.status} order",
                details={"current_status": order.status},
            )

        order_total = quantize(order.total)
        already_paid = amount_paid(order)
        remaining = quantize(order_total - already_paid)
        if remaining <= 0:
            raise BusinessRuleError("Order has no remaining balance due")

        tendered = money_sum(line.amount for line in lines)
        if partial and tendered < remaining:
            change_due = ZERO
        else:
            validation = validate_payments(remaining, lines)
            if not validation:
                raise BusinessRuleError(validation.error)
            change_due = calculate_change_due(remaining, lines)

        non_cash = money_sum(line.amount for line in lines if line.method != PaymentMethod.CASH)
        if non_cash > remaining + INPUT_TOLERANCE:
            raise BusinessRuleError(
                f"Non-cash payments ({format_money(non_cash)}) cannot exceed the remaining balance ({format_money(remaining)})"
            )

        room_charge = money_sum(line.amount for line in lines if line.method == PaymentMethod.ROOM_CHARGE)
        if room_charge > 0:
            if not order.booking_id:
                raise BusinessRuleError("Room charge requires an associated booking")
            folio_service.add_folio_charge(
                order.booking_id,
                room_charge,
                f"Room Service Charge - Order {order.order_number}",
                actor_user_id=actor.user_id,
            )

        now = utcnow()
        records = []
        for line, change in zip(lines, allocate_change(lines, change_due)):
            record = OrderPayment(
                order_id=order.id,
                method=line.method.value,
                amount=line.amount,
                change_given=change,
                reference=line.reference,
                processed_by_user_id=actor.user_id,
                created_at=now,
            )
            order.payments.append(record)
            records.append(record)

        paid = quantize(already_paid + tendered - change_due)
        fully_paid = paid >= order_total - INPUT_TOLERANCE
        if fully_paid:
            for step in forward_path(order.status, OrderStatus.PAID):
                order.status = step.value
            order.paid_at = now
            if order.table_id is not None:
                table_service.set_dirty(order.table_id)

        db.session.flush()
        return PaymentResult(order=order, payments=records, change_due=change_due, fully_paid=fully_paid)

    result = unit_of_work(_work, operation="process payment")
    if result.fully_paid:
        current_app.logger.info(
            "Order %s paid (%d payment line(s), change %s)",
            result.order.order_number,
            len(result.payments),
            format_money(result.change_due),
        )
    return result


def get_order_payments(order_id: int) -> dict:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    paid = amount_paid(order)
    return {
        "order_id": order.id,
        "order_total": format_money(order.total),
        "payments": [p.to_dict() for p in order.payments],
        "total_paid": format_money(paid),
        "change_given": format_money(money_sum(p.change_given for p in order.payments)),
        "remaining_balance": format_money(max(ZERO, quantize(to_decimal(order.total) - paid))),
    }
