# Overview: Cashier shift lifecycle, reports and X-readings.

"""
Shift Management Service

WHY: Cash accountability per cashier. A shift opens with a counted float,
collects every order its cashier creates while it is open, and closes with a
counted drawer that is reconciled against the cash those orders took.

DESIGN PRINCIPLES:
- One OPEN shift per cashier (checked in the create transaction, backed by a
  partial unique index)
- Closed shifts are frozen: ending/expected cash and variance never change
- Closing notes are appended, never overwritten
- Reports and X-readings are read-only; recorded readings only append
  ShiftReading rows
- Every close (plain or handover) records a final Z reading
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Order, OrderPayment, Outlet, Shift, ShiftReading, User
from ..money import ZERO, format_money, money_sum, quantize
from ..validation import AuthorizationError, BusinessRuleError, NotFoundError, ValidationError
from hotelpos.time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, unit_of_work
from .payment_service import CARD_METHODS, PaymentMethod
from .reconciliation_service import calculate_expected_cash, calculate_variance, classify_variance
from .session_service import Actor
from .status_rules import OrderStatus

SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"

READING_X = "X"
READING_Z = "Z"


@dataclass
class ShiftPage:
    items: list
    total_count: int
    page: int
    page_size: int

    def to_dict(self) -> dict:
        return {
            "items": [shift.to_dict() for shift in self.items],
            "total_count": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
        }


# =============================================================================
# QUERIES
# =============================================================================

def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def get_current_shift(cashier_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(cashier_id=cashier_id, status=SHIFT_OPEN).first()


def list_shifts(
    *,
    outlet_id: int | None = None,
    cashier_id: int | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> ShiftPage:
    default_size = int(current_app.config.get("POS_DEFAULT_PAGE_SIZE", 50))
    max_size = int(current_app.config.get("POS_MAX_PAGE_SIZE", 200))
    page = max(1, page or 1)
    page_size = min(max(1, page_size or default_size), max_size)

    query = db.session.query(Shift)
    if outlet_id is not None:
        query = query.filter(Shift.outlet_id == outlet_id)
    if cashier_id is not None:
        query = query.filter(Shift.cashier_id == cashier_id)
    if status:
        status = status.upper()
        if status not in (SHIFT_OPEN, SHIFT_CLOSED):
            raise ValidationError("Shift status must be OPEN or CLOSED")
        query = query.filter(Shift.status == status)
    if start is not None:
        query = query.filter(Shift.opened_at >= start)
    if end is not None:
        query = query.filter(Shift.opened_at < end)

    total_count = query.count()
    shifts = (
        query.order_by(Shift.opened_at.desc(), Shift.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return ShiftPage(items=shifts, total_count=total_count, page=page, page_size=page_size)


def shift_cash_movements(shift_id: int) -> tuple[list[Decimal], list[Decimal]]:
    """
    (cash payments, cash refunds) taken by the shift's orders.

    Cash payments are counted net of change handed back. Refunds are not
    recorded by the POS yet, so the refund list is always empty.
    """
    payments = (
        db.session.query(OrderPayment)
        .join(Order, Order.id == OrderPayment.order_id)
        .filter(Order.shift_id == shift_id, OrderPayment.method == PaymentMethod.CASH.value)
        .order_by(OrderPayment.id)
        .all()
    )
    return [quantize(p.applied_amount) for p in payments], []


# =============================================================================
# OPEN / CLOSE
# =============================================================================

def open_shift(
    outlet_id: int,
    actor: Actor,
    starting_cash,
    *,
    cashier_id: int | None = None,
    notes: str | None = None,
) -> Shift:
    """
    Open a shift for a cashier (the actor unless cashier_id is given).

    Raises:
        NotFoundError / BusinessRuleError for a missing or inactive outlet,
        a missing cashier, or a cashier who already holds an open shift
    """
    try:
        starting_cash = quantize(starting_cash if starting_cash is not None else 0)
    except ValueError:
        raise ValidationError("Starting cash must be a number")
    if starting_cash < 0:
        raise ValidationError("Starting cash cannot be negative")
    cashier_id = cashier_id or actor.user_id
    if cashier_id != actor.user_id and not actor.is_manager:
        raise AuthorizationError("Only a manager can open a shift for another cashier")

    def _work():
        outlet = db.session.get(Outlet, outlet_id)
        if not outlet:
            raise NotFoundError("Sales outlet not found")
        if not outlet.is_active:
            raise BusinessRuleError("Cannot open shift at an inactive outlet")

        cashier = db.session.get(User, cashier_id)
        if not cashier or not cashier.is_active:
            raise NotFoundError("Cashier not found")

        existing = lock_for_update(
            db.session.query(Shift).filter_by(cashier_id=cashier.id, status=SHIFT_OPEN)
        ).first()
        if existing:
            raise BusinessRuleError(
                f"Cashier already has an open shift (shift {existing.id}). Close it before opening a new one.",
                details={"shift_id": existing.id},
            )

        shift = Shift(
            outlet_id=outlet.id,
            cashier_id=cashier.id,
            status=SHIFT_OPEN,
            starting_cash=starting_cash,
            opened_at=utcnow(),
            notes=notes,
        )
        db.session.add(shift)
        db.session.flush()
        return shift

    return unit_of_work(_work, operation="open shift")


def _close_locked(shift: Shift, ending_cash: Decimal, actor: Actor, notes: str | None) -> Shift:
    if shift.status != SHIFT_OPEN:
        raise BusinessRuleError("Shift is already closed")
    if shift.cashier_id != actor.user_id and not actor.is_manager:
        raise AuthorizationError("Only the shift owner or a manager can close this shift")

    cash_payments, cash_refunds = shift_cash_movements(shift.id)
    expected = calculate_expected_cash(shift.starting_cash, cash_payments, cash_refunds)

    shift.status = SHIFT_CLOSED
    shift.closed_at = utcnow()
    shift.ending_cash = ending_cash
    shift.expected_cash = expected
    shift.variance = calculate_variance(ending_cash, expected)
    if notes:
        shift.notes = f"{shift.notes}\n{notes}" if shift.notes else notes
    _write_reading(shift, READING_Z, actor.user_id)
    return shift


def _parse_ending_cash(ending_cash) -> Decimal:
    if ending_cash is None:
        raise ValidationError("Ending cash is required")
    try:
        ending_cash = quantize(ending_cash)
    except ValueError:
        raise ValidationError("Ending cash must be a number")
    if ending_cash < 0:
        raise ValidationError("Ending cash cannot be negative")
    return ending_cash


def close_shift(shift_id: int, ending_cash, actor: Actor, notes: str | None = None) -> Shift:
    """
    Close a shift and freeze its reconciliation.

    expected_cash = starting_cash + cash taken - cash refunded
    variance      = ending_cash - expected_cash (positive = over, negative = short)
    """
    ending_cash = _parse_ending_cash(ending_cash)

    def _work():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        return _close_locked(shift, ending_cash, actor, notes)

    shift = unit_of_work(_work, operation="close shift")
    if shift.variance != 0:
        current_app.logger.info(
            "Shift %s closed with variance %s (%s)",
            shift.id,
            format_money(shift.variance),
            classify_variance(shift.variance),
        )
    return shift


def handover_shift(
    shift_id: int,
    ending_cash,
    incoming_cashier_id: int,
    actor: Actor,
    notes: str | None = None,
) -> tuple[Shift, Shift]:
    """
    Close a shift and open the next cashier's shift at the same outlet, with
    the counted drawer as its float. Both happen in one transaction.
    """
    ending_cash = _parse_ending_cash(ending_cash)
    if not incoming_cashier_id:
        raise ValidationError("Incoming cashier is required")

    def _work():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if shift.cashier_id == incoming_cashier_id:
            raise BusinessRuleError("Cannot hand a shift over to the same cashier")

        incoming = db.session.get(User, incoming_cashier_id)
        if not incoming or not incoming.is_active:
            raise NotFoundError("Cashier not found")
        if get_current_shift(incoming.id):
            raise BusinessRuleError("Incoming cashier already has an open shift")

        closed = _close_locked(shift, ending_cash, actor, notes)
        db.session.flush()

        opened = Shift(
            outlet_id=closed.outlet_id,
            cashier_id=incoming.id,
            status=SHIFT_OPEN,
            starting_cash=ending_cash,
            opened_at=utcnow(),
            notes=f"Handover from shift {closed.id}",
        )
        db.session.add(opened)
        db.session.flush()
        return closed, opened

    return unit_of_work(_work, operation="hand over shift")


# =============================================================================
# REPORTS (read-only)
# =============================================================================

def _payment_bucket(method: str) -> str:
    method = PaymentMethod(method)
    if method == PaymentMethod.CASH:
        return "cash"
    if method in CARD_METHODS:
        return "card"
    if method == PaymentMethod.ROOM_CHARGE:
        return "room_charge"
    return "other"


def _aggregate(shift: Shift) -> dict:
    orders = db.session.query(Order).filter(Order.shift_id == shift.id).order_by(Order.id).all()

    by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
    buckets = {"cash": ZERO, "card": ZERO, "room_charge": ZERO, "other": ZERO}
    by_status: dict[str, dict] = {}
    paid_count = 0
    paid_total = ZERO
    void_count = 0
    void_amount = ZERO
    discount_count = 0
    discount_total = ZERO

    for order in orders:
        entry = by_status.setdefault(order.status, {"count": 0, "total": ZERO})
        entry["count"] += 1
        entry["total"] = quantize(entry["total"] + order.total)

        for void in order.voids:
            void_count += 1
            void_amount = quantize(void_amount + void.original_amount)
        if order.status != OrderStatus.CANCELLED.value:
            for discount in order.discounts:
                discount_count += 1
                discount_total = quantize(discount_total + discount.amount)

        if order.status != OrderStatus.PAID.value:
            continue
        paid_count += 1
        paid_total = quantize(paid_total + order.total)
        for payment in order.payments:
            amount = quantize(payment.applied_amount)
            by_method[payment.method] = quantize(by_method[payment.method] + amount)
            bucket = _payment_bucket(payment.method)
            buckets[bucket] = quantize(buckets[bucket] + amount)

    cash_payments, cash_refunds = shift_cash_movements(shift.id)
    expected = calculate_expected_cash(shift.starting_cash, cash_payments, cash_refunds)

    return {
        "orders": orders,
        "by_method": dict(by_method),
        "buckets": buckets,
        "by_status": by_status,
        "paid_count": paid_count,
        "paid_total": paid_total,
        "void_count": void_count,
        "void_amount": void_amount,
        "discount_count": discount_count,
        "discount_total": discount_total,
        "cash_payments": cash_payments,
        "expected_cash": expected,
    }


def _cash_position(shift: Shift, interim_expected: Decimal) -> dict:
    is_final = shift.status == SHIFT_CLOSED
    expected = shift.expected_cash if is_final else interim_expected
    variance = shift.variance if is_final else None
    return {
        "starting_cash": format_money(shift.starting_cash),
        "expected_cash": format_money(expected),
        "ending_cash": format_money(shift.ending_cash) if shift.ending_cash is not None else None,
        "variance": format_money(variance) if variance is not None else None,
        "variance_status": classify_variance(variance) if variance is not None else None,
    }


def get_shift_report(shift_id: int) -> dict:
    """Full shift report: orders, payments by method, sales by status, cash position."""
    shift = get_shift(shift_id)
    data = _aggregate(shift)

    transactions = []
    for order in data["orders"]:
        transactions.append({
            "order_id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "total": format_money(order.total),
            "created_at": to_utc_z(order.created_at),
            "payments": [p.to_dict() for p in order.payments],
        })

    buckets = data["buckets"]
    return {
        "shift": shift.to_dict(),
        "is_final": shift.status == SHIFT_CLOSED,
        "transactions": transactions,
        "payments_by_method": {m: format_money(v) for m, v in sorted(data["by_method"].items())},
        "sales_by_status": {
            status: {"count": entry["count"], "total": format_money(entry["total"])}
            for status, entry in sorted(data["by_status"].items())
        },
        "summary": {
            "total_orders": len(data["orders"]),
            "paid_orders": data["paid_count"],
            "total_sales": format_money(data["paid_total"]),
            "cash": format_money(buckets["cash"]),
            "card": format_money(buckets["card"]),
            "room_charges": format_money(buckets["room_charge"]),
            "other": format_money(buckets["other"]),
            "void_count": data["void_count"],
            "void_amount": format_money(data["void_amount"]),
            "discount_count": data["discount_count"],
            "discount_total": format_money(data["discount_total"]),
        },
        "cash": _cash_position(shift, data["expected_cash"]),
    }


def get_x_reading(shift_id: int) -> dict:
    """
    Interim snapshot of a shift's sales and cash position.

    Nothing is written: the shift row, its orders and its payments are only
    read. For a closed shift the frozen close figures are reported instead.
    """
    shift = get_shift(shift_id)
    data = _aggregate(shift)
    buckets = data["buckets"]

    return {
        "reading_type": "FINAL" if shift.status == SHIFT_CLOSED else "X",
        "shift_id": shift.id,
        "outlet_id": shift.outlet_id,
        "cashier_id": shift.cashier_id,
        "cashier_name": shift.cashier.display_name if shift.cashier else None,
        "shift_started_at": to_utc_z(shift.opened_at),
        "generated_at": to_utc_z(utcnow()),
        "order_count": data["paid_count"],
        "total_sales": format_money(money_sum(buckets.values())),
        "cash_sales": format_money(buckets["cash"]),
        "card_sales": format_money(buckets["card"]),
        "room_charge_sales": format_money(buckets["room_charge"]),
        "other_sales": format_money(buckets["other"]),
        "void_count": data["void_count"],
        "void_amount": format_money(data["void_amount"]),
        "discount_count": data["discount_count"],
        "discount_total": format_money(data["discount_total"]),
        **_cash_position(shift, data["expected_cash"]),
    }


# =============================================================================
# RECORDED READINGS
# =============================================================================

def _write_reading(shift: Shift, reading_type: str, generated_by_user_id: int | None) -> ShiftReading:
    data = _aggregate(shift)
    buckets = data["buckets"]
    last_number = (
        db.session.query(db.func.max(ShiftReading.reading_number))
        .filter(ShiftReading.shift_id == shift.id)
        .scalar()
    )
    expected = shift.expected_cash if reading_type == READING_Z else data["expected_cash"]

    reading = ShiftReading(
        shift_id=shift.id,
        reading_type=reading_type,
        reading_number=(last_number or 0) + 1,
        order_count=data["paid_count"],
        total_sales=money_sum(buckets.values()),
        cash_sales=buckets["cash"],
        card_sales=buckets["card"],
        room_charge_sales=buckets["room_charge"],
        other_sales=buckets["other"],
        void_count=data["void_count"],
        void_amount=data["void_amount"],
        discount_count=data["discount_count"],
        discount_total=data["discount_total"],
        expected_cash=expected,
        generated_by_user_id=generated_by_user_id,
    )
    db.session.add(reading)
    db.session.flush()
    return reading


def record_reading(shift_id: int, actor: Actor) -> ShiftReading:
    """
    Record an X reading for an open shift.

    Appends a numbered ShiftReading; the shift row itself is left as it was.
    """
    def _work():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if shift.status != SHIFT_OPEN:
            raise BusinessRuleError("Shift is already closed")
        if shift.cashier_id != actor.user_id and not actor.is_manager:
            raise AuthorizationError("Only the shift owner or a manager can record a reading")
        return _write_reading(shift, READING_X, actor.user_id)

    return unit_of_work(_work, operation="record shift reading")


def list_readings(shift_id: int) -> list[ShiftReading]:
    """Reading history for a shift, newest first."""
    get_shift(shift_id)
    return (
        db.session.query(ShiftReading)
        .filter(ShiftReading.shift_id == shift_id)
        .order_by(ShiftReading.reading_number.desc())
        .all()
    )
