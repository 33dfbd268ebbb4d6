# Overview: Order lifecycle orchestration; every order/item mutation goes through here.

"""
Order Lifecycle Service

Ties the status machines, the totals calculator, tables, shifts, bookings and
the approval gate together.

DESIGN PRINCIPLES:
- Every mutation is one unit of work: all writes land or none do
- Status legality is re-checked on the row read inside that transaction
- Every change to lines, discount or tip recalculates totals from scratch
  (a single-item void is the one exception: it decrements total only)
- Identity is passed in as an Actor, never read from the request
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import (
    Booking,
    DiscountType,
    MenuItem,
    Order,
    OrderDiscount,
    OrderItem,
    OrderVoid,
    Outlet,
    Shift,
    User,
)
from ..models.bookings import BOOKING_CONFIRMED
from ..money import ZERO, format_money, quantize, to_decimal
from ..validation import (
    AuthorizationError,
    BusinessRuleError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from hotelpos.time_utils import utcnow
from . import approval_service, inventory_service, sequence_service, table_service
from .concurrency import lock_for_update, unit_of_work
from .session_service import Actor
from .status_rules import (
    ACTIVE_ORDER_STATUSES,
    ITEM_DONE_STATUSES,
    ItemStatus,
    OrderStatus,
    TERMINAL_ITEM_STATUSES,
    ensure_item_transition,
    ensure_order_transition,
    forward_path,
    is_active_order_status,
    to_item_status,
    to_order_status,
)
from .totals_service import apply_totals, calculate_subtotal, billable_items, totals_for_order

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED_AMOUNT = "FIXED_AMOUNT"
VALID_DISCOUNT_KINDS = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED_AMOUNT)


@dataclass
class OrderPage:
    items: list
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    def to_dict(self) -> dict:
        return {
            "items": [order.to_dict() for order in self.items],
            "total_count": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


# =============================================================================
# HELPERS
# =============================================================================

def _load_order(order_id: int, *, lock: bool = True) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _load_item(order: Order, item_id: int) -> OrderItem:
    item = db.session.query(OrderItem).filter_by(id=item_id).first()
    if not item or item.order_id != order.id:
        raise NotFoundError("Order item not found")
    return item


def _ensure_active(order: Order, action: str) -> None:
    if not is_active_order_status(order.status):
        raise StateTransitionError(
            f"Cannot {action} an order with status {order.status}",
            details={"current_status": order.status},
        )


def _set_order_status(order: Order, target: OrderStatus) -> None:
    ensure_order_transition(order.status, target)
    order.status = target.value


def _advance_order(order: Order, target: OrderStatus) -> None:
    """Walk the order forward one legal step at a time."""
    for step in forward_path(order.status, target):
        order.status = step.value


def _set_item_status(item: OrderItem, target: ItemStatus, now: datetime | None = None) -> None:
    ensure_item_transition(item.status, target)
    if item.status == target.value:
        return
    now = now or utcnow()
    item.status = target.value
    if target == ItemStatus.SENT:
        item.sent_to_kitchen_at = now
    elif target == ItemStatus.PREPARING:
        item.prepared_at = now
    elif target == ItemStatus.READY:
        item.ready_at = now
    elif target == ItemStatus.SERVED:
        item.served_at = now


def _append_note(order: Order, note: str) -> None:
    order.notes = f"{order.notes}\n{note}" if order.notes else note


def _recalculate(order: Order):
    """
    Full recalculation from the order's current lines.

    A discount larger than the remaining subtotal (lines removed after it was
    applied) is capped at the subtotal.
    """
    totals = totals_for_order(order)
    if totals.discount_amount > totals.subtotal:
        totals = totals_for_order(order, discount_amount=totals.subtotal)
    apply_totals(order, totals)
    return totals


def _cascade_ready(order: Order) -> None:
    """Order moves to READY once every line is READY, SERVED or CANCELLED."""
    if order.status not in (OrderStatus.SENT_TO_KITCHEN.value, OrderStatus.IN_PROGRESS.value):
        return
    statuses = [to_item_status(item.status) for item in order.items]
    if not statuses or all(s == ItemStatus.CANCELLED for s in statuses):
        return
    if all(s in ITEM_DONE_STATUSES for s in statuses):
        _advance_order(order, OrderStatus.READY)


def _cancel_open_items(order: Order, now: datetime) -> int:
    count = 0
    for item in order.items:
        if to_item_status(item.status) not in TERMINAL_ITEM_STATUSES:
            _set_item_status(item, ItemStatus.CANCELLED, now)
            count += 1
    return count


def _require_text(value: str | None, message: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message)
    return str(value).strip()


# =============================================================================
# CREATE / READ
# =============================================================================

def find_open_shift(cashier_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(cashier_id=cashier_id, status="OPEN").first()


def create_order(
    outlet_id: int | None,
    actor: Actor,
    *,
    server_id: int | None = None,
    table_id: int | None = None,
    booking_id: int | None = None,
    guest_name: str | None = None,
    notes: str | None = None,
    require_shift: bool = False,
) -> Order:
    """
    Open a new order.

    The order carries the server's open shift if there is one, and null
    otherwise. A table, if given, must belong to the outlet and be free of
    active orders; it becomes OCCUPIED in the same transaction.
    """
    if not outlet_id:
        raise ValidationError("Outlet ID is required")
    server_id = server_id or actor.user_id
    if not server_id:
        raise ValidationError("Server ID is required")

    def _work():
        outlet = db.session.get(Outlet, outlet_id)
        if not outlet:
            raise NotFoundError("Sales outlet not found")
        if not outlet.is_active:
            raise BusinessRuleError("Cannot create orders for inactive outlets")

        server = db.session.get(User, server_id)
        if not server or not server.is_active:
            raise NotFoundError("Server not found")

        if table_id is not None:
            table = table_service.get_table(table_id)
            if table.outlet_id != outlet.id:
                raise BusinessRuleError("Table does not belong to this outlet")
            if table_service.has_active_order(table.id):
                raise BusinessRuleError("Table already has an active order")

        if booking_id is not None:
            booking = db.session.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking not found")
            if booking.status != BOOKING_CONFIRMED:
                raise BusinessRuleError(
                    f"Booking must be confirmed for room service orders. Current status: {booking.status}"
                )

        shift = find_open_shift(server.id)
        if require_shift:
            if shift is None:
                raise BusinessRuleError("An open shift is required to create orders")
            if shift.outlet_id != outlet.id:
                raise BusinessRuleError("Open shift belongs to a different outlet")

        order = Order(
            order_number=sequence_service.next_order_number(),
            outlet_id=outlet.id,
            server_id=server.id,
            table_id=table_id,
            booking_id=booking_id,
            shift_id=shift.id if shift else None,
            guest_name=guest_name,
            status=OrderStatus.OPEN.value,
            subtotal=ZERO,
            tax_amount=ZERO,
            service_charge=ZERO,
            discount_amount=ZERO,
            tip_amount=ZERO,
            total=ZERO,
            notes=notes,
            created_at=utcnow(),
        )
        db.session.add(order)

        if table_id is not None:
            table_service.set_occupied(table_id)

        db.session.flush()
        return order

    return unit_of_work(_work, operation="create order")


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).options(
        joinedload(Order.items),
        joinedload(Order.payments),
    ).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_active_order_for_table(table_id: int) -> Order | None:
    return db.session.query(Order).filter(
        Order.table_id == table_id,
        Order.status.in_([s.value for s in ACTIVE_ORDER_STATUSES]),
    ).first()


def get_open_orders(outlet_id: int) -> list[Order]:
    """Every order at the outlet that has not reached PAID, CANCELLED or VOID, oldest first."""
    return (
        db.session.query(Order)
        .filter(
            Order.outlet_id == outlet_id,
            Order.status.in_([s.value for s in ACTIVE_ORDER_STATUSES]),
        )
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


def list_orders(
    *,
    outlet_id: int | None = None,
    status: str | None = None,
    server_id: int | None = None,
    table_id: int | None = None,
    shift_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> OrderPage:
    default_size = int(current_app.config.get("POS_DEFAULT_PAGE_SIZE", 50))
    max_size = int(current_app.config.get("POS_MAX_PAGE_SIZE", 200))
    page = max(1, page or 1)
    page_size = min(max(1, page_size or default_size), max_size)

    query = db.session.query(Order)
    if outlet_id is not None:
        query = query.filter(Order.outlet_id == outlet_id)
    if status:
        query = query.filter(Order.status == to_order_status(status).value)
    if server_id is not None:
        query = query.filter(Order.server_id == server_id)
    if table_id is not None:
        query = query.filter(Order.table_id == table_id)
    if shift_id is not None:
        query = query.filter(Order.shift_id == shift_id)
    if start is not None:
        query = query.filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at < end)

    total_count = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return OrderPage(items=orders, total_count=total_count, page=page, page_size=page_size)


# =============================================================================
# LINES
# =============================================================================

def add_item(
    order_id: int,
    menu_item_id: int,
    quantity: int,
    actor: Actor,
    *,
    modifiers: str | None = None,
    notes: str | None = None,
) -> OrderItem:
    """
    Add a PENDING line priced at the menu item's current selling price.

    After commit, asks the inventory side to refresh the item's availability
    in the background; that refresh can never fail this call.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "add items to")

        menu_item = db.session.get(MenuItem, menu_item_id)
        if not menu_item:
            raise NotFoundError("Menu item not found")
        if menu_item.property_id != order.outlet.property_id:
            raise BusinessRuleError("Menu item does not belong to this property")
        if not menu_item.is_available:
            message = f'Menu item "{menu_item.name}" is unavailable'
            if menu_item.unavailable_reason:
                message = f"{message}: {menu_item.unavailable_reason}"
            raise BusinessRuleError(message)

        item = OrderItem(
            order_id=order.id,
            menu_item_id=menu_item.id,
            quantity=quantity,
            unit_price=quantize(menu_item.selling_price),
            modifiers=modifiers,
            notes=notes,
            status=ItemStatus.PENDING.value,
        )
        order.items.append(item)
        _recalculate(order)
        db.session.flush()
        return item, order.outlet.property_id

    item, property_id = unit_of_work(_work, operation="add item")
    inventory_service.schedule_availability_refresh(item.menu_item_id, property_id)
    return item


def _editable_item(order: Order, item_id: int) -> OrderItem:
    item = _load_item(order, item_id)
    if item.status != ItemStatus.PENDING.value:
        raise StateTransitionError(
            f"Cannot modify item with status {item.status}: it has already been sent to kitchen",
            details={"current_status": item.status},
        )
    return item


def remove_item(order_id: int, item_id: int, actor: Actor) -> Order:
    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "remove items from")
        item = _editable_item(order, item_id)
        order.items.remove(item)
        _recalculate(order)
        return order

    return unit_of_work(_work, operation="remove item")


def update_item_quantity(order_id: int, item_id: int, quantity: int, actor: Actor) -> OrderItem:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "change items on")
        item = _editable_item(order, item_id)
        item.quantity = quantity
        _recalculate(order)
        return item

    return unit_of_work(_work, operation="update item quantity")


# =============================================================================
# CUSTOMER
# =============================================================================

def assign_customer(
    order_id: int,
    actor: Actor,
    *,
    customer_name: str | None = None,
    phone: str | None = None,
    booking_id: int | None = None,
) -> Order:
    """
    Walk-in customers become a note at the top of the order; hotel guests link
    the booking (which must be CONFIRMED).
    """
    if booking_id is None and not (customer_name and customer_name.strip()):
        raise ValidationError("Customer name or booking is required")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "assign a customer to")

        if booking_id is not None:
            booking = db.session.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking not found")
            if booking.status != BOOKING_CONFIRMED:
                raise BusinessRuleError(
                    f"Booking must be confirmed for room service orders. Current status: {booking.status}"
                )
            order.booking_id = booking.id
            order.guest_name = booking.guest_name
        else:
            name = customer_name.strip()
            line = f"Customer: {name} ({phone.strip()})" if phone and phone.strip() else f"Customer: {name}"
            order.notes = f"{line}\n{order.notes}" if order.notes else line
            order.guest_name = name
        return order

    return unit_of_work(_work, operation="assign customer")


# =============================================================================
# KITCHEN ROUTING
# =============================================================================

def send_to_kitchen(order_id: int, actor: Actor) -> Order:
    """
    Mark every PENDING line SENT and, if the order is still OPEN, move it to
    SENT_TO_KITCHEN. Orders already further along keep their status.
    """
    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "send")

        if not order.items:
            raise BusinessRuleError("Cannot send empty order to kitchen")
        pending = [item for item in order.items if item.status == ItemStatus.PENDING.value]
        if not pending:
            raise BusinessRuleError("No pending items to send to kitchen")

        if order.status == OrderStatus.OPEN.value:
            _set_order_status(order, OrderStatus.SENT_TO_KITCHEN)

        now = utcnow()
        for item in pending:
            _set_item_status(item, ItemStatus.SENT, now)
        return order

    return unit_of_work(_work, operation="send order to kitchen")


def update_item_status(item_id: int, status, actor: Actor) -> OrderItem:
    """
    Kitchen action on a single line.

    PREPARING on a SENT_TO_KITCHEN order moves the order to IN_PROGRESS; the
    last line to become READY (or SERVED/CANCELLED) moves the order to READY.
    A kitchen cancellation drops the line from the totals.
    """
    target = to_item_status(status)

    def _work():
        item = lock_for_update(db.session.query(OrderItem).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError("Order item not found")
        order = _load_order(item.order_id)
        _ensure_active(order, "update items on")
        if item.status == ItemStatus.PENDING.value and target != ItemStatus.CANCELLED:
            raise StateTransitionError("Item has not been sent to kitchen yet")

        _set_item_status(item, target)

        if target == ItemStatus.PREPARING and order.status == OrderStatus.SENT_TO_KITCHEN.value:
            _set_order_status(order, OrderStatus.IN_PROGRESS)
        if target == ItemStatus.CANCELLED:
            _recalculate(order)

        _cascade_ready(order)
        return item

    return unit_of_work(_work, operation="update item status")


def update_order_status(order_id: int, status, actor: Actor) -> Order:
    """
    Manual status change along the kitchen/service path.

    PAID is only reachable through payment; CANCELLED and VOID through
    cancel_order/void_order. Moving to SERVED also serves every READY line.
    """
    target = to_order_status(status)
    if target == OrderStatus.PAID:
        raise BusinessRuleError("Orders are marked PAID by processing payment")
    if target in (OrderStatus.CANCELLED, OrderStatus.VOID):
        raise BusinessRuleError(f"Use the {target.value.lower()} operation to move an order to {target.value}")

    def _work():
        order = _load_order(order_id)
        _set_order_status(order, target)
        if target == OrderStatus.SERVED:
            now = utcnow()
            for item in order.items:
                if item.status == ItemStatus.READY.value:
                    _set_item_status(item, ItemStatus.SERVED, now)
        return order

    return unit_of_work(_work, operation="update order status")


def mark_order_served(order_id: int, actor: Actor) -> Order:
    return update_order_status(order_id, OrderStatus.SERVED, actor)


# =============================================================================
# DISCOUNT / TIP
# =============================================================================

def _discount_amount(kind: str, value: Decimal, subtotal: Decimal, max_amount=None) -> Decimal:
    if kind == DISCOUNT_PERCENTAGE:
        if value < 0 or value > 100:
            raise ValidationError("Percentage discount must be between 0 and 100")
        amount = quantize(subtotal * value / Decimal(100))
    else:
        if value < 0:
            raise ValidationError("Discount amount cannot be negative")
        amount = quantize(value)
    if max_amount is not None:
        amount = min(amount, quantize(max_amount))
    return amount


def apply_discount(
    order_id: int,
    actor: Actor,
    *,
    kind: str | None = None,
    value=None,
    discount_type_id: int | None = None,
    reason: str | None = None,
    approver_id: int | None = None,
) -> Order:
    """
    Apply a discount computed against the order's current subtotal.

    Either a manual kind/value (PERCENTAGE 0-100, or FIXED_AMOUNT) or a preset
    DiscountType. Presets flagged requires_approval need a manager approver.
    The discount replaces any previous one and never exceeds the subtotal.
    Tax and service charge stay computed on the full subtotal.
    """
    if discount_type_id is None:
        kind = (kind or "").upper()
        if kind not in VALID_DISCOUNT_KINDS:
            raise ValidationError(f"Discount type must be one of: {', '.join(VALID_DISCOUNT_KINDS)}")
        if value is None:
            raise ValidationError("Discount value is required")
        try:
            value = to_decimal(value)
        except ValueError:
            raise ValidationError("Discount value must be a number")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "discount")

        preset = None
        applied_kind, applied_value, max_amount = kind, value, None
        if discount_type_id is not None:
            preset = db.session.get(DiscountType, discount_type_id)
            if not preset or not preset.is_active:
                raise NotFoundError("Discount type not found")
            if preset.property_id != order.outlet.property_id:
                raise BusinessRuleError("Discount type does not belong to this property")
            applied_kind, applied_value, max_amount = DISCOUNT_PERCENTAGE, to_decimal(preset.percentage), preset.max_amount

        approver = None
        if preset is not None and preset.requires_approval:
            approver = approval_service.require_approver(approver_id, action=f"apply discount {preset.code}")
        elif approver_id is not None:
            approver = approval_service.require_approver(approver_id, action="apply discount")

        subtotal = calculate_subtotal(billable_items(order))
        amount = _discount_amount(applied_kind, applied_value, subtotal, max_amount)
        if amount > subtotal:
            raise BusinessRuleError(
                "Discount amount cannot exceed order subtotal",
                details={"discount": format_money(amount), "subtotal": format_money(subtotal)},
            )

        totals = totals_for_order(order, discount_amount=amount)
        apply_totals(order, totals)

        db.session.add(OrderDiscount(
            order_id=order.id,
            discount_type_id=preset.id if preset else None,
            kind=applied_kind,
            value=quantize(applied_value),
            amount=amount,
            reason=reason,
            applied_by_user_id=actor.user_id,
            approved_by_user_id=approver.id if approver else None,
        ))

        suffix = "%" if applied_kind == DISCOUNT_PERCENTAGE else ""
        label = preset.code if preset else applied_kind
        note = f"Discount applied: {label} {quantize(applied_value)}{suffix}"
        if reason:
            note = f"{note} - {reason}"
        _append_note(order, note)
        return order

    return unit_of_work(_work, operation="apply discount")


def remove_discount(order_id: int, actor: Actor) -> Order:
    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "remove the discount from")
        apply_totals(order, totals_for_order(order, discount_amount=ZERO))
        _append_note(order, "Discount removed")
        return order

    return unit_of_work(_work, operation="remove discount")


def add_tip(order_id: int, amount, actor: Actor) -> Order:
    try:
        tip = to_decimal(amount)
    except ValueError:
        raise ValidationError("Tip amount must be a number")
    if tip < 0:
        raise ValidationError("Tip amount cannot be negative")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "add a tip to")
        apply_totals(order, totals_for_order(order, tip_amount=quantize(tip)))
        return order

    return unit_of_work(_work, operation="add tip")


# =============================================================================
# CANCEL / VOID
# =============================================================================

def _release_table(order: Order) -> None:
    if order.table_id is not None:
        table_service.set_dirty(order.table_id)


def cancel_order(order_id: int, actor: Actor, reason: str | None = None) -> Order:
    """Pre-kitchen mistakes: cancel every open line and free the table (as DIRTY)."""
    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "cancel")
        _set_order_status(order, OrderStatus.CANCELLED)
        _cancel_open_items(order, utcnow())
        _append_note(order, f"Cancelled: {reason}" if reason else "Cancelled")
        _release_table(order)
        return order

    return unit_of_work(_work, operation="cancel order")


def void_order(order_id: int, reason: str | None, actor: Actor, approver_id: int | None) -> Order:
    """
    Financial correction of a whole order. Requires a reason and a manager
    approver; writes the void audit row with the order total at void time.
    """
    reason = _require_text(reason, "Void reason is required")

    def _work():
        approver = approval_service.require_approver(approver_id, action="void an order")
        order = _load_order(order_id)
        _ensure_active(order, "void")
        _set_order_status(order, OrderStatus.VOID)

        db.session.add(OrderVoid(
            order_id=order.id,
            item_id=None,
            reason=reason,
            original_amount=quantize(order.total),
            voided_by_user_id=actor.user_id,
            approved_by_user_id=approver.id,
        ))
        _cancel_open_items(order, utcnow())
        _append_note(order, f"Voided: {reason}")
        _release_table(order)
        return order

    order = unit_of_work(_work, operation="void order")
    current_app.logger.info(
        "Order %s voided by user %s (approved by %s)", order.order_number, actor.user_id, approver_id
    )
    return order


def void_item(
    order_id: int,
    item_id: int,
    reason: str | None,
    actor: Actor,
    approver_id: int | None = None,
) -> OrderItem:
    """
    Void one line. The order's server or a manager may do this directly;
    anyone else needs a manager approver.

    The order total is decremented by the line amount; subtotal, tax and
    service charge are left as they were until the next full recalculation.
    """
    reason = _require_text(reason, "Void reason is required")

    def _work():
        order = _load_order(order_id)
        _ensure_active(order, "void items on")
        item = _load_item(order, item_id)

        approver = None
        if approver_id is not None:
            approver = approval_service.require_approver(approver_id, action="void an item")
        elif not (actor.user_id == order.server_id or actor.is_manager):
            raise AuthorizationError("Manager approval is required to void another server's item")

        _set_item_status(item, ItemStatus.CANCELLED)
        amount = quantize(to_decimal(item.unit_price) * item.quantity)
        order.total = quantize(to_decimal(order.total) - amount)

        db.session.add(OrderVoid(
            order_id=order.id,
            item_id=item.id,
            reason=reason,
            original_amount=amount,
            voided_by_user_id=actor.user_id,
            approved_by_user_id=approver.id if approver else (actor.user_id if actor.is_manager else None),
        ))
        _cascade_ready(order)
        return item

    return unit_of_work(_work, operation="void item")
