from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from hotelpos.time_utils import to_utc_z
from hotelpos.money import format_money

_ACTIVE_STATUS_SQL = "status IN ('OPEN', 'SENT_TO_KITCHEN', 'IN_PROGRESS', 'READY', 'SERVED')"


class Order(db.Model):
    """
    A guest's tab at an outlet.

    MONEY: every amount is Numeric(12, 2). The stored figures always satisfy
    total == subtotal + tax_amount + service_charge - discount_amount + tip_amount
    except after a single-item void, which decrements total alone.

    LIFECYCLE: OPEN -> SENT_TO_KITCHEN -> IN_PROGRESS -> READY -> SERVED -> PAID,
    with CANCELLED / VOID reachable from any non-terminal status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_outlet_status", "outlet_id", "status"),
        # Second line of defence for one active order per table
        db.Index(
            "uq_orders_table_active",
            "table_id",
            unique=True,
            sqlite_where=text(f"table_id IS NOT NULL AND {_ACTIVE_STATUS_SQL}"),
            postgresql_where=text(f"table_id IS NOT NULL AND {_ACTIVE_STATUS_SQL}"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)  # ORD-YYYYMMDD-NNNN

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    server_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    table_id = db.Column(db.Integer, db.ForeignKey("dining_tables.id"), nullable=True, index=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    guest_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(24), nullable=False, default="OPEN", index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    service_charge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tip_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    outlet = db.relationship("Outlet", backref=db.backref("orders", lazy=True))
    server = db.relationship("User", foreign_keys=[server_id])
    table = db.relationship("DiningTable", backref=db.backref("orders", lazy=True))
    booking = db.relationship("Booking", backref=db.backref("orders", lazy=True))
    shift = db.relationship("Shift", backref=db.backref("orders", lazy=True))
    items = db.relationship("OrderItem", back_populates="order", lazy=True, order_by="OrderItem.id", cascade="all, delete-orphan")
    payments = db.relationship("OrderPayment", back_populates="order", lazy=True, order_by="OrderPayment.id")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False, include_payments: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "outlet_id": self.outlet_id,
            "server_id": self.server_id,
            "table_id": self.table_id,
            "booking_id": self.booking_id,
            "shift_id": self.shift_id,
            "guest_name": self.guest_name,
            "status": self.status,
            "subtotal": format_money(self.subtotal),
            "tax_amount": format_money(self.tax_amount),
            "service_charge": format_money(self.service_charge),
            "discount_amount": format_money(self.discount_amount),
            "tip_amount": format_money(self.tip_amount),
            "total": format_money(self.total),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_payments:
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class OrderItem(db.Model):
    """
    One line of an order.

    unit_price is a snapshot of the menu price at add time and never changes.
    Lines are only deleted while PENDING; after that they are cancelled in place.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    modifiers = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # PENDING, SENT, PREPARING, READY, SERVED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    sent_to_kitchen_at = db.Column(db.DateTime(timezone=True), nullable=True)
    prepared_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    served_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    menu_item = db.relationship("MenuItem")

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "menu_item_id": self.menu_item_id,
            "name": self.menu_item.name if self.menu_item else None,
            "category": self.menu_item.category if self.menu_item else None,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "line_total": format_money(self.line_total),
            "modifiers": self.modifiers,
            "notes": self.notes,
            "status": self.status,
            "sent_to_kitchen_at": to_utc_z(self.sent_to_kitchen_at),
            "prepared_at": to_utc_z(self.prepared_at),
            "ready_at": to_utc_z(self.ready_at),
            "served_at": to_utc_z(self.served_at),
        }


class OrderPayment(db.Model):
    """
    Settlement line. Append-only: never updated or deleted.

    amount is what was tendered. For cash over-tender, change_given records the
    change handed back, so amount - change_given is what the order actually received.
    """
    __tablename__ = "order_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    method = db.Column(db.String(24), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    change_given = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    reference = db.Column(db.String(128), nullable=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="payments")

    @property
    def applied_amount(self):
        return self.amount - (self.change_given or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount": format_money(self.amount),
            "change_given": format_money(self.change_given),
            "applied_amount": format_money(self.applied_amount),
            "reference": self.reference,
            "processed_by_user_id": self.processed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class OrderVoid(db.Model):
    """
    Audit row for a voided order (item_id NULL) or a single voided line.

    Written in the same transaction as the status change it authorizes.
    """
    __tablename__ = "order_voids"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=True)
    reason = db.Column(db.Text, nullable=False)
    original_amount = db.Column(db.Numeric(12, 2), nullable=False)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("voids", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "item_id": self.item_id,
            "reason": self.reason,
            "original_amount": format_money(self.original_amount),
            "voided_by_user_id": self.voided_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class DiscountType(db.Model):
    """Preset discount offered at a property's outlets (staff meal, happy hour, ...)."""
    __tablename__ = "discount_types"
    __table_args__ = (
        db.UniqueConstraint("property_id", "code", name="uq_discount_types_property_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    percentage = db.Column(db.Numeric(5, 2), nullable=False)
    max_amount = db.Column(db.Numeric(12, 2), nullable=True)
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "code": self.code,
            "name": self.name,
            "percentage": str(self.percentage),
            "max_amount": format_money(self.max_amount) if self.max_amount is not None else None,
            "requires_approval": self.requires_approval,
            "is_active": self.is_active,
        }


class OrderDiscount(db.Model):
    """Audit row for each discount applied to an order."""
    __tablename__ = "order_discounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    discount_type_id = db.Column(db.Integer, db.ForeignKey("discount_types.id"), nullable=True)
    kind = db.Column(db.String(16), nullable=False)  # PERCENTAGE, FIXED_AMOUNT
    value = db.Column(db.Numeric(12, 2), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    applied_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("discounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "discount_type_id": self.discount_type_id,
            "kind": self.kind,
            "value": format_money(self.value),
            "amount": format_money(self.amount),
            "reason": self.reason,
            "applied_by_user_id": self.applied_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class OrderSequence(db.Model):
    """
    Daily order-number counter. One row per calendar day, shared by every outlet.

    next_number is the number the next order of that day will receive.
    """
    __tablename__ = "order_sequences"

    business_date = db.Column(db.String(8), primary_key=True)  # YYYYMMDD
    next_number = db.Column(db.Integer, nullable=False, default=1)
