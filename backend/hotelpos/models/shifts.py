from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from hotelpos.time_utils import to_utc_z
from hotelpos.money import format_money


class Shift(db.Model):
    """
    Cashier accountability window at an outlet.

    LIFECYCLE:
    - OPEN: orders created by the cashier are stamped with this shift
    - CLOSED: ending/expected cash and variance frozen, never reopened

    A cashier holds at most one OPEN shift (partial unique index below).
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_cashier_open",
            "cashier_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    starting_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    ending_cash = db.Column(db.Numeric(12, 2), nullable=True)
    expected_cash = db.Column(db.Numeric(12, 2), nullable=True)
    variance = db.Column(db.Numeric(12, 2), nullable=True)  # ending - expected

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    outlet = db.relationship("Outlet", backref=db.backref("shifts", lazy=True))
    cashier = db.relationship("User", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "cashier_id": self.cashier_id,
            "status": self.status,
            "starting_cash": format_money(self.starting_cash),
            "ending_cash": format_money(self.ending_cash) if self.ending_cash is not None else None,
            "expected_cash": format_money(self.expected_cash) if self.expected_cash is not None else None,
            "variance": format_money(self.variance) if self.variance is not None else None,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class ShiftReading(db.Model):
    """
    Persisted X (interim) or Z (close) reading of a shift. Append-only.

    reading_number counts from 1 within each shift. Z readings are written by
    the close and handover paths; recording one never touches the shift row.
    """
    __tablename__ = "shift_readings"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "reading_number", name="uq_shift_readings_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    reading_type = db.Column(db.String(8), nullable=False)  # X, Z
    reading_number = db.Column(db.Integer, nullable=False)

    order_count = db.Column(db.Integer, nullable=False, default=0)
    total_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cash_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    card_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    room_charge_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    other_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    void_count = db.Column(db.Integer, nullable=False, default=0)
    void_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_count = db.Column(db.Integer, nullable=False, default=0)
    discount_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    expected_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    generated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift = db.relationship("Shift", backref=db.backref("readings", lazy=True))
    generated_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "reading_type": self.reading_type,
            "reading_number": self.reading_number,
            "order_count": self.order_count,
            "total_sales": format_money(self.total_sales),
            "cash_sales": format_money(self.cash_sales),
            "card_sales": format_money(self.card_sales),
            "room_charge_sales": format_money(self.room_charge_sales),
            "other_sales": format_money(self.other_sales),
            "void_count": self.void_count,
            "void_amount": format_money(self.void_amount),
            "discount_count": self.discount_count,
            "discount_total": format_money(self.discount_total),
            "expected_cash": format_money(self.expected_cash),
            "generated_by_user_id": self.generated_by_user_id,
            "generated_by": self.generated_by.display_name if self.generated_by else None,
            "created_at": to_utc_z(self.created_at),
        }
