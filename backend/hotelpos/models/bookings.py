from __future__ import annotations

from ..extensions import db
from hotelpos.time_utils import to_utc_z
from hotelpos.money import format_money

BOOKING_PENDING = "PENDING"
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_CANCELLED = "CANCELLED"
BOOKING_COMPLETED = "COMPLETED"

ADJUSTMENT_CHARGE = "CHARGE"
ADJUSTMENT_CREDIT = "CREDIT"


class Booking(db.Model):
    """
    Hotel stay. Only the fields the POS reads or writes are modelled here.

    amount_due is the guest folio balance; room charges add to it.
    """
    __tablename__ = "bookings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)
    short_ref = db.Column(db.String(16), nullable=False, unique=True)
    guest_name = db.Column(db.String(255), nullable=False)
    room_number = db.Column(db.String(16), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=BOOKING_PENDING, index=True)
    room_charge_authorized = db.Column(db.Boolean, nullable=False, default=True)
    amount_due = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "short_ref": self.short_ref,
            "guest_name": self.guest_name,
            "room_number": self.room_number,
            "status": self.status,
            "room_charge_authorized": self.room_charge_authorized,
            "amount_due": format_money(self.amount_due),
        }


class BookingAdjustment(db.Model):
    """Append-only folio line (room service charges land here)."""
    __tablename__ = "booking_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    adjustment_type = db.Column(db.String(16), nullable=False, default=ADJUSTMENT_CHARGE)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    booking = db.relationship("Booking", backref=db.backref("adjustments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "adjustment_type": self.adjustment_type,
            "amount": format_money(self.amount),
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
