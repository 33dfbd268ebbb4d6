# Overview: Room-charge posting to a hotel booking's folio.

"""
Room-Charge Folio Updater

A ROOM_CHARGE payment moves the amount onto the guest's folio instead of the
till: the booking's amount_due grows by the charge and a CHARGE adjustment is
written for the front desk.

RULES:
- Booking must be CONFIRMED (any other status is rejected, naming the status)
- Guest must be authorized for room charges (rejected with a distinct error)
- Both checks run before anything is written
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Booking, BookingAdjustment
from ..models.bookings import ADJUSTMENT_CHARGE, BOOKING_CONFIRMED
from ..money import quantize, to_decimal
from ..validation import BusinessRuleError, NotFoundError, ValidationError
from .concurrency import lock_for_update

BOOKING_NOT_CONFIRMED = "BOOKING_NOT_CONFIRMED"
GUEST_NOT_AUTHORIZED = "GUEST_NOT_AUTHORIZED"


def apply_room_charge(current_amount_due, charge_amount) -> Decimal:
    """New folio balance after a charge. Zero is a no-op; negative charges are refused."""
    charge = to_decimal(charge_amount)
    if charge < 0:
        raise ValidationError("Room charge amount cannot be negative")
    return quantize(to_decimal(current_amount_due) + charge)


def validate_booking_for_room_charge(booking: Booking | None) -> Booking:
    if booking is None:
        raise NotFoundError("Booking not found")

    if booking.status != BOOKING_CONFIRMED:
        raise BusinessRuleError(
            f"Booking must be confirmed for room charges. Current status: {booking.status}",
            details={"code": BOOKING_NOT_CONFIRMED, "booking_status": booking.status},
        )

    if not booking.room_charge_authorized:
        raise BusinessRuleError(
            "Guest is not authorized for room charges",
            details={"code": GUEST_NOT_AUTHORIZED},
        )

    return booking


def add_folio_charge(
    booking_id: int,
    amount,
    description: str,
    *,
    actor_user_id: int | None = None,
) -> BookingAdjustment:
    """
    Post a charge to a booking folio.

    Runs inside the caller's transaction (no commit), so a failure later in the
    payment rolls the folio back with it.
    """
    booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
    validate_booking_for_room_charge(booking)

    charge = quantize(amount)
    booking.amount_due = apply_room_charge(booking.amount_due or 0, charge)

    adjustment = BookingAdjustment(
        booking_id=booking.id,
        adjustment_type=ADJUSTMENT_CHARGE,
        amount=charge,
        description=description,
        created_by_user_id=actor_user_id,
    )
    db.session.add(adjustment)
    db.session.flush()
    return adjustment
