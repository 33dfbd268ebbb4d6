# Overview: Daily order-number allocation (ORD-YYYYMMDD-NNNN).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import OrderSequence
from hotelpos.time_utils import utcnow

ORDER_NUMBER_PREFIX = "ORD"


def format_order_number(business_date: str, number: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{business_date}-{number:04d}"


def _bump(business_date: str) -> int | None:
    stmt = (
        update(OrderSequence)
        .where(OrderSequence.business_date == business_date)
        .values(next_number=OrderSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(business_date=business_date)
        .scalar()
    )
    return current - 1


def next_order_number(now: datetime | None = None) -> str:
    """
    Atomically allocate the next order number for the calendar day.

    One counter per day shared by every outlet, starting at 0001. The counter
    row is bumped with a single UPDATE so concurrent creates never read the
    same value. Runs inside the caller's transaction.
    """
    business_date = (now or utcnow()).strftime("%Y%m%d")

    number = _bump(business_date)
    if number is None:
        try:
            with db.session.begin_nested():
                db.session.add(OrderSequence(business_date=business_date, next_number=2))
            number = 1
        except IntegrityError:
            # Another request created today's row first
            number = _bump(business_date)
            if number is None:
                raise

    return format_order_number(business_date, number)
