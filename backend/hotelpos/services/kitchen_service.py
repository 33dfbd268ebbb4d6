# Overview: Kitchen queue and bulk kitchen actions.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Order, OrderItem
from ..validation import StateTransitionError
from hotelpos.time_utils import minutes_since, to_utc_z, utcnow
from . import order_service
from .concurrency import unit_of_work
from .session_service import Actor
from .status_rules import ItemStatus, OrderStatus

KITCHEN_ORDER_STATUSES = (OrderStatus.SENT_TO_KITCHEN.value, OrderStatus.IN_PROGRESS.value)
KITCHEN_ITEM_STATUSES = (ItemStatus.SENT.value, ItemStatus.PREPARING.value)
UNASSIGNED_STATION = "Unassigned"


def _ticket(order: Order, target_minutes: int, now) -> dict:
    items = [item for item in order.items if item.status in KITCHEN_ITEM_STATUSES]
    sent_times = [item.sent_to_kitchen_at for item in items if item.sent_to_kitchen_at]
    started = min(sent_times) if sent_times else order.created_at
    age = minutes_since(started, now)
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "table_id": order.table_id,
        "table_number": order.table.number if order.table else None,
        "server_id": order.server_id,
        "sent_at": to_utc_z(started),
        "age_minutes": age,
        "is_overdue": age > target_minutes,
        "items": [item.to_dict() for item in items],
    }


def get_kitchen_orders(outlet_id: int) -> list[dict]:
    """
    Tickets the kitchen still has to work on at an outlet, oldest first.

    Only SENT/PREPARING lines are shown; a ticket is overdue once it is older
    than POS_KITCHEN_TARGET_MINUTES.
    """
    target = int(current_app.config.get("POS_KITCHEN_TARGET_MINUTES", 15))
    now = utcnow()

    orders = (
        db.session.query(Order)
        .options(joinedload(Order.items), joinedload(Order.table))
        .filter(Order.outlet_id == outlet_id, Order.status.in_(KITCHEN_ORDER_STATUSES))
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )

    tickets = [_ticket(order, target, now) for order in orders]
    return [ticket for ticket in tickets if ticket["items"]]


def get_kitchen_orders_by_station(outlet_id: int) -> dict[str, list[dict]]:
    """
    The kitchen queue split by station (menu category).

    A ticket with lines for several stations appears once per station, carrying
    only that station's lines.
    """
    stations: dict[str, list[dict]] = {}
    for ticket in get_kitchen_orders(outlet_id):
        by_category: dict[str, list[dict]] = {}
        for item in ticket["items"]:
            by_category.setdefault(item["category"] or UNASSIGNED_STATION, []).append(item)
        for station, items in by_category.items():
            stations.setdefault(station, []).append(dict(ticket, items=items))
    return stations


def get_kitchen_stats(outlet_id: int, since: datetime | None = None) -> dict:
    """
    Queue counts for the kitchen display plus the average prep time
    (sent to ready) of lines finished since the start of the UTC day.
    """
    tickets = get_kitchen_orders(outlet_id)
    items = [item for ticket in tickets for item in ticket["items"]]

    ready_orders = (
        db.session.query(Order)
        .filter(Order.outlet_id == outlet_id, Order.status == OrderStatus.READY.value)
        .count()
    )

    now = utcnow()
    since = since or now.replace(hour=0, minute=0, second=0, microsecond=0)
    finished = (
        db.session.query(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(
            Order.outlet_id == outlet_id,
            OrderItem.sent_to_kitchen_at.isnot(None),
            OrderItem.ready_at.isnot(None),
            OrderItem.ready_at >= since,
        )
        .all()
    )
    prep_minutes = [minutes_since(item.sent_to_kitchen_at, item.ready_at) for item in finished]

    return {
        "outlet_id": outlet_id,
        "total_orders": len(tickets),
        "overdue_orders": sum(1 for ticket in tickets if ticket["is_overdue"]),
        "ready_orders": ready_orders,
        "total_items": len(items),
        "sent_items": sum(1 for item in items if item["status"] == ItemStatus.SENT.value),
        "preparing_items": sum(1 for item in items if item["status"] == ItemStatus.PREPARING.value),
        "avg_age_minutes": round(sum(t["age_minutes"] for t in tickets) / len(tickets)) if tickets else 0,
        "avg_prep_minutes": round(sum(prep_minutes) / len(prep_minutes)) if prep_minutes else 0,
        "completed_items": len(prep_minutes),
    }


def mark_order_ready(order_id: int, actor: Actor) -> Order:
    """Bump a whole ticket: every SENT/PREPARING line becomes READY, and so does the order."""
    def _work():
        order = order_service._load_order(order_id)
        if order.status not in KITCHEN_ORDER_STATUSES:
            raise StateTransitionError(
                f"Cannot mark order ready from status {order.status}",
                details={"current_status": order.status},
            )

        now = utcnow()
        for item in order.items:
            if item.status == ItemStatus.SENT.value:
                order_service._set_item_status(item, ItemStatus.PREPARING, now)
            if item.status == ItemStatus.PREPARING.value:
                order_service._set_item_status(item, ItemStatus.READY, now)

        order_service._advance_order(order, OrderStatus.READY)
        return order

    return unit_of_work(_work, operation="mark order ready")
