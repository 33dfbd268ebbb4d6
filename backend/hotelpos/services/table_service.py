# Overview: Dining table status changes, user-driven and system-driven.

from __future__ import annotations

from ..extensions import db
from ..models import DiningTable, Order
from ..validation import BusinessRuleError, NotFoundError
from .concurrency import unit_of_work
from .status_rules import ACTIVE_ORDER_STATUSES, TableStatus, ensure_table_transition, to_table_status


def get_table(table_id: int) -> DiningTable:
    table = db.session.get(DiningTable, table_id)
    if not table:
        raise NotFoundError("Table not found")
    return table


def has_active_order(table_id: int, *, exclude_order_id: int | None = None) -> bool:
    query = db.session.query(Order.id).filter(
        Order.table_id == table_id,
        Order.status.in_([s.value for s in ACTIVE_ORDER_STATUSES]),
    )
    if exclude_order_id is not None:
        query = query.filter(Order.id != exclude_order_id)
    return query.first() is not None


# =============================================================================
# SYSTEM WRITES (no transition check, caller commits)
# =============================================================================

def _force_status(table_id: int, status: TableStatus) -> DiningTable:
    table = get_table(table_id)
    table.status = status.value
    return table


def set_occupied(table_id: int) -> DiningTable:
    return _force_status(table_id, TableStatus.OCCUPIED)


def set_dirty(table_id: int) -> DiningTable:
    return _force_status(table_id, TableStatus.DIRTY)


def set_available(table_id: int) -> DiningTable:
    return _force_status(table_id, TableStatus.AVAILABLE)


# =============================================================================
# USER WRITES
# =============================================================================

def update_table_status(table_id: int, status) -> DiningTable:
    """
    Staff-driven status change (bussing a table, taking it out of service, ...).

    Validated against the table machine. A table with an active order cannot
    be released back to AVAILABLE.
    """
    target = to_table_status(status)

    def _work():
        table = get_table(table_id)
        ensure_table_transition(table.status, target)
        if target == TableStatus.AVAILABLE and has_active_order(table.id):
            raise BusinessRuleError("Table still has an active order")
        table.status = target.value
        return table

    return unit_of_work(_work, operation="update table status")
