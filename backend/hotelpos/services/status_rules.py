"""
Status state machines for orders, order items and tables.

Each machine is a closed Enum plus an explicit transition table covering every
state. The predicates are pure and total: any pair of members yields True/False,
a same-state "transition" is always legal, and terminal states have no exits.

The orchestrators call the ensure_* helpers before every persisted status write;
the only writes that skip validation are the system-driven table updates in
table_service (occupied on order create, dirty on payment/cancel/void).
"""

from __future__ import annotations

from enum import Enum

from ..validation import StateTransitionError, ValidationError


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    SENT_TO_KITCHEN = "SENT_TO_KITCHEN"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    SERVED = "SERVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    VOID = "VOID"


class ItemStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    PREPARING = "PREPARING"
    READY = "READY"
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


class TableStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    DIRTY = "DIRTY"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.OPEN: frozenset({OrderStatus.SENT_TO_KITCHEN, OrderStatus.CANCELLED, OrderStatus.VOID}),
    OrderStatus.SENT_TO_KITCHEN: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED, OrderStatus.VOID}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.READY, OrderStatus.CANCELLED, OrderStatus.VOID}),
    OrderStatus.READY: frozenset({OrderStatus.SERVED, OrderStatus.CANCELLED, OrderStatus.VOID}),
    OrderStatus.SERVED: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED, OrderStatus.VOID}),
    OrderStatus.PAID: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.VOID: frozenset(),
}

ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.SENT, ItemStatus.CANCELLED}),
    ItemStatus.SENT: frozenset({ItemStatus.PREPARING, ItemStatus.CANCELLED}),
    ItemStatus.PREPARING: frozenset({ItemStatus.READY, ItemStatus.CANCELLED}),
    ItemStatus.READY: frozenset({ItemStatus.SERVED, ItemStatus.CANCELLED}),
    ItemStatus.SERVED: frozenset(),
    ItemStatus.CANCELLED: frozenset(),
}

TABLE_TRANSITIONS: dict[TableStatus, frozenset[TableStatus]] = {
    TableStatus.AVAILABLE: frozenset({TableStatus.OCCUPIED, TableStatus.RESERVED, TableStatus.OUT_OF_SERVICE}),
    TableStatus.OCCUPIED: frozenset({TableStatus.DIRTY, TableStatus.OUT_OF_SERVICE}),
    TableStatus.RESERVED: frozenset({TableStatus.OCCUPIED, TableStatus.AVAILABLE, TableStatus.OUT_OF_SERVICE}),
    TableStatus.DIRTY: frozenset({TableStatus.AVAILABLE, TableStatus.OUT_OF_SERVICE}),
    TableStatus.OUT_OF_SERVICE: frozenset({TableStatus.AVAILABLE, TableStatus.DIRTY}),
}

TERMINAL_ORDER_STATUSES = frozenset(s for s, targets in ORDER_TRANSITIONS.items() if not targets)
ACTIVE_ORDER_STATUSES = frozenset(OrderStatus) - TERMINAL_ORDER_STATUSES
TERMINAL_ITEM_STATUSES = frozenset(s for s, targets in ITEM_TRANSITIONS.items() if not targets)

# Items in these states no longer hold the order back from READY
ITEM_DONE_STATUSES = frozenset({ItemStatus.READY, ItemStatus.SERVED, ItemStatus.CANCELLED})

# Forward path an order walks when the system advances it
ORDER_PROGRESSION = (
    OrderStatus.OPEN,
    OrderStatus.SENT_TO_KITCHEN,
    OrderStatus.IN_PROGRESS,
    OrderStatus.READY,
    OrderStatus.SERVED,
    OrderStatus.PAID,
)


def _coerce(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Must be one of: {allowed}")


def to_order_status(value) -> OrderStatus:
    return _coerce(OrderStatus, value, "order status")


def to_item_status(value) -> ItemStatus:
    return _coerce(ItemStatus, value, "item status")


def to_table_status(value) -> TableStatus:
    return _coerce(TableStatus, value, "table status")


def _is_valid(table, current, target) -> bool:
    if current == target:
        return True
    return target in table[current]


def is_valid_order_transition(current, target) -> bool:
    return _is_valid(ORDER_TRANSITIONS, to_order_status(current), to_order_status(target))


def is_valid_item_transition(current, target) -> bool:
    return _is_valid(ITEM_TRANSITIONS, to_item_status(current), to_item_status(target))


def is_valid_table_transition(current, target) -> bool:
    return _is_valid(TABLE_TRANSITIONS, to_table_status(current), to_table_status(target))


def ensure_order_transition(current, target) -> OrderStatus:
    current, target = to_order_status(current), to_order_status(target)
    if not _is_valid(ORDER_TRANSITIONS, current, target):
        raise StateTransitionError(
            f"Cannot change order status from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )
    return target


def ensure_item_transition(current, target) -> ItemStatus:
    current, target = to_item_status(current), to_item_status(target)
    if not _is_valid(ITEM_TRANSITIONS, current, target):
        raise StateTransitionError(
            f"Cannot change item status from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )
    return target


def ensure_table_transition(current, target) -> TableStatus:
    current, target = to_table_status(current), to_table_status(target)
    if not _is_valid(TABLE_TRANSITIONS, current, target):
        raise StateTransitionError(
            f"Cannot change table status from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )
    return target


def is_active_order_status(status) -> bool:
    return to_order_status(status) in ACTIVE_ORDER_STATUSES


def forward_path(current, target) -> list[OrderStatus]:
    """
    Legal single steps that take an order from current to target along
    ORDER_PROGRESSION. Empty when already there.

    Raises StateTransitionError when target is behind current or current is terminal.
    """
    current, target = to_order_status(current), to_order_status(target)
    if current == target:
        return []
    if current not in ORDER_PROGRESSION or target not in ORDER_PROGRESSION:
        ensure_order_transition(current, target)
        return [target]
    start = ORDER_PROGRESSION.index(current)
    end = ORDER_PROGRESSION.index(target)
    if end < start:
        ensure_order_transition(current, target)
    steps = list(ORDER_PROGRESSION[start + 1:end + 1])
    previous = current
    for step in steps:
        ensure_order_transition(previous, step)
        previous = step
    return steps
