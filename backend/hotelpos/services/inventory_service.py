# Overview: Menu availability checks and the background refresh triggered by item adds.

"""
Menu availability is owned by the kitchen warehouse stock levels. The POS only
reads the is_available flag when a line is added, then asks for a refresh in
the background. The refresh never blocks or fails the caller: it runs on its
own thread with its own app context, and any error is logged and dropped.
"""

from __future__ import annotations

import threading

from flask import current_app

from ..extensions import db
from ..models import MenuItem, StockLevel, Warehouse
from ..models.menu import WAREHOUSE_KITCHEN

OUT_OF_STOCK_REASON = "Out of stock"


def is_available(menu_item_id: int) -> bool:
    item = db.session.get(MenuItem, menu_item_id)
    return bool(item and item.is_available)


def get_kitchen_warehouse(property_id: int) -> Warehouse | None:
    return db.session.query(Warehouse).filter_by(
        property_id=property_id,
        warehouse_type=WAREHOUSE_KITCHEN,
        is_active=True,
    ).first()


def refresh_availability(menu_item_id: int, warehouse_id: int) -> bool:
    """
    Re-derive is_available from the warehouse stock level and commit.

    Items with no stock row in the warehouse are not stock-tracked and are left
    alone, as are items taken off the menu for a reason other than stock.
    Returns the resulting availability.
    """
    item = db.session.get(MenuItem, menu_item_id)
    if not item:
        return False

    level = db.session.query(StockLevel).filter_by(
        warehouse_id=warehouse_id,
        menu_item_id=menu_item_id,
    ).first()
    if level is None:
        return item.is_available

    if level.quantity <= 0 and item.is_available:
        item.is_available = False
        item.unavailable_reason = OUT_OF_STOCK_REASON
        db.session.commit()
    elif level.quantity > 0 and not item.is_available and item.unavailable_reason == OUT_OF_STOCK_REASON:
        item.is_available = True
        item.unavailable_reason = None
        db.session.commit()

    return item.is_available


def schedule_availability_refresh(menu_item_id: int, property_id: int) -> threading.Thread | None:
    """
    Fire-and-forget refresh for one menu item against the property's kitchen warehouse.

    Returns the started thread (tests join it), or None when nothing was scheduled.
    """
    app = current_app._get_current_object()
    if not app.config.get("POS_INVENTORY_REFRESH_ENABLED", True):
        return None

    try:
        warehouse = get_kitchen_warehouse(property_id)
    except Exception:
        app.logger.exception("Failed to look up kitchen warehouse for property %s", property_id)
        return None
    if warehouse is None:
        return None
    warehouse_id = warehouse.id

    def _run():
        with app.app_context():
            try:
                refresh_availability(menu_item_id, warehouse_id)
            except Exception:
                db.session.rollback()
                app.logger.exception(
                    "Failed to refresh availability for menu item %s (warehouse %s)",
                    menu_item_id,
                    warehouse_id,
                )

    thread = threading.Thread(target=_run, name=f"availability-refresh-{menu_item_id}", daemon=True)
    thread.start()
    return thread
