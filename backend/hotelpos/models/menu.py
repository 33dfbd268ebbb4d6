from __future__ import annotations

from ..extensions import db
from hotelpos.time_utils import to_utc_z
from hotelpos.money import format_money

WAREHOUSE_KITCHEN = "KITCHEN"
WAREHOUSE_BAR = "BAR"
WAREHOUSE_MAIN = "MAIN"


class MenuItem(db.Model):
    """
    Sellable dish/drink, scoped to a property.

    The selling price is copied onto each order line when the line is added;
    later price edits never reprice existing orders.
    """
    __tablename__ = "menu_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)

    is_available = db.Column(db.Boolean, nullable=False, default=True)
    unavailable_reason = db.Column(db.String(255), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    property = db.relationship("Property", backref=db.backref("menu_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "name": self.name,
            "category": self.category,
            "selling_price": format_money(self.selling_price),
            "is_available": self.is_available,
            "unavailable_reason": self.unavailable_reason,
            "updated_at": to_utc_z(self.updated_at),
        }


class Warehouse(db.Model):
    """Stock location. Each property has at most one KITCHEN warehouse feeding its outlets."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("property_id", "name", name="uq_warehouses_property_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    warehouse_type = db.Column(db.String(16), nullable=False, default=WAREHOUSE_MAIN)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class StockLevel(db.Model):
    """On-hand portions of a menu item in a warehouse."""
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "menu_item_id", name="uq_stock_levels_warehouse_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
