from __future__ import annotations

from ..extensions import db
from hotelpos.time_utils import to_utc_z


class Property(db.Model):
    """
    A hotel. Owns its outlets, menu and bookings.

    Tax and service-charge rates are fractions (0.1200 = 12%) and are read by
    the totals calculator every time an order at one of its outlets is recomputed.
    """
    __tablename__ = "properties"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    tax_rate = db.Column(db.Numeric(5, 4), nullable=False, default=0)
    service_charge_rate = db.Column(db.Numeric(5, 4), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Property id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_rate": str(self.tax_rate),
            "service_charge_rate": str(self.service_charge_rate),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Outlet(db.Model):
    """
    Sales point (restaurant, bar, room service) inside a property.

    Inactive outlets keep their history but cannot take new orders or shifts.
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.UniqueConstraint("property_id", "code", name="uq_outlets_property_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(32), nullable=True)
    outlet_type = db.Column(db.String(32), nullable=False, default="RESTAURANT")  # RESTAURANT, BAR, ROOM_SERVICE

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    property = db.relationship("Property", backref=db.backref("outlets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "name": self.name,
            "code": self.code,
            "outlet_type": self.outlet_type,
            "is_active": self.is_active,
        }
