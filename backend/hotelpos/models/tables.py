from __future__ import annotations

from ..extensions import db
from hotelpos.time_utils import to_utc_z


class DiningTable(db.Model):
    """
    Physical table at an outlet.

    status follows the table state machine in services.status_rules; order
    creation and payment move it through the system path without validation.
    """
    __tablename__ = "dining_tables"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "number", name="uq_dining_tables_outlet_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    number = db.Column(db.String(16), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=4)

    # AVAILABLE, OCCUPIED, RESERVED, DIRTY, OUT_OF_SERVICE
    status = db.Column(db.String(16), nullable=False, default="AVAILABLE", index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    outlet = db.relationship("Outlet", backref=db.backref("tables", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "number": self.number,
            "capacity": self.capacity,
            "status": self.status,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }
