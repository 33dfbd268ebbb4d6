# backend/hotelpos/routes/system.py
"""
System health endpoint.

Checks database reachability and reports how many outlets are live and how
many shifts are currently open.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Outlet, Shift
from hotelpos.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).filter_by(is_active=True).count()
        open_shifts = db.session.query(Shift).filter_by(status="OPEN").count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_outlets": outlet_count,
                "open_shifts": open_shifts,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status
