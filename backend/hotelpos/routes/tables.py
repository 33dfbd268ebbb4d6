# Overview: Flask API routes for dining table status.

# backend/hotelpos/routes/tables.py
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_role
from ..services import order_service, table_service
from ..validation import PosError, error_response, require_fields


tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("/<int:table_id>")
@require_auth
def get_table_route(table_id: int):
    try:
        table = table_service.get_table(table_id)
        active = order_service.get_active_order_for_table(table.id)
        return jsonify({
            "table": table.to_dict(),
            "active_order": active.to_dict() if active else None,
        }), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get table")
        return jsonify({"error": "Internal server error"}), 500


@tables_bp.post("/<int:table_id>/status")
@require_auth
@require_role("MANAGER", "CASHIER", "SERVER")
def update_table_status_route(table_id: int):
    """
    Request body:
    { "status": "AVAILABLE" }

    Bussing (DIRTY -> AVAILABLE) and reservations go through here; occupying
    and releasing a table happens as a side effect of order operations.
    """
    try:
        data = require_fields(request.get_json(silent=True), ["status"])
        table = table_service.update_table_status(table_id, data.get("status"))
        return jsonify({"table": table.to_dict()}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update table status")
        return jsonify({"error": "Internal server error"}), 500
