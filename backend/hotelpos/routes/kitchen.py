# Overview: Flask API routes for the kitchen display.

# backend/hotelpos/routes/kitchen.py
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..services import kitchen_service, order_service
from ..validation import PosError, error_response, require_fields


kitchen_bp = Blueprint("kitchen", __name__, url_prefix="/api/kitchen")

KITCHEN_ROLES = ("MANAGER", "KITCHEN", "SERVER")


@kitchen_bp.get("/<int:outlet_id>/orders")
@require_auth
def kitchen_orders_route(outlet_id: int):
    try:
        tickets = kitchen_service.get_kitchen_orders(outlet_id)
        return jsonify({"orders": tickets, "count": len(tickets)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load kitchen orders")
        return jsonify({"error": "Internal server error"}), 500


@kitchen_bp.get("/<int:outlet_id>/stations")
@require_auth
def kitchen_stations_route(outlet_id: int):
    try:
        return jsonify({"stations": kitchen_service.get_kitchen_orders_by_station(outlet_id)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load kitchen stations")
        return jsonify({"error": "Internal server error"}), 500


@kitchen_bp.get("/<int:outlet_id>/stats")
@require_auth
def kitchen_stats_route(outlet_id: int):
    try:
        return jsonify(kitchen_service.get_kitchen_stats(outlet_id)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load kitchen stats")
        return jsonify({"error": "Internal server error"}), 500


@kitchen_bp.post("/items/<int:item_id>/status")
@require_auth
@require_role(*KITCHEN_ROLES)
def update_item_status_route(item_id: int):
    """
    Request body:
    { "status": "PREPARING" }
    """
    try:
        data = require_fields(request.get_json(silent=True), ["status"])
        item = order_service.update_item_status(item_id, data.get("status"), g.actor)
        order = order_service.get_order(item.order_id)
        return jsonify({"item": item.to_dict(), "order_status": order.status}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update item status")
        return jsonify({"error": "Internal server error"}), 500


@kitchen_bp.post("/orders/<int:order_id>/ready")
@require_auth
@require_role(*KITCHEN_ROLES)
def mark_ready_route(order_id: int):
    try:
        order = kitchen_service.mark_order_ready(order_id, g.actor)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark order ready")
        return jsonify({"error": "Internal server error"}), 500
