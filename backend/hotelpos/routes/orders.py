# Overview: Flask API routes for the order lifecycle; parses input and returns JSON responses.

# backend/hotelpos/routes/orders.py
"""
Order API Routes

Every handler parses the body, builds the Actor from the session and calls
order_service. Identity never travels in the body except for approvals,
which arrive as a manager PIN and are resolved through the approval gate
before the service is called.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..services import approval_service, order_service
from ..validation import (
    PosError,
    ValidationError,
    error_response,
    parse_int,
    parse_optional_int,
    require_fields,
)
from hotelpos.time_utils import parse_iso_datetime


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

FLOOR_ROLES = ("MANAGER", "CASHIER", "SERVER")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _approver_from_pin(data: dict) -> int | None:
    """Resolve manager_pin to an approver id; None when no PIN was sent."""
    pin = data.get("manager_pin")
    if not pin:
        return None
    return approval_service.approve_with_pin(str(pin), property_id=g.current_user.property_id)


def _order_response(order, status: int = 200):
    return jsonify({"order": order.to_dict(include_items=True, include_payments=True)}), status


def _parse_date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


# =============================================================================
# CREATE / READ
# =============================================================================

@orders_bp.post("")
@orders_bp.post("/")
@require_auth
@require_role(*FLOOR_ROLES)
def create_order_route():
    """
    Open a new order.

    Request body:
    {
        "outlet_id": 1,
        "table_id": 3,          (optional)
        "booking_id": 7,        (optional, room service)
        "guest_name": "...",    (optional)
        "notes": "..."          (optional)
    }
    """
    try:
        data = require_fields(_json_body(), ["outlet_id"])
        order = order_service.create_order(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            g.actor,
            table_id=parse_optional_int(data.get("table_id"), "table_id"),
            booking_id=parse_optional_int(data.get("booking_id"), "booking_id"),
            guest_name=data.get("guest_name"),
            notes=data.get("notes"),
        )
        return _order_response(order, 201)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@orders_bp.get("/")
@require_auth
def list_orders_route():
    """
    Query params: outlet_id, status, server_id, table_id, shift_id,
    from, to (ISO dates), page, page_size.
    """
    try:
        page = order_service.list_orders(
            outlet_id=request.args.get("outlet_id", type=int),
            status=request.args.get("status"),
            server_id=request.args.get("server_id", type=int),
            table_id=request.args.get("table_id", type=int),
            shift_id=request.args.get("shift_id", type=int),
            start=_parse_date_arg("from"),
            end=_parse_date_arg("to"),
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify(page.to_dict()), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/open")
@require_auth
def open_orders_route():
    """Unsettled orders at an outlet. Query param: outlet_id (required)."""
    try:
        outlet_id = parse_int(request.args.get("outlet_id"), "outlet_id", minimum=1)
        orders = order_service.get_open_orders(outlet_id)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list open orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return _order_response(order_service.get_order(order_id))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LINES
# =============================================================================

@orders_bp.post("/<int:order_id>/items")
@require_auth
@require_role(*FLOOR_ROLES)
def add_item_route(order_id: int):
    """
    Request body:
    {
        "menu_item_id": 12,
        "quantity": 2,
        "modifiers": "no onions",   (optional)
        "notes": "..."              (optional)
    }
    """
    try:
        data = require_fields(_json_body(), ["menu_item_id"])
        item = order_service.add_item(
            order_id,
            parse_int(data.get("menu_item_id"), "menu_item_id", minimum=1),
            parse_int(data.get("quantity", 1), "quantity", minimum=1),
            g.actor,
            modifiers=data.get("modifiers"),
            notes=data.get("notes"),
        )
        order = order_service.get_order(order_id)
        return jsonify({
            "item": item.to_dict(),
            "order": order.to_dict(include_items=True),
        }), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add item to order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/items/<int:item_id>")
@require_auth
@require_role(*FLOOR_ROLES)
def update_item_route(order_id: int, item_id: int):
    try:
        data = require_fields(_json_body(), ["quantity"])
        order_service.update_item_quantity(
            order_id,
            item_id,
            parse_int(data.get("quantity"), "quantity", minimum=1),
            g.actor,
        )
        return _order_response(order_service.get_order(order_id))

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>/items/<int:item_id>")
@require_auth
@require_role(*FLOOR_ROLES)
def remove_item_route(order_id: int, item_id: int):
    try:
        order_service.remove_item(order_id, item_id, g.actor)
        return _order_response(order_service.get_order(order_id))

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/customer")
@require_auth
@require_role(*FLOOR_ROLES)
def assign_customer_route(order_id: int):
    """
    Request body (either form):
    { "customer_name": "Ana Reyes", "phone": "0917..." }
    { "booking_id": 7 }
    """
    try:
        data = _json_body()
        order = order_service.assign_customer(
            order_id,
            g.actor,
            customer_name=data.get("customer_name"),
            phone=data.get("phone"),
            booking_id=parse_optional_int(data.get("booking_id"), "booking_id"),
        )
        return _order_response(order)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to assign customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# KITCHEN / STATUS
# =============================================================================

@orders_bp.post("/<int:order_id>/send-to-kitchen")
@require_auth
@require_role(*FLOOR_ROLES)
def send_to_kitchen_route(order_id: int):
    try:
        return _order_response(order_service.send_to_kitchen(order_id, g.actor))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to send order to kitchen")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
@require_auth
def update_status_route(order_id: int):
    """
    Request body:
    { "status": "SERVED" }

    PAID, CANCELLED and VOID have their own endpoints.
    """
    try:
        data = require_fields(_json_body(), ["status"])
        order = order_service.update_order_status(order_id, data.get("status"), g.actor)
        return _order_response(order)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DISCOUNT / TIP
# =============================================================================

@orders_bp.post("/<int:order_id>/discount")
@require_auth
@require_role(*FLOOR_ROLES)
def apply_discount_route(order_id: int):
    """
    Request body (manual):
    { "type": "PERCENTAGE", "value": 10, "reason": "Loyalty" }

    Request body (preset):
    { "discount_type_id": 2, "manager_pin": "1234" }
    """
    try:
        data = _json_body()
        order = order_service.apply_discount(
            order_id,
            g.actor,
            kind=data.get("type"),
            value=data.get("value"),
            discount_type_id=parse_optional_int(data.get("discount_type_id"), "discount_type_id"),
            reason=data.get("reason"),
            approver_id=_approver_from_pin(data),
        )
        return _order_response(order)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply discount")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>/discount")
@require_auth
@require_role(*FLOOR_ROLES)
def remove_discount_route(order_id: int):
    try:
        return _order_response(order_service.remove_discount(order_id, g.actor))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove discount")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/tip")
@require_auth
@require_role(*FLOOR_ROLES)
def add_tip_route(order_id: int):
    try:
        data = require_fields(_json_body(), ["amount"])
        return _order_response(order_service.add_tip(order_id, data.get("amount"), g.actor))
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add tip")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CANCEL / VOID
# =============================================================================

@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(*FLOOR_ROLES)
def cancel_order_route(order_id: int):
    try:
        data = _json_body()
        order = order_service.cancel_order(order_id, g.actor, data.get("reason"))
        return _order_response(order)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/void")
@require_auth
def void_order_route(order_id: int):
    """
    Request body:
    {
        "reason": "Guest complaint",
        "manager_pin": "1234"
    }
    """
    try:
        data = _json_body()
        order = order_service.void_order(
            order_id,
            data.get("reason"),
            g.actor,
            _approver_from_pin(data),
        )
        return _order_response(order)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/items/<int:item_id>/void")
@require_auth
def void_item_route(order_id: int, item_id: int):
    """
    Request body:
    {
        "reason": "Wrong dish",
        "manager_pin": "1234"   (optional for the order's server and managers)
    }
    """
    try:
        data = _json_body()
        item = order_service.void_item(
            order_id,
            item_id,
            data.get("reason"),
            g.actor,
            _approver_from_pin(data),
        )
        order = order_service.get_order(order_id)
        return jsonify({
            "item": item.to_dict(),
            "order": order.to_dict(include_items=True, include_payments=True),
        }), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void order item")
        return jsonify({"error": "Internal server error"}), 500
