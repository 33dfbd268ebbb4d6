# Overview: Flask API routes for cashier shifts; parses input and returns JSON responses.

# backend/hotelpos/routes/shifts.py
"""
Shift API Routes

Shift lifecycle: open -> close (immutable once closed), or close + open in a
single handover. Reports and X-readings never modify anything.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..services import shift_service
from ..validation import (
    PosError,
    ValidationError,
    error_response,
    parse_int,
    parse_money,
    parse_optional_int,
    require_fields,
)
from hotelpos.time_utils import parse_iso_datetime


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")

CASH_ROLES = ("MANAGER", "CASHIER")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@shifts_bp.post("")
@shifts_bp.post("/")
@require_auth
@require_role(*CASH_ROLES)
def open_shift_route():
    """
    Request body:
    {
        "outlet_id": 1,
        "starting_cash": "2000.00",
        "cashier_id": 4,     (optional, managers only)
        "notes": "..."       (optional)
    }
    """
    try:
        data = require_fields(_json_body(), ["outlet_id", "starting_cash"])
        shift = shift_service.open_shift(
            parse_int(data.get("outlet_id"), "outlet_id", minimum=1),
            g.actor,
            parse_money(data.get("starting_cash"), "starting_cash"),
            cashier_id=parse_optional_int(data.get("cashier_id"), "cashier_id"),
            notes=data.get("notes"),
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("")
@shifts_bp.get("/")
@require_auth
def list_shifts_route():
    try:
        try:
            start = parse_iso_datetime(request.args.get("from"))
            end = parse_iso_datetime(request.args.get("to"))
        except ValueError:
            raise ValidationError("from/to must be ISO-8601 dates or datetimes")

        page = shift_service.list_shifts(
            outlet_id=request.args.get("outlet_id", type=int),
            cashier_id=request.args.get("cashier_id", type=int),
            status=request.args.get("status"),
            start=start,
            end=end,
            page=request.args.get("page", 1, type=int),
            page_size=request.args.get("page_size", type=int),
        )
        return jsonify(page.to_dict()), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list shifts")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/current")
@require_auth
def current_shift_route():
    """The caller's open shift, or null."""
    try:
        shift = shift_service.get_current_shift(g.current_user.id)
        return jsonify({"shift": shift.to_dict() if shift else None}), 200
    except Exception:
        current_app.logger.exception("Failed to get current shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
@require_auth
@require_role(*CASH_ROLES)
def close_shift_route(shift_id: int):
    """
    Request body:
    {
        "ending_cash": "2450.00",
        "notes": "..."   (optional)
    }
    """
    try:
        data = require_fields(_json_body(), ["ending_cash"])
        shift = shift_service.close_shift(
            shift_id,
            parse_money(data.get("ending_cash"), "ending_cash"),
            g.actor,
            notes=data.get("notes"),
        )
        return jsonify({"shift": shift.to_dict()}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/handover")
@require_auth
@require_role(*CASH_ROLES)
def handover_shift_route(shift_id: int):
    """
    Request body:
    {
        "ending_cash": "2450.00",
        "incoming_cashier_id": 5,
        "notes": "..."   (optional)
    }
    """
    try:
        data = require_fields(_json_body(), ["ending_cash", "incoming_cashier_id"])
        closed, opened = shift_service.handover_shift(
            shift_id,
            parse_money(data.get("ending_cash"), "ending_cash"),
            parse_int(data.get("incoming_cashier_id"), "incoming_cashier_id", minimum=1),
            g.actor,
            notes=data.get("notes"),
        )
        return jsonify({"closed_shift": closed.to_dict(), "new_shift": opened.to_dict()}), 200

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to hand over shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>/report")
@require_auth
@require_role(*CASH_ROLES)
def shift_report_route(shift_id: int):
    try:
        return jsonify(shift_service.get_shift_report(shift_id)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build shift report")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>/x-reading")
@require_auth
@require_role(*CASH_ROLES)
def x_reading_route(shift_id: int):
    try:
        return jsonify(shift_service.get_x_reading(shift_id)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build X-reading")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/readings")
@require_auth
@require_role(*CASH_ROLES)
def record_reading_route(shift_id: int):
    try:
        reading = shift_service.record_reading(shift_id, g.actor)
        return jsonify({"reading": reading.to_dict()}), 201
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record shift reading")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>/readings")
@require_auth
@require_role(*CASH_ROLES)
def list_readings_route(shift_id: int):
    try:
        readings = shift_service.list_readings(shift_id)
        return jsonify({"readings": [r.to_dict() for r in readings], "count": len(readings)}), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list shift readings")
        return jsonify({"error": "Internal server error"}), 500
