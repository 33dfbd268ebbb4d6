# Overview: Flask API routes for order payments; parses input and returns JSON responses.

# backend/hotelpos/routes/payments.py
"""
Payment API Routes

POST accepts one or more lines (split payment). A single line may also be
sent flat as {"method": ..., "amount": ...}.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..services import payment_service
from ..validation import PosError, ValidationError, error_response


payments_bp = Blueprint("payments", __name__, url_prefix="/api/orders")


@payments_bp.post("/<int:order_id>/payments")
@require_auth
@require_role("MANAGER", "CASHIER", "SERVER")
def process_payment_route(order_id: int):
    """
    Request body:
    {
        "payments": [
            {"method": "CASH", "amount": "500.00"},
            {"method": "CREDIT_CARD", "amount": "182.00", "reference": "AUTH-1234"}
        ],
        "partial": false
    }
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        lines = data.get("payments")
        if lines is None and "method" in data:
            lines = [data]
        if not isinstance(lines, list):
            raise ValidationError("payments must be a list")

        partial = data.get("partial", False)
        if not isinstance(partial, bool):
            raise ValidationError("partial must be true or false")

        result = payment_service.process_payment(order_id, lines, g.actor, partial=partial)
        return jsonify(result.to_dict()), 201

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<int:order_id>/payments")
@require_auth
def get_payments_route(order_id: int):
    try:
        return jsonify(payment_service.get_order_payments(order_id)), 200
    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order payments")
        return jsonify({"error": "Internal server error"}), 500
