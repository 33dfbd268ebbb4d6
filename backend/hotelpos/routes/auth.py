# Overview: Flask API routes for staff login and manager PIN checks.

# backend/hotelpos/routes/auth.py
from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import approval_service
from ..decorators import require_auth
from ..validation import PosError, error_response
from hotelpos.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate staff and create a session token.

    The token goes in the Authorization header ("Bearer <token>") of every
    other request.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        token = request.headers.get("Authorization", "").split(" ", 1)[1]
        session_service.revoke_session(token)
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to log out")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/verify-pin")
@require_auth
def verify_pin_route():
    """
    Check a manager PIN without performing any action.

    Request body:
    {
        "pin": "1234"
    }

    Returns the approver's id and name on success, 403 otherwise.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = approval_service.verify_manager_pin(
            data.get("pin"),
            property_id=g.current_user.property_id,
        )
        return jsonify(result.to_dict()), (200 if result.success else 403)

    except PosError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify manager PIN")
        return jsonify({"error": "Internal server error"}), 500
