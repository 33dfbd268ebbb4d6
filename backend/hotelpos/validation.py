"""
Error taxonomy and request-input coercion shared by services and routes.

Services raise PosError subclasses; blueprints turn them into JSON via
error_response(). Nothing below the route layer builds HTTP responses.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from flask import jsonify

from .money import quantize, to_decimal


class PosError(Exception):
    """Base class for every user-facing POS failure."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PosError):
    """400-level input problem, rejected before touching storage."""


class NotFoundError(PosError):
    """Referenced entity does not exist."""

    status_code = 404


class StateTransitionError(PosError):
    """Illegal status change or action on an order/item in the wrong state."""

    status_code = 409


class BusinessRuleError(PosError):
    """409-level business rule conflict (e.g., table already has an active order)."""

    status_code = 409


class AuthorizationError(PosError):
    """Missing or invalid approver, or actor not allowed to perform the action."""

    status_code = 403


class OperationFailedError(PosError):
    """A collaborator (storage, PIN check) failed; details are in the log, not here."""

    status_code = 500


def error_response(exc: PosError):
    return jsonify(exc.to_dict()), exc.status_code


# =============================================================================
# INPUT COERCION
# =============================================================================

def require_fields(data: dict | None, fields: Iterable[str]) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return data


def parse_money(value: Any, field: str, *, allow_zero: bool = True, allow_negative: bool = False) -> Decimal:
    """Parse a client-supplied amount into a 2-place Decimal."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, str) and "e" in value.strip().lower():
        raise ValidationError(f"{field} must be a plain decimal (scientific notation not allowed)")
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field} must be positive")
    return quantize(amount)


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """Strict integer: rejects floats, booleans and "12.5"."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            value = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return value


def parse_optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return parse_int(value, field, minimum=1)
