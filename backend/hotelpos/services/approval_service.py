# Overview: Manager-PIN approval for voids and restricted discounts.

"""
Approval Gate

A manager or admin keys their PIN at the terminal; verify_manager_pin() turns
it into an approver identity. Destructive operations (order void, item void by
someone other than the order's server, discounts flagged requires_approval)
refuse to commit until require_approver() accepts that identity.

PIN hashes are bcrypt, checked one candidate at a time with checkpw.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import User
from ..models.auth import APPROVER_ROLES
from ..validation import AuthorizationError, OperationFailedError
from .auth_service import verify_secret


@dataclass(frozen=True)
class ApprovalResult:
    success: bool
    approver_id: int | None = None
    approver_name: str | None = None
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.success:
            data["approver_id"] = self.approver_id
            data["approver_name"] = self.approver_name
        else:
            data["error"] = self.error
        return data


def verify_manager_pin(pin: str | None, *, property_id: int | None = None) -> ApprovalResult:
    if not pin:
        return ApprovalResult(success=False, error="Manager PIN is required")

    try:
        query = db.session.query(User).filter(
            User.is_active.is_(True),
            User.role.in_(APPROVER_ROLES),
            User.pin_hash.isnot(None),
        )
        if property_id is not None:
            query = query.filter(db.or_(User.property_id == property_id, User.property_id.is_(None)))
        candidates = query.order_by(User.id).all()
    except SQLAlchemyError:
        current_app.logger.exception("Failed to verify manager PIN")
        raise OperationFailedError("Failed to verify manager PIN")

    for user in candidates:
        if verify_secret(pin, user.pin_hash):
            return ApprovalResult(success=True, approver_id=user.id, approver_name=user.display_name)

    return ApprovalResult(success=False, error="Invalid manager PIN")


def approve_with_pin(pin: str | None, *, property_id: int | None = None) -> int:
    """Approver id for a valid PIN; AuthorizationError otherwise."""
    result = verify_manager_pin(pin, property_id=property_id)
    if not result.success:
        raise AuthorizationError(result.error)
    return result.approver_id


def require_approver(approver_id: int | None, *, action: str) -> User:
    if approver_id is None:
        raise AuthorizationError(f"Manager approval is required to {action}")

    approver = db.session.get(User, approver_id)
    if not approver or not approver.is_active or not approver.is_approver:
        raise AuthorizationError(f"User {approver_id} is not authorized to approve this action")

    return approver
