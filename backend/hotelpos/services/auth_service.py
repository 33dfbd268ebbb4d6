# Overview: Staff accounts, bcrypt password/PIN hashing and login.

"""
Authentication Service

Every order, payment, void and shift is attributable to a staff account.
Passwords and approval PINs are both stored as bcrypt hashes.
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES
from ..validation import ValidationError
from hotelpos.time_utils import utcnow

MIN_PASSWORD_LENGTH = 8
PIN_LENGTHS = (4, 6)


def _rounds() -> int:
    return int(current_app.config.get("BCRYPT_ROUNDS", 12))


def hash_secret(secret: str) -> str:
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(secret.encode('utf-8'), salt).decode('utf-8')


def verify_secret(secret: str, secret_hash: str | None) -> bool:
    """Timing-safe bcrypt comparison; a missing or malformed hash never matches."""
    if not secret or not secret_hash:
        return False
    try:
        return bcrypt.checkpw(secret.encode('utf-8'), secret_hash.encode('utf-8'))
    except ValueError:
        return False


def validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def validate_pin(pin: str) -> None:
    if not pin or not pin.isdigit() or len(pin) not in PIN_LENGTHS:
        raise ValidationError("PIN must be 4 or 6 digits")


def create_user(
    username: str,
    password: str,
    role: str,
    *,
    name: str | None = None,
    property_id: int | None = None,
    pin: str | None = None,
) -> User:
    role = (role or "").upper()
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role '{role}'. Must be one of: {', '.join(sorted(VALID_ROLES))}")
    validate_password(password)
    if pin is not None:
        validate_pin(pin)

    if db.session.query(User).filter_by(username=username).first():
        raise ValidationError(f"Username '{username}' already exists")

    user = User(
        username=username,
        name=name,
        role=role,
        property_id=property_id,
        password_hash=hash_secret(password),
        pin_hash=hash_secret(pin) if pin else None,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Returns the active user for valid credentials, None otherwise."""
    user = db.session.query(User).filter(
        User.username == username,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_secret(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
