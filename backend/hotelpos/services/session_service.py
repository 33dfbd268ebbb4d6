# Overview: Bearer session tokens and the explicit actor passed into services.

"""
Session Token Management

Tokens are 32 random bytes (hex), handed to the client once and stored only
as a SHA-256 hash. Sessions expire after POS_SESSION_HOURS and can be revoked.

Services never read the request context for identity. Routes turn the
validated session into an Actor and pass it down.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..models.auth import APPROVER_ROLES
from hotelpos.time_utils import utcnow


@dataclass(frozen=True)
class Actor:
    """Who is performing a mutating operation."""
    user_id: int
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in APPROVER_ROLES

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(user_id=user.id, role=user.role)


@dataclass
class SessionContext:
    user: User
    session: SessionToken

    @property
    def actor(self) -> Actor:
        return Actor.from_user(self.user)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()
    hours = int(current_app.config.get("POS_SESSION_HOURS", 24))

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """None for unknown, revoked or expired tokens and for deactivated users."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    return SessionContext(user=user, session=session)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
