# Overview: Service-layer operations for admin session tokens.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_TTL_HOURS) and idle timeout (SESSION_IDLE_MINUTES)
- Revocable on logout
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Admin, SessionToken
from storeledger.time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(admin: Admin) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated admin.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        admin_id=admin.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=current_app.config["SESSION_TTL_HOURS"]),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> Admin | None:
    """
    Resolve a bearer token to its active admin.

    Returns None if the token is unknown, revoked, expired or idle, or if
    the admin has been deactivated. Idle and deactivated sessions are
    revoked on the way out.
    """
    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    idle_limit = timedelta(minutes=current_app.config["SESSION_IDLE_MINUTES"])
    if now - session.last_used_at > idle_limit:
        _revoke(session, "Idle timeout")
        return None

    admin = session.admin
    if not admin or not admin.is_active:
        _revoke(session, "Admin account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()
    return admin


def revoke_session(token: str, reason: str = "Logout") -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    _revoke(session, reason)
    return True


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
