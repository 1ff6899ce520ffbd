# Overview: Service-layer operations for admin accounts, passwords and re-authentication.

"""
Admin Authentication Service

WHY: Every stock and cost mutation is attributable to an admin. Uses bcrypt
for password hashing; the same hash backs the re-authentication required
by manual stock increases and cost corrections.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, mixed case, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, InvalidCredentialsError, ValidationError
from ..models import Admin
from ..roles import parse_role
from storeledger.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def reauthenticate(admin: Admin, password: str | None) -> None:
    """
    Re-check the acting admin's password for a privileged operation.

    Raises InvalidCredentialsError when the password is missing or wrong.
    """
    if not password:
        raise InvalidCredentialsError("Password confirmation is required for this action")
    if not verify_password(password, admin.password_hash):
        raise InvalidCredentialsError("Invalid password")


def create_admin(
    *,
    username: str,
    email: str,
    name: str,
    role: str,
    password: str,
) -> Admin:
    """Create a back-office admin account."""
    try:
        role_value = parse_role(role).value
    except ValueError as e:
        raise ValidationError(str(e))

    username = (username or "").strip()
    email = (email or "").strip().lower()
    name = (name or "").strip()
    if not username or not email or not name:
        raise ValidationError("username, email and name are required")

    existing = db.session.query(Admin).filter(
        (Admin.username == username) | (Admin.email == email)
    ).first()
    if existing:
        raise ConflictError("An admin with this username or email already exists")

    admin = Admin(
        username=username,
        email=email,
        name=name,
        role=role_value,
        password_hash=hash_password(password, rounds=current_app.config["BCRYPT_ROUNDS"]),
        is_active=True,
    )
    db.session.add(admin)
    db.session.commit()
    return admin


def authenticate(username: str, password: str) -> Admin:
    """
    Authenticate admin by username and password.

    Raises InvalidCredentialsError on unknown user, inactive account or
    wrong password (same message for all three).
    """
    admin = db.session.query(Admin).filter_by(username=(username or "").strip()).first()
    if not admin or not admin.is_active or not verify_password(password, admin.password_hash):
        raise InvalidCredentialsError("Invalid username or password")

    admin.last_login_at = utcnow()
    db.session.commit()
    return admin


def list_admins() -> list[Admin]:
    return db.session.query(Admin).order_by(Admin.username.asc()).all()
