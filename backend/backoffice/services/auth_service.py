# Overview: Service-layer operations for auth; password hashing, user accounts and credential checks.

"""
Authentication Service

WHY: Every document, payment and cash movement is attributable to a user.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES, ROLE_CASHIER
from ..validation import ConflictError, NotFoundError, ValidationError
from backoffice.time_utils import utcnow
from .session_service import revoke_all_user_sessions


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationError("A valid email is required")
    return email


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def create_user(email: str, password: str, *, full_name: str | None = None, role: str = ROLE_CASHIER) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ConflictError: email already registered
        ValidationError: unknown role or malformed email
        PasswordValidationError: password too weak
    """
    email = _normalize_email(email)
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: int, patch: dict) -> User:
    """Admin edit: full_name, role, is_active, password."""
    user = get_user(user_id)
    if "role" in patch:
        if patch["role"] not in VALID_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")
        user.role = patch["role"]
    if "full_name" in patch:
        user.full_name = patch["full_name"]
    if "is_active" in patch:
        user.is_active = bool(patch["is_active"])
    if patch.get("password"):
        user.password_hash = hash_password(patch["password"])
    db.session.commit()
    if not user.is_active or patch.get("password"):
        revoke_all_user_sessions(user.id)
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.email.asc()).all()


def authenticate(email: str, password: str) -> User | None:
    """
    Check email/password credentials.

    Returns the active User when they match, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
