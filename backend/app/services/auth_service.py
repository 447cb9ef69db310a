# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale, credit payment and stock movement records the acting user,
so every API call except login and /health is authenticated.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from app.time_utils import utcnow

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError unless the password has at least
    8 characters with an uppercase letter, a lowercase letter, a digit
    and a special character.
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


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash password using bcrypt. Password is validated for strength first.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Timing-safe check via bcrypt.checkpw. Malformed hashes verify as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = "seller",
    first_name: str | None = None,
    last_name: str | None = None,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises ValidationError for a bad role or weak password and ConflictError
    if the username or email is taken.
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username:
        raise ValidationError("username is required", field="username")
    if not email:
        raise ValidationError("email is required", field="email")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}", field="role")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    logger.info("User %s created with role %s", username, role)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Return the active user matching username (or email) and password, or None.

    Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    logger.warning("Failed login for %s", username)
    return None


USER_UPDATABLE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "role": "role",
    "isActive": "is_active",
}


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_user(user_id: int, payload: dict, acting_user_id: int | None = None) -> User:
    """
    Update names, email, role and active flag. Passwords are not changed here.

    An administrator cannot deactivate or demote their own account. A
    deactivated user's tokens stop validating on the next request.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    for key in payload:
        if key not in USER_UPDATABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}", field=key)

    user = get_user(user_id)

    patch = {}
    for key in ("firstName", "lastName"):
        if key in payload:
            value = payload[key]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string", field=key)
            patch[USER_UPDATABLE_FIELDS[key]] = (value or "").strip() or None

    if "email" in payload:
        email = payload["email"].strip().lower() if isinstance(payload["email"], str) else ""
        if "@" not in email:
            raise ValidationError("email must be a valid address", field="email")
        taken = db.session.query(User.id).filter(User.email == email, User.id != user_id).first()
        if taken:
            raise ConflictError("Email already in use", field="email")
        patch["email"] = email

    if "role" in payload:
        if payload["role"] not in USER_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}", field="role")
        patch["role"] = payload["role"]

    if "isActive" in payload:
        if not isinstance(payload["isActive"], bool):
            raise ValidationError("isActive must be true or false", field="isActive")
        patch["is_active"] = payload["isActive"]

    if user.id == acting_user_id and (
        patch.get("is_active") is False or patch.get("role", user.role) != user.role
    ):
        raise ConflictError("You cannot deactivate or change the role of your own account")

    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()
    logger.info("User %s updated: %s", user.username, ", ".join(sorted(patch)) or "no changes")
    return user
