# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and committee user management.

Passwords are hashed with bcrypt. Users log in with their WhatsApp number
(phone) and password; the role is either admin or panitia.
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_PANITIA, VALID_ROLES
from .concurrency import commit_or_raise, run_with_retry
from . import session_service
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_choice,
    require_text,
)

MIN_PASSWORD_LENGTH = 6
PHONE_PATTERN = re.compile(r"^\+?[0-9]{8,15}$")


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet the length/confirmation rules."""


def validate_password(password: str | None, confirm_password: str | None = None) -> str:
    if not password:
        raise PasswordValidationError("password is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if confirm_password is not None and password != confirm_password:
        raise PasswordValidationError("Password and confirmation do not match")
    return password


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def normalize_phone(phone) -> str:
    value = re.sub(r"[\s\-]", "", require_text(phone, "phone"))
    if not PHONE_PATTERN.match(value):
        raise ValidationError("phone must be 8-15 digits")
    return value


def authenticate(phone: str, password: str) -> User | None:
    """Return the active user matching phone + password, else None."""
    if not phone or not password:
        return None
    user = db.session.query(User).filter_by(phone=re.sub(r"[\s\-]", "", str(phone))).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def _ensure_phone_free(phone: str, *, exclude_user_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.phone == phone)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("Phone number is already registered")


def create_user(
    name: str,
    phone: str,
    password: str,
    role: str = ROLE_PANITIA,
    *,
    confirm_password: str | None = None,
) -> User:
    """
    Create a committee user.

    Raises:
        ValidationError: missing name/phone, bad role, weak password
        ConflictError: phone already registered
    """
    name = require_text(name, "name", max_length=100)
    phone = normalize_phone(phone)
    role = parse_choice(role or ROLE_PANITIA, "role", VALID_ROLES)
    validate_password(password, confirm_password)
    _ensure_phone_free(phone)

    user = User(
        name=name,
        phone=phone,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    commit_or_raise("create user")
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(User.name.asc()).all()


def update_user(user_id: int, data: dict, *, acting_user_id: int | None = None) -> User:
    """
    Update name/phone/role/is_active/password. Deactivating a user or
    changing their password revokes their sessions.
    """
    def _op():
        return _apply_user_update(user_id, data, acting_user_id)

    return run_with_retry(_op)


def _apply_user_update(user_id: int, data: dict, acting_user_id: int | None) -> User:
    user = get_user(user_id)
    revoke = False

    if "name" in data:
        user.name = require_text(data.get("name"), "name", max_length=100)
    if "phone" in data:
        phone = normalize_phone(data.get("phone"))
        _ensure_phone_free(phone, exclude_user_id=user.id)
        user.phone = phone
    if "role" in data:
        role = parse_choice(data.get("role"), "role", VALID_ROLES)
        if acting_user_id == user.id and role != user.role:
            raise ConflictError("You cannot change your own role")
        user.role = role
    if "is_active" in data:
        is_active = data.get("is_active")
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be true or false")
        if acting_user_id == user.id and not is_active:
            raise ConflictError("You cannot deactivate your own account")
        revoke = revoke or (user.is_active and not is_active)
        user.is_active = is_active
    if optional_text(data.get("password")):
        validate_password(data.get("password"), data.get("confirm_password"))
        user.password_hash = hash_password(data["password"])
        revoke = True

    if revoke:
        session_service.revoke_all_user_sessions(user.id, reason="Account updated", commit=False)
    commit_or_raise("update user")
    return user


def delete_user(user_id: int, *, acting_user_id: int | None = None) -> None:
    user = get_user(user_id)
    if acting_user_id == user.id:
        raise ConflictError("You cannot delete your own account")
    db.session.delete(user)
    commit_or_raise("delete user")
