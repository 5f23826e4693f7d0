# Overview: Service-layer operations for users and credentials.

"""
Authentication and user directory.

WHY: Every payment and workflow action is attributed to a named user. Passwords are
bcrypt hashed; the cost factor comes from BCRYPT_ROUNDS.

SECURITY NOTES:
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens are handled in session_service.py
- Inactive users cannot authenticate
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from ..permissions import MANAGER_ASSIGNABLE_PERMISSIONS, validate_permission_code
from ..statuses import UserRole
from ..validation import ConflictError, NotFoundError, ValidationError
from storeflow.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def _normalize_permissions(role: UserRole, permissions) -> list[str]:
    if role != UserRole.MANAGER:
        return []
    if permissions is None:
        return []
    if not isinstance(permissions, (list, tuple, set)):
        raise ValidationError("permissions must be a list")
    unknown = sorted(p for p in permissions if not validate_permission_code(p))
    if unknown:
        raise ValidationError(f"Unknown permissions: {', '.join(unknown)}")
    not_assignable = sorted(set(permissions) - MANAGER_ASSIGNABLE_PERMISSIONS)
    if not_assignable:
        raise ValidationError(f"Permissions not assignable to managers: {', '.join(not_assignable)}")
    return sorted(set(permissions))


def _parse_role(role) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role}")


def create_user(username: str, password: str, role: str, permissions=None) -> User:
    """
    Create a user. Managers may carry explicit capabilities; other roles ignore them.

    Raises ConflictError on a duplicate username and PasswordValidationError on a
    weak password.
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    user_role = _parse_role(role)

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError(f"Username '{username}' already exists")

    user = User(
        username=username,
        role=user_role.value,
        permissions=_normalize_permissions(user_role, permissions),
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: int, data: dict) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    if "username" in data:
        username = (data.get("username") or "").strip()
        if not username:
            raise ValidationError("username cannot be blank")
        clash = db.session.query(User).filter(User.username == username, User.id != user.id).first()
        if clash:
            raise ConflictError(f"Username '{username}' already exists")
        user.username = username

    role = _parse_role(data["role"]) if "role" in data else UserRole(user.role)
    user.role = role.value
    user.permissions = _normalize_permissions(role, data.get("permissions", user.permissions))

    if data.get("password"):
        user.password_hash = hash_password(data["password"])
    if "is_active" in data:
        user.is_active = bool(data["is_active"])

    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """Return the active user for valid credentials, else None."""
    user = db.session.query(User).filter(
        User.username == username,
        User.is_active.is_(True),
    ).first()
    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def list_users(role: str | None = None) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.username).all()
