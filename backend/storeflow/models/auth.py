from __future__ import annotations

from ..extensions import db
from storeflow.statuses import UserRole
from storeflow.time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    Staff accounts.

    WHY: Every payment, status change and conversion is attributed to a user.

    ROLE MODEL:
    - role is one of the fixed UserRole values
    - permissions (list of capability codes) only matters for managers
    - capability resolution lives in services/authorization.py
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("username", name="uq_users_username"),
        db.Index("ix_users_role", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(32), nullable=False, default=UserRole.SALESPERSON.value)
    permissions = db.Column(db.JSON, nullable=False, default=list)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "permissions": list(self.permissions or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class SessionToken(db.Model):
    """
    Bearer session tokens (only the SHA-256 hash is stored).

    LIFECYCLE: created on login, revoked on logout, rejected after expires_at.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.UniqueConstraint("token_hash", name="uq_session_tokens_hash"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
