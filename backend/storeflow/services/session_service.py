# Overview: Service-layer operations for bearer session tokens.

"""
Session tokens.

Tokens are 32 random bytes (hex) handed to the client once; only their SHA-256 hash
is stored. A token is valid until it expires (SESSION_HOURS) or is revoked.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from storeflow.time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user: User) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    plaintext_token = generate_token()
    now = utcnow()
    hours = int(current_app.config.get("SESSION_HOURS", 24))

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + timedelta(hours=hours),
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """Return the active user behind a live token, else None."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.revoked_at is not None:
        return None
    if session.expires_at <= utcnow():
        return None
    user = db.session.get(User, session.user_id)
    if not user or not user.is_active:
        return None
    return user


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.revoked_at is not None:
        return False
    session.revoked_at = utcnow()
    db.session.commit()
    return True
