# backend/storeflow/routes/auth.py
"""
Authentication API routes

- login exchanges username/password for a bearer token
- logout revokes the presented token
- me returns the caller and their resolved capabilities
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..services import auth_service
from ..services import session_service
from ..services.authorization import get_user_permissions
from ..decorators import bearer_token, require_auth
from storeflow.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        current_app.logger.info("Failed login for %s", username)
        return jsonify({"error": "Invalid credentials"}), 401

    try:
        session, token = session_service.create_session(user)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create session for %s", username)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(get_user_permissions(user)),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
def logout_route():
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "permissions": sorted(get_user_permissions(g.current_user)),
    })
