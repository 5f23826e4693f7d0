# backend/storeflow/routes/users.py
"""
User administration routes.

SECURITY: listing is open to any authenticated user (salesperson pickers);
create/update require manage_users.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_action
from ..permissions import PERMISSION_DEFINITIONS, get_permission_definition, get_permissions_by_category
from ..services import auth_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
def list_users_route():
    role = request.args.get("role")
    users = auth_service.list_users(role=role)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@users_bp.get("/permissions")
@require_auth
@require_action("manage_users")
def list_permissions_route():
    """
    Capability catalog for the manager permission editor.

    Query params:
    - category: str - filter by category
    """
    category = request.args.get("category")
    entries = get_permissions_by_category(category) if category else PERMISSION_DEFINITIONS
    return jsonify({"permissions": [get_permission_definition(code) for code, *_ in entries]})


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    return jsonify({"user": auth_service.get_user(user_id).to_dict()})


@users_bp.post("")
@require_auth
@require_action("manage_users")
def create_user_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        username=data.get("username"),
        password=data.get("password"),
        role=data.get("role"),
        permissions=data.get("permissions"),
    )
    current_app.logger.info("User %s (%s) created by %s", user.username, user.role, g.current_user.username)
    return jsonify({"user": user.to_dict()}), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_action("manage_users")
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    user = auth_service.update_user(user_id, data)
    return jsonify({"user": user.to_dict()})
