# Overview: Request and authorization decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.authorization import can


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a live bearer token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_action(action: str):
    """
    Require an action that does not depend on a specific document.

    Document-scoped actions (ownership, status targets) are checked inside the
    route with authorization.require once the document is loaded.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not can(g.current_user, action):
                return jsonify({
                    "error": "Permission denied",
                    "required_action": action,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
