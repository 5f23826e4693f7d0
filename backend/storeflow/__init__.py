# backend/storeflow/__init__.py
import logging

from flask import Flask, current_app, jsonify, request

from .config import Config
from .extensions import db, migrate
from .services.authorization import PermissionDeniedError
from .validation import ConflictError, NotFoundError, ValidationError


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation(exc):
        body = {"error": str(exc)}
        details = getattr(exc, "details", None)
        if details:
            body["details"] = details
        return jsonify(body), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        return jsonify({"error": str(exc).strip("'\"")}), 404

    @app.errorhandler(ConflictError)
    def handle_conflict(exc):
        return jsonify({"error": str(exc)}), 409

    @app.errorhandler(PermissionDeniedError)
    def handle_permission(exc):
        return jsonify({"error": "Permission denied", "action": exc.action, "message": str(exc)}), 403

    @app.errorhandler(404)
    def handle_missing_route(exc):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_bad_method(exc):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def handle_internal(exc):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.products import products_bp
    from .routes.demand_notices import demand_notices_bp
    from .routes.quotations import quotations_bp
    from .routes.orders import orders_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp
    from .routes.timekeeping import timekeeping_bp
    from .routes.activity import activity_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(demand_notices_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(timekeeping_bp)
    app.register_blueprint(activity_bp)

    _register_error_handlers(app)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
