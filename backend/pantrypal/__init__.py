# backend/pantrypal/__init__.py
import logging

from flask import Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config, engine_options_for
from .errors import CoreError, MissingTenantContext
from .extensions import db, migrate


def register_error_handlers(app: Flask) -> None:
    """
    Error boundary: every expected failure leaves as structured JSON.

    Business rejections are logged at INFO, tenant wiring bugs at ERROR,
    anything else with a traceback.
    """

    @app.errorhandler(CoreError)
    def handle_core_error(e: CoreError):
        current_app.logger.info("%s %s rejected: %s (%s)", request.method, request.path, e.code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(MissingTenantContext)
    def handle_missing_tenant(e: MissingTenantContext):
        current_app.logger.error("Tenant context missing on %s %s", request.method, request.path)
        return jsonify({"error": "missing_tenant_context", "message": "Tenant context required"}), 401

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return e
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


def register_request_hooks(app: Flask) -> None:
    @app.teardown_request
    def clear_tenant_context(exc):
        # An app context pushed by the caller, and its g, outlives the request
        g.pop("org_id", None)
        g.pop("user_id", None)


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Bounded lock waits; must be set before the engine is created in init_app
    engine_options = engine_options_for(
        app.config["SQLALCHEMY_DATABASE_URI"],
        app.config["STORAGE_LOCK_TIMEOUT_SECONDS"],
    )
    engine_options.update(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.bills import bills_bp

    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(bills_bp)

    register_error_handlers(app)
    register_request_hooks(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
