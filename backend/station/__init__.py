# backend/station/__init__.py
from flask import Flask, jsonify

from .config import Config, check_policy
from .errors import ServiceError
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    check_policy(app.config)

    app.logger.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shifts import shifts_bp
    from .routes.sales import sales_bp
    from .routes.cash_registers import cash_registers_bp
    from .routes.debts import debts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(cash_registers_bp)
    app.register_blueprint(debts_bp)

    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(500)
    def handle_internal_error(exc):
        original = getattr(exc, "original_exception", None) or exc
        app.logger.exception("Unhandled error: %s", original)
        return jsonify({"error": "INTERNAL", "message": "Internal server error"}), 500

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
