"""Application factory for the memorial request service."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import get_config
from .errors import MemorialError
from .extensions import db, migrate
from .models import PaymentAmountLockedError
from .routes import main_bp


def create_app(config_name: str | None = None) -> Flask:
    """Build and configure the Flask application instance."""
    app = Flask(__name__)
    config_obj = get_config(config_name)
    app.config.from_object(config_obj)

    configure_logging(app)
    register_extensions(app)
    register_blueprints(app)
    register_error_handlers(app)

    return app


def configure_logging(app: Flask) -> None:
    """Apply the configured log level to the app and service loggers."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")))
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger(__name__).setLevel(level)


def register_extensions(app: Flask) -> None:
    """Initialize application extensions."""
    db.init_app(app)
    migrate.init_app(app, db)


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""
    app.register_blueprint(main_bp)


def register_error_handlers(app: Flask) -> None:
    """Render every failure as a JSON body."""

    @app.errorhandler(MemorialError)
    def handle_memorial_error(exc: MemorialError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", type(exc).__name__, exc.message)
        else:
            app.logger.info("%s: %s", type(exc).__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(PaymentAmountLockedError)
    def handle_locked_price(exc: PaymentAmountLockedError):
        db.session.rollback()
        app.logger.error("Blocked payment amount change: %s", exc)
        return jsonify({"error": str(exc), "code": "payment_amount_locked"}), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        response = exc.get_response()
        response.data = jsonify(
            {"error": exc.description, "code": (exc.name or "error").lower().replace(" ", "_")}
        ).get_data()
        response.content_type = "application/json"
        return response
