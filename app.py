import logging
import sys

import structlog
from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError

from config import Config
from extensions import db, jwt, cors
from routes import automation_bp
from services.automation_engine import init_automation_engine
from services.errors import RuleValidationError
from services.events import event_bus
import models  # Register models


def configure_logging(level="INFO", fmt="console"):
    """One structured line per event: JSON in production, key/value on a console."""
    level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )


def register_error_handlers(app):
    @app.errorhandler(RuleValidationError)
    def handle_rule_validation_error(e):
        return jsonify({"error": "Validation error", "fields": e.errors}), 400

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        db.session.rollback()
        return jsonify({"error": "Database integrity error", "message": str(e.orig)}), 400

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found", "message": "The requested URL was not found."}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": "The method is not allowed for the requested URL."}), 405


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("LOG_FORMAT", "console"))

    cors.init_app(app, origins=app.config.get("CORS_ORIGINS"), supports_credentials=True)
    db.init_app(app)
    jwt.init_app(app)

    app.register_blueprint(automation_bp, url_prefix="/api")
    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    init_automation_engine(event_bus)
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=True)
