from __future__ import annotations

import os
import uuid
from typing import Any, Mapping

import structlog
from flask import Flask, jsonify, request

from .errors import GiftExchangeError
from .extensions import db, login_manager, migrate
from .logging import get_logger, setup_logging
from .policies import ADMIN_GATE_KEY, AdminGate
from .services.notifications import MAILERSEND_API_URL, NOTIFIER_KEY, Notifier
from .views.admin import admin_bp
from .views.public import public_bp

logger = get_logger(__name__)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def create_app(test_config: Mapping[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///giftexchange.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Empty means the admin API refuses every request.
    app.config["ADMIN_SECRET"] = os.environ.get("ADMIN_SECRET", "").strip()

    # Where participants open their direct-access link.
    app.config["BASE_URL"] = os.environ.get("BASE_URL", "http://localhost:5000/")

    app.config["MAILERSEND_API_KEY"] = os.environ.get("MAILERSEND_API_KEY", "").strip()
    app.config["MAILERSEND_FROM_EMAIL"] = os.environ.get("MAILERSEND_FROM_EMAIL", "noreply@giftexchange.app")
    app.config["MAILERSEND_FROM_NAME"] = os.environ.get("MAILERSEND_FROM_NAME", "Gift Exchange")
    app.config["MAILERSEND_API_URL"] = os.environ.get("MAILERSEND_API_URL", MAILERSEND_API_URL)
    app.config["MAILERSEND_TRANSPORT"] = None

    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    app.config["LOG_JSON"] = _env_flag("LOG_JSON")

    if test_config:
        app.config.update(test_config)

    setup_logging(app.config["LOG_LEVEL"], json=app.config["LOG_JSON"])

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    app.extensions[ADMIN_GATE_KEY] = AdminGate(secret=app.config["ADMIN_SECRET"] or None)
    app.extensions[NOTIFIER_KEY] = Notifier(
        api_key=app.config["MAILERSEND_API_KEY"],
        from_email=app.config["MAILERSEND_FROM_EMAIL"],
        from_name=app.config["MAILERSEND_FROM_NAME"],
        base_url=app.config["BASE_URL"],
        api_url=app.config["MAILERSEND_API_URL"],
        transport=app.config["MAILERSEND_TRANSPORT"],
    )
    if not app.extensions[ADMIN_GATE_KEY].configured:
        logger.warning("admin_secret_missing", detail="admin API will deny every request")

    # Blueprints
    app.register_blueprint(admin_bp)
    app.register_blueprint(public_bp)

    @app.before_request
    def bind_request_context():
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12],
            method=request.method,
            path=request.path,
        )

    @app.errorhandler(GiftExchangeError)
    def handle_domain_error(error: GiftExchangeError):
        if error.status_code >= 500:
            logger.error("request_failed", error=error.kind, message=error.message)
        else:
            logger.info("request_rejected", error=error.kind, status=error.status_code)
        return jsonify(error.to_dict()), error.status_code

    return app
