from __future__ import annotations

import importlib
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .config import get_settings_module
from .container import Container, build_container
from .core.exceptions import DomainError
from .core.logging import get_logger, setup_logging
from .database.bootstrap import apply_schema, list_tables

from .attendance.controller import register as register_attendance
from .classes.controller import register as register_classes
from .enrollment.controller import register as register_enrollment
from .join_requests.controller import register as register_join_requests

log = get_logger(__name__)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        log.debug("request_rejected", error=e.code, message=e.message, status=e.status_code)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"success": False, "error": e.name.lower().replace(" ", "_"), "message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        log.exception("unhandled_error", error=type(e).__name__)
        return jsonify({"success": False, "error": "internal_error", "message": "Internal server error"}), 500


def create_app(*, container: Optional[Container] = None, settings_module: Optional[str] = None) -> Flask:
    """Application factory.

    A prebuilt ``container`` skips database setup entirely (used by tests).
    """
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(
        json_output=bool(getattr(settings, "LOG_JSON", False)),
        log_level=str(getattr(settings, "LOG_LEVEL", "INFO")),
    )

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        log.info(
            "app_starting",
            settings=settings_module,
            db=f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}",
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            log.info("schema_ready", tables=len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            require_non_empty_roster=bool(getattr(settings, "REQUIRE_NON_EMPTY_ROSTER", True)),
            join_request_cooldown_minutes=int(getattr(settings, "JOIN_REQUEST_COOLDOWN_MINUTES", 0)),
            roster_cas_retries=int(getattr(settings, "ROSTER_CAS_RETRIES", 3)),
        )

    app.extensions["classroom"] = container
    register_error_handlers(app)

    register_classes(app, container)
    register_enrollment(app, container)
    register_join_requests(app, container)
    register_attendance(app, container)

    return app
