from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .core.exceptions import (
    AuthorizationError,
    CorrectionProcessingError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from .corrections.controller import register as register_corrections
from .database.bootstrap import apply_schema, list_tables

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (StateConflictError, 409),
    (CorrectionProcessingError, 422),
)


def _register_error_handlers(app: Flask) -> None:
    for exc_type, status in _ERROR_STATUS:

        def handler(exc, status=status):
            return jsonify({"ok": False, "error": type(exc).__name__, "message": str(exc)}), status

        app.register_error_handler(exc_type, handler)

    @app.errorhandler(PersistenceError)
    def persistence_error(exc):
        logger.error("Persistence failure: %s", exc, exc_info=exc)
        return jsonify({"ok": False, "error": "PersistenceError", "message": "Internal server error"}), 500


def create_app(container: Container | None = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["ALLOW_SIMULATION"] = bool(getattr(settings, "ALLOW_SIMULATION", False))

    logging.basicConfig(
        level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            maps_api_key=getattr(settings, "GOOGLE_MAPS_API_KEY", ""),
            geo_timeout=float(getattr(settings, "GEO_TIMEOUT_SECONDS", 5)),
            default_timezone=getattr(settings, "DEFAULT_TIMEZONE", "UTC"),
            evidence_dir=getattr(settings, "EVIDENCE_DIR", "instance/evidence"),
            lookback_hours=int(getattr(settings, "OPEN_SESSION_LOOKBACK_HOURS", 12)),
            lock_timeout=int(getattr(settings, "USER_LOCK_TIMEOUT_SECONDS", 10)),
            event_sink=str(getattr(settings, "EVENT_SINK", "mysql")),
            user_locks=str(getattr(settings, "USER_LOCKS", "mysql")),
        )

    _register_error_handlers(app)
    register_attendance(app, container)
    register_corrections(app, container)

    return app
