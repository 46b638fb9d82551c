"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - `flask db migrate` to work without starting the full server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging at LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Build the SqlLedgerStore and bind the sync registry to it
  5. Register all route blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)
  7. Register a custom JSON provider to serialise datetimes as ISO-8601

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError

from splitsync.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default provider renders datetimes as RFC 822 strings. Store
# timestamps are timezone-aware UTC and are sent as ISO-8601 instead.

class LedgerJSONProvider(DefaultJSONProvider):
    """
    Example: datetime(2026, 1, 2, 3, 4, 5, tzinfo=utc) → "2026-01-02T03:04:05+00:00"
    """

    def default(self, o):
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = LedgerJSONProvider
    app.json = LedgerJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from splitsync.app.extensions import db, ma, sync_registry
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration and ledger store ────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    # Alembic needs to see these to auto-generate migrations.
    with app.app_context():
        from splitsync.app.models import (  # noqa: F401
            expense,
            friendship,
            group,
            membership,
            settlement,
            user,
        )
        from sqlalchemy.orm import sessionmaker

        from splitsync.app.store.sql_store import SqlLedgerStore

        if app.config.get("CREATE_TABLES"):
            db.create_all()

        # The store keeps its own sessions: change notifications run on
        # writer threads that are not inside a request context.
        store = SqlLedgerStore(sessionmaker(bind=db.engine, expire_on_commit=False))

    sync_registry.bind(store, fetch_workers=app.config.get("IDENTITY_FETCH_WORKERS", 4))
    app.extensions["ledger_store"] = store

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    @app.route("/health", methods=["GET"])
    def health():
        """GET /health — Liveness probe. No authentication."""
        return jsonify({"data": {"status": "ok"}, "warnings": []}), 200

    return app


def _configure_logging(app: Flask) -> None:
    """
    Sets the level of the app logger and of every `splitsync.*` module logger.

    Services and the store log through logging.getLogger(__name__); their
    records reach Flask's default handler through the root logger.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("splitsync").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Blueprint names match the route files in app/routes/.
    """
    from splitsync.app.routes.activity import activity_bp
    from splitsync.app.routes.balances import balances_bp
    from splitsync.app.routes.expenses import expenses_bp
    from splitsync.app.routes.friends import friends_bp
    from splitsync.app.routes.groups import groups_bp
    from splitsync.app.routes.settlements import settlements_bp
    from splitsync.app.routes.sync import sync_bp
    from splitsync.app.routes.users import users_bp

    app.register_blueprint(users_bp,       url_prefix="/api/v1/users")
    app.register_blueprint(friends_bp,     url_prefix="/api/v1/friends")
    app.register_blueprint(groups_bp,      url_prefix="/api/v1/groups")
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1/groups")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/groups")
    # balances_bp owns both /groups/<id>/balances and /balances/total.
    app.register_blueprint(balances_bp,    url_prefix="/api/v1")
    app.register_blueprint(activity_bp,    url_prefix="/api/v1/activity")
    app.register_blueprint(sync_bp,        url_prefix="/api/v1/sync")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP
                        status (StoreError is an AppError: 503)
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from werkzeug.exceptions import HTTPException

    from splitsync.app.errors import AppError, ErrorCode, StoreError

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError — they let it propagate here.
        """
        if isinstance(error, StoreError):
            app.logger.error("Store unavailable: %s (cause: %r)", error.message, error.cause)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        We return the FIRST error only: one error, not many. A message that
        is itself a registered ErrorCode (e.g. EMPTY_SPLIT) becomes the code.
        """
        messages = error.messages  # e.g. {"split_between": ["EMPTY_SPLIT"]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                elif isinstance(field_errors, dict):
                    # List fields report per-index errors: {0: ["..."]}.
                    first = next(iter(field_errors.values()), ["Invalid value."])
                    raw_message = first[0] if isinstance(first, list) and first else str(first)
                else:
                    raw_message = str(field_errors)

                if raw_message in vars(ErrorCode).values():
                    code = raw_message
                elif str(raw_message).startswith("Missing data for required field"):
                    code = ErrorCode.MISSING_FIELD
                else:
                    code = ErrorCode.INVALID_FIELD
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."
            if raw_message in vars(ErrorCode).values():
                code = raw_message
            elif str(raw_message).startswith("Missing data for required field"):
                code = ErrorCode.MISSING_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in vars(ErrorCode).values()
                else _code_to_message(code),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """404/405 from routing, in the same envelope as everything else."""
        return jsonify({
            "error": {
                "code": error.name.upper().replace(" ", "_"),
                "message": error.description,
            }
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The full traceback is logged to the application logger. Stack traces
        NEVER leave the server in the response body.
        """
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    _messages = {
        "EMPTY_SPLIT": "An expense must be split between at least one member.",
        "DUPLICATE_SPLIT_USER": "The same user_id appears more than once in split_between.",
    }
    return _messages.get(code, "Invalid input.")
