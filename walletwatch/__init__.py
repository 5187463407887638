"""walletwatch application factory and bootstrap."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from flask import Flask

from walletwatch.config import config_by_name
from walletwatch.core.store import init_store
from walletwatch.extensions import init_extensions


def create_app(config_name: Optional[str] = None) -> Flask:
    """Create and configure the walletwatch Flask application."""
    env_name = (config_name or os.environ.get("APP_ENV") or "development").lower()
    project_root = Path(__file__).resolve().parent.parent
    instance_root = project_root / "instance"

    app = Flask(
        __name__,
        instance_path=str(instance_root),
        instance_relative_config=True,
    )
    config_cls = config_by_name.get(env_name, config_by_name["development"])
    app.config.from_object(config_cls)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    instance_root.mkdir(parents=True, exist_ok=True)

    # Normalize sqlite path to absolute to avoid "unable to open database file"
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    is_sqlite = db_uri and db_uri.startswith("sqlite:")
    if is_sqlite and db_uri.startswith("sqlite:///"):
        db_path = db_uri.replace("sqlite:///", "", 1)
        abs_path = project_root / db_path
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{abs_path}"

    if not is_sqlite:
        # Remove sqlite-specific connect_args that break Postgres/MySQL drivers in CI
        engine_opts = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_opts.get("connect_args") or {}
        connect_args.pop("detect_types", None)
        # Convert sqlite busy timeout to Postgres connect_timeout, otherwise drop it
        if "timeout" in connect_args:
            timeout_val = connect_args.pop("timeout")
            if db_uri.startswith("postgresql"):
                connect_args.setdefault("connect_timeout", timeout_val)
        if not connect_args and "connect_args" in engine_opts:
            engine_opts.pop("connect_args")
        else:
            engine_opts["connect_args"] = connect_args

    init_extensions(app)
    init_store(app)
    _register_blueprints(app)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"ok": True}, 200

    @app.get("/api/v1/ping")
    def ping():
        """Lightweight endpoint for load-balancer health checks."""
        return {"pong": True}, 200

    from walletwatch.scripts.load_activities import register_commands

    register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """Lazy import and register all controllers."""
    from walletwatch.domains.watchers.controllers.watcher_api import watcher_api_bp

    app.register_blueprint(watcher_api_bp, url_prefix="/api/watchers")


def _register_error_handlers(app: Flask) -> None:
    """Basic JSON error responses."""
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return {"ok": False, "error": exc.description}, exc.code

    @app.errorhandler(Exception)
    def _generic_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        # In debug/testing, surface the exception message to speed up diagnosis
        if app.debug or app.testing:
            return {"ok": False, "error": str(exc)}, 500
        return {"ok": False, "error": "unexpected_error"}, 500
