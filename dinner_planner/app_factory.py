"""Flask application factory.

Provides:
 - App factory with configuration override
 - DB engine initialization
 - Request id propagation (X-Request-Id)
 - The authentication & quota gate (before_request)
 - RFC7807 error handlers
 - Blueprint registration (people, documents, victuals, recipes, dishes,
   meal types) and /openapi.json
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import click
from dotenv import load_dotenv
from flask import Flask, g, request
from werkzeug.wrappers.response import Response

from .concurrency import KeyedLocks
from .config import Config
from .db import create_all, init_engine, remove_session
from .discovery_api import init_discovery
from .dishes_api import bp as dishes_bp
from .documents_api import bp as documents_bp
from .errors import register_error_handlers
from .gate import Gate
from .logging_setup import LOGGER_NAME, configure_logging
from .meal_types_api import bp as meal_types_bp
from .people_api import bp as people_bp
from .quota import QuotaLedger
from .recipes_api import bp as recipes_bp
from .security import init_security
from .victuals_api import bp as victuals_bp

log = logging.getLogger(LOGGER_NAME)


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    cfg = Config.from_env()
    overrides = config_override or {}
    cfg.override({k: v for k, v in overrides.items() if k.islower()})
    app.config.update(cfg.to_flask_dict())
    # Direct Flask config keys win over the dataclass
    app.config.update({k: v for k, v in overrides.items() if k.isupper()})

    # --- DB setup ---
    init_engine(cfg.database_url, force=bool(app.config.get("FORCE_DB_REINIT")))
    configure_logging(app)
    log.info("Database: %s", cfg.database_url.split("@")[-1])

    @app.teardown_appcontext
    def _remove_session(exc: BaseException | None) -> None:
        remove_session()

    # Request id first so every later hook (the gate included) logs with it
    @app.before_request
    def _before_req() -> None:
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", None) or str(uuid.uuid4())
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        log.info("%s %s -> %s (%d ms)", request.method, request.path, resp.status_code, dur_ms)
        return resp

    init_security(app)

    # --- Gate & shared locks ---
    ledger = QuotaLedger(KeyedLocks(cfg.quota_lock_scope))
    Gate(
        ledger,
        discovery_path=cfg.discovery_path,
        public_document_prefix=cfg.public_document_prefix,
        registration_path=cfg.registration_path,
    ).init_app(app)
    app.extensions["structure_locks"] = KeyedLocks("global")

    register_error_handlers(app)

    # --- Blueprints ---
    app.register_blueprint(people_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(victuals_bp)
    app.register_blueprint(recipes_bp)
    app.register_blueprint(dishes_bp)
    app.register_blueprint(meal_types_bp)
    init_discovery(app, cfg.discovery_path)

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Create all tables on a scratch database (use Alembic elsewhere)."""
        create_all()
        click.echo("Database schema created.")

    return app


__all__ = ["create_app"]
