"""
BuildTrack data-exchange service
Flask Application Factory.

Usage:
    from buildtrack import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import json
import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from buildtrack.config import config
from buildtrack.models import db
from buildtrack.middleware.logging_config import configure_logging
from buildtrack.middleware.rate_limiter import init_rate_limits
from buildtrack.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are applied per blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_class = config[config_name]
    app.config.from_object(config_class() if config_name == "production" else config_class)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_request_timing(app)

    # ── Models (import so create_all sees every table) ───────────────────
    from buildtrack.models import communication as _communication_models  # noqa: F401
    from buildtrack.models import directory as _directory_models          # noqa: F401
    from buildtrack.models import project as _project_models              # noqa: F401
    from buildtrack.models import workflow as _workflow_models            # noqa: F401

    # Fail at startup, not mid-import, when the schema description is broken
    from buildtrack.services.data_exchange import get_registry
    get_registry()

    db_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        os.makedirs(app.instance_path, exist_ok=True)

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from buildtrack.blueprints.data_exchange_bp import data_exchange_bp

    app.register_blueprint(data_exchange_bp)
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("import-workbook")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--table", default=None, help="Import every sheet into this table.")
    def import_workbook_cmd(path, table):
        """Import a .xlsx/.csv workbook into the database."""
        from buildtrack.services.data_exchange import import_orchestrator, read_workbook

        with open(path, "rb") as fh:
            sheets = read_workbook(fh.read(), os.path.basename(path))
        summary = import_orchestrator().import_workbook(sheets, target_table=table)
        click.echo(json.dumps(summary.to_dict(), indent=2, default=str))
        if summary.total_failed:
            raise SystemExit(1)

    @app.cli.command("export-workbook")
    @click.argument("path", type=click.Path(dir_okay=False))
    @click.option("--table", default=None, help="Export only this table.")
    def export_workbook_cmd(path, table):
        """Export table data to a .xlsx workbook."""
        from buildtrack.services.data_exchange import export_engine, workbook_to_bytes

        engine = export_engine()
        if table:
            wb = engine.export_table(table)
        else:
            wb, summary = engine.export_all()
            for failure in summary.failed:
                logger.warning("Table %s not exported: %s", failure["table"], failure["error"])
        with open(path, "wb") as fh:
            fh.write(workbook_to_bytes(wb))
        click.echo(f"Workbook written to {path}")

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "BuildTrack data exchange"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def payload_too_large(e):
        from buildtrack.utils.errors import E, api_error
        limit = app.config.get("DATA_EXCHANGE_MAX_UPLOAD_BYTES")
        return api_error(E.PAYLOAD_TOO_LARGE, f"Upload exceeds the {limit} byte limit")

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        from buildtrack.utils.errors import E, api_error
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    return app
