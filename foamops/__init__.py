"""
Foam Ops — Flask Application Factory.

Usage:
    from foamops import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from foamops.config import config
from foamops.middleware.logging_config import configure_logging
from foamops.middleware.tenant_context import init_tenant_context
from foamops.middleware.timing import init_request_timing
from foamops.models import db

logger = logging.getLogger(__name__)


# ── SQLite connection setup (global engine events) ──────────────────────
# pysqlite's own transaction handling defers BEGIN until the first write,
# which lets two completions both read the same stock counters. Taking
# over BEGIN and issuing BEGIN IMMEDIATE makes every SQLite transaction
# hold the write lock from its first statement, so stock read-modify-write
# serializes the way SELECT ... FOR UPDATE does on PostgreSQL.


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _configure_sqlite_connection(dbapi_conn, connection_record):
    """Enable FK enforcement and manual transaction control for SQLite."""
    if "sqlite" in type(dbapi_conn).__module__:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@_sa_event.listens_for(_sa_engine.Engine, "begin")
def _sqlite_begin_immediate(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN IMMEDIATE")


migrate = Migrate()


def create_app(config_name=None, config_overrides=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        config_overrides: Optional mapping applied after the config class
                          (e.g. a per-test SQLALCHEMY_DATABASE_URI).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    if config_overrides:
        app.config.update(config_overrides)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_tenant_context(app)

    # ── Import all models so Alembic / create_all can see them ───────────
    from foamops.models import tenant as _tenant_models        # noqa: F401
    from foamops.models import job as _job_models              # noqa: F401
    from foamops.models import inventory as _inventory_models  # noqa: F401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from foamops.blueprints.health_bp import health_bp
    from foamops.blueprints.inventory_bp import inventory_bp
    from foamops.blueprints.jobs_bp import jobs_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(jobs_bp)
    app.register_blueprint(inventory_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("provision-tenant")
    @click.argument("name")
    @click.argument("slug")
    def provision_tenant_cmd(name, slug):
        """Create a tenant with an empty chemical pool and default settings."""
        from foamops.services.tenant_service import provision_tenant
        tenant = provision_tenant({"name": name, "slug": slug})
        click.echo(f"Provisioned tenant {tenant['slug']} (id={tenant['id']})")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
