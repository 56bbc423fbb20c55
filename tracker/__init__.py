"""
Issue Tracker — Workflow Engine
Flask Application Factory.

Usage:
    from tracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from tracker.config import config
from tracker.middleware.logging_config import configure_logging
from tracker.models import db

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


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
    config_cls = config[config_name]
    # ProductionConfig validates its environment on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)

    # ── Import all models so Alembic can detect them ─────────────────────
    from tracker.models import organization as _organization_models  # noqa: F401
    from tracker.models import workflow as _workflow_models          # noqa: F401
    from tracker.models import issue as _issue_models                # noqa: F401
    from tracker.models import audit as _audit_models                # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS; migrations own alterations) ──
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from tracker.blueprints.workflow_bp import workflow_bp

    app.register_blueprint(workflow_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-default-workflow")
    @click.option("--organization-id", type=int, required=True)
    def seed_default_workflow_cmd(organization_id):
        """Provision the default To Do / In Progress / Done workflow."""
        from tracker.services.workflow_provisioning import provision_default_workflow
        workflow = provision_default_workflow(organization_id)
        logger.info("Default workflow for organization %s: %s", organization_id, workflow.id)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
