"""
VIC Incident Tracker
Flask Application Factory.

Usage:
    from vic_tracker import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from vic_tracker.config import config
from vic_tracker.models import db
from vic_tracker.middleware.logging_config import configure_logging
from vic_tracker.middleware.timing import init_request_timing
from vic_tracker.middleware.jwt_auth import init_jwt_middleware
from vic_tracker.services.permission_service import init_permission_cache

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
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

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

    # ── Permission resolution cache (one per process) ────────────────────
    init_permission_cache(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id) ─────────────────────────
    init_jwt_middleware(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from vic_tracker.models import auth as _auth_models          # noqa: F401
    from vic_tracker.models import incident as _incident_models  # noqa: F401

    # ── Auto-create tables in development and tests ──────────────────────
    if app.config.get("DEBUG") or app.config.get("TESTING"):
        os.makedirs(app.instance_path, exist_ok=True)  # dev SQLite file lives here
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from vic_tracker.blueprints import register_error_handlers
    from vic_tracker.blueprints.access_bp import access_bp
    from vic_tracker.blueprints.incidents_bp import incidents_bp
    from vic_tracker.blueprints.work_orders_bp import work_orders_bp
    from vic_tracker.blueprints.roles_bp import roles_bp

    app.register_blueprint(access_bp)
    app.register_blueprint(incidents_bp)
    app.register_blueprint(work_orders_bp)
    app.register_blueprint(roles_bp)

    register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed permissions, roles, status/type catalogs, one VIC and one user per role."""
        from vic_tracker.services.seed_service import seed_demo_data
        counts = seed_demo_data()
        db.session.commit()
        click.echo(f"Seeded demo data: {counts}")

    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token_cmd(email):
        """Print an access token for an existing user (development only)."""
        from vic_tracker.models.auth import User
        from vic_tracker.services.jwt_service import generate_access_token
        user = User.query_active().filter_by(email=email).first()
        if user is None:
            raise click.ClickException(f"No active user with email {email}")
        click.echo(generate_access_token(user.id, user.role.name))

    return app
