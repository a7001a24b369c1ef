"""
statusdesk
Flask Application Factory.

Usage:
    from statusdesk import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from statusdesk.config import config
from statusdesk.middleware.jwt_auth import init_jwt_middleware
from statusdesk.middleware.logging_config import configure_logging
from statusdesk.middleware.rate_limiter import init_rate_limits
from statusdesk.middleware.security_headers import init_security_headers
from statusdesk.middleware.timing import init_request_timing
from statusdesk.models import db
from statusdesk.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
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
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Error handlers (service exceptions → JSON envelope) ──────────────
    register_error_handlers(app)

    # ── Security headers / request timing / JWT ──────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from statusdesk.models import activity as _activity_models    # noqa: F401
    from statusdesk.models import auth as _auth_models            # noqa: F401
    from statusdesk.models import board as _board_models          # noqa: F401
    from statusdesk.models import finance as _finance_models      # noqa: F401
    from statusdesk.models import timesheet as _timesheet_models  # noqa: F401

    # ── Auto-create tables outside production (migrations own prod schema) ──
    if config_name != "production" and app.config.get("AUTO_CREATE_TABLES", True):
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from statusdesk.blueprints.activity_bp import activity_bp
    from statusdesk.blueprints.admin_bp import admin_bp
    from statusdesk.blueprints.auth_bp import auth_bp
    from statusdesk.blueprints.board_bp import board_bp
    from statusdesk.blueprints.finance_bp import finance_bp
    from statusdesk.blueprints.health_bp import health_bp
    from statusdesk.blueprints.public_bp import public_bp
    from statusdesk.blueprints.report_bp import report_bp
    from statusdesk.blueprints.timesheet_bp import timesheet_bp
    from statusdesk.blueprints.user_bp import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(timesheet_bp)
    app.register_blueprint(report_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(board_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(health_bp)

    init_rate_limits(app, limiter)

    # ── Scheduled jobs ───────────────────────────────────────────────────
    from statusdesk.services import scheduled_jobs as _scheduled_jobs  # noqa: F401
    from statusdesk.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("purge-activity")
    def purge_activity_cmd():
        """Delete activity older than the retention window."""
        outcome = SchedulerService.run_job("activity_retention_sweep")
        logger.info("activity_retention_sweep: %s", outcome)

    @app.cli.command("purge-timelogs")
    def purge_timelogs_cmd():
        """Remove soft-deleted time logs past their tombstone window."""
        outcome = SchedulerService.run_job("timelog_tombstone_purge")
        logger.info("timelog_tombstone_purge: %s", outcome)

    return app
