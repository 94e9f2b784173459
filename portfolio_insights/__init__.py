"""
Portfolio Insights
Flask Application Factory.

Usage:
    from portfolio_insights import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import json
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from portfolio_insights.config import config
from portfolio_insights.middleware.logging_config import configure_logging
from portfolio_insights.middleware.rate_limiter import init_rate_limits
from portfolio_insights.middleware.timing import init_request_timing
from portfolio_insights.utils.errors import E, api_error

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-blueprint limits only; storage from RATELIMIT_STORAGE_URI
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

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Request timing ───────────────────────────────────────────────────
    init_request_timing(app)

    # ── Extensions ───────────────────────────────────────────────────────
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request guards (Content-Type on mutating API calls) ──────────────
    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Blueprints ───────────────────────────────────────────────────────
    from portfolio_insights.blueprints.health_bp import health_bp
    from portfolio_insights.blueprints.insights_bp import insights_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(insights_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("briefing")
    @click.argument("snapshot", type=click.File("r"))
    @click.option("--days", default=None, help="Reporting window: 7, 14, 30, 60 or all.")
    def briefing_cmd(snapshot, days):
        """Build the insight list for a JSON snapshot file."""
        from portfolio_insights.services.briefing_service import BriefingSnapshot, build_briefing
        from portfolio_insights.utils.helpers import utc_now

        now = utc_now()
        snap = BriefingSnapshot.from_payload(json.load(snapshot), days_param=days, now=now)
        click.echo(json.dumps(build_briefing(snap, now=now).to_dict(), indent=2, ensure_ascii=False))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"ok": False, "error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"ok": False, "error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"ok": False, "error": e.description}, 415

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
