"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in portfolio_insights/__init__.py with no
default limits; this module applies limits per route category.

Usage:
    from portfolio_insights.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Insights endpoints: INSIGHTS_RATE_LIMIT (default 60/minute)
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    insights_limit = app.config.get("INSIGHTS_RATE_LIMIT", "60/minute")
    bp = app.blueprints.get("insights")
    if bp:
        limiter.limit(insights_limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — insights: %s", insights_limit)

    @app.errorhandler(429)
    def rate_limited(e):
        return {"ok": False, "error": "Too many requests", "retry_after": e.description}, 429
