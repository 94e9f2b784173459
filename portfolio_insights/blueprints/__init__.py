"""
Portfolio Insights
Blueprint registry.
"""

from flask import request

from portfolio_insights.utils.helpers import clamp_days


def window_param(body: dict | None = None):
    """Resolve the reporting window for a request.

    Query param ``days`` wins over a ``days`` key in the JSON body.
    Accepted values: 7, 14, 30, 60 or "all"; anything else falls back to 7.
    """
    raw = request.args.get("days")
    if raw is None and isinstance(body, dict):
        raw = body.get("days")
    return clamp_days(raw)
