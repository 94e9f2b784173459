"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — engine self-check (empty snapshot reduces cleanly)
"""

import logging
import time

from flask import Blueprint, jsonify

from portfolio_insights.services.briefing_service import BriefingSnapshot, build_briefing

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness probe: 200 whenever the app is up."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Run a probe snapshot through the engine and report latency."""
    try:
        t0 = time.perf_counter()
        briefing = build_briefing(BriefingSnapshot(project_ids=["__probe__"]))
        engine_ms = (time.perf_counter() - t0) * 1000
        check = {"status": "ok", "latency_ms": round(engine_ms, 1), "insights": len(briefing.insights)}
        status = "ok"
    except Exception as exc:
        logger.error("Health check — engine failed: %s", exc)
        check = {"status": "error", "detail": str(exc)}
        status = "degraded"
    return jsonify({"status": status, "checks": {"engine": check}}), 200 if status == "ok" else 503
