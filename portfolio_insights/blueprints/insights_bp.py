"""
Insights Blueprint — executive briefing.

Endpoints:
    POST /api/v1/insights/briefing?days=7|14|30|60|all
        Body: already-resolved signal snapshot for the in-scope projects
        (project_ids, wbs_documents, flow, approvals, feeds/activity,
        change_requests, wbs).
    GET  /api/v1/insights/rules
        Warning rule catalogue and current thresholds.
"""

import logging

from flask import Blueprint, jsonify, request

from portfolio_insights.blueprints import window_param
from portfolio_insights.core.exceptions import ValidationError
from portfolio_insights.services.briefing_service import BriefingSnapshot, build_briefing
from portfolio_insights.services.warning_rules import WarningRules
from portfolio_insights.utils.errors import E, api_error, from_validation_error
from portfolio_insights.utils.helpers import utc_now

logger = logging.getLogger(__name__)

insights_bp = Blueprint("insights", __name__, url_prefix="/api/v1/insights")


@insights_bp.route("/briefing", methods=["POST"])
def briefing():
    """Reduce a signal snapshot into the ranked insight list."""
    body = request.get_json(silent=True)
    if body is None:
        return api_error(E.VALIDATION_REQUIRED, "JSON body is required")

    now = utc_now()
    try:
        snapshot = BriefingSnapshot.from_payload(body, days_param=window_param(body), now=now)
    except ValidationError as exc:
        return from_validation_error(exc)

    result = build_briefing(snapshot, now=now)
    logger.debug(
        "Briefing served: %d insight(s)", len(result.insights),
        extra={"window": snapshot.days_param, "project_count": len(snapshot.project_ids)},
    )
    resp = jsonify({"ok": True, **result.to_dict()})
    resp.headers["Cache-Control"] = "no-store, max-age=0"
    return resp, 200


@insights_bp.route("/rules", methods=["GET"])
def rules():
    """List warning rules and thresholds."""
    return jsonify({
        "rules": WarningRules.list_rules(),
        "thresholds": WarningRules.get_all_thresholds(),
    }), 200
