"""
Portfolio Briefing Service

Assembles the ordered executive insight list for one request:

    1. ai-warning      ranked warnings + executive narrative
    2. cr-*            change-request backlog
    3. approvals-*     pending approvals
    4. wbs-*           effort gaps, stalled packages, schedule pulse / empty state
    5. all-clear       fallback when nothing else was produced

"Today" is captured once per call and threaded through every bucketing
step.

Usage:
    from portfolio_insights.services.briefing_service import BriefingSnapshot, build_briefing
    briefing = build_briefing(BriefingSnapshot.from_payload(body, days_param=30))
    briefing.to_dict()  # {"insights": [...], "meta": {...}}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from portfolio_insights.core.exceptions import ValidationError
from portfolio_insights.services.activity_signals import (
    FeedSignals,
    compute_feed_signals,
    count_pending_approvals,
)
from portfolio_insights.services.flow_signals import FlowAgg, FlowSignals, compute_flow_agg
from portfolio_insights.services.narrative import build_executive_body
from portfolio_insights.services.warning_rules import (
    THRESHOLDS,
    Severity,
    Warning,
    WarningInputs,
    build_flow_warnings,
)
from portfolio_insights.services.wbs_stats import WbsPortfolio, compute_portfolio_wbs
from portfolio_insights.utils.helpers import (
    DEFAULT_WINDOW,
    build_href,
    clamp_days,
    href_days,
    num,
    safe_list,
    uniq_strings,
    utc_today,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Insight:
    """One executive-facing finding."""
    id: str
    severity: Severity
    title: str
    body: str
    href: str | None = None
    meta: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "body": self.body,
            "href": self.href,
            "meta": self.meta,
        }


@dataclass(frozen=True)
class ChangeRequestCounts:
    open_total: int = 0
    hi_total: int = 0
    stale_total: int = 0


@dataclass(frozen=True)
class BriefingSnapshot:
    """Already-resolved signals for the in-scope projects."""
    project_ids: list = field(default_factory=list)
    days_param: object = DEFAULT_WINDOW
    wbs_documents: list = field(default_factory=list)
    flow: FlowSignals = field(default_factory=FlowSignals.unavailable)
    approvals_pending: int = 0
    feeds: FeedSignals = field(default_factory=FeedSignals)
    change_requests: ChangeRequestCounts = field(default_factory=ChangeRequestCounts)
    wbs_stalled: int = 0
    rpc_data_missing: bool = False

    @property
    def days(self) -> int | None:
        """Forward WBS horizon; None for the unbounded "all" window."""
        return None if self.days_param == "all" else self.days_param

    @classmethod
    def from_payload(cls, payload, days_param=None, now: datetime | None = None) -> "BriefingSnapshot":
        """Build a snapshot from a JSON request body.

        Raises:
            ValidationError: if the body or one of its collections has the
                wrong top-level shape. Inner values are coerced, not rejected.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        for key in ("project_ids", "wbs_documents"):
            if key in payload and payload[key] is not None and not isinstance(payload[key], list):
                raise ValidationError(f"{key} must be a list", details={key: "expected a list"})

        project_ids = uniq_strings(payload.get("project_ids") or [])
        window = clamp_days(days_param if days_param is not None else payload.get("days"))

        if "approval_steps" in payload or "approval_artifacts" in payload:
            approvals = count_pending_approvals(
                safe_list(payload.get("approval_steps")) if "approval_steps" in payload else None,
                safe_list(payload.get("approval_artifacts")),
            )
        else:
            approvals = max(0, num(payload.get("approvals_pending")))

        activity = payload.get("activity")
        if isinstance(activity, dict):
            feeds = compute_feed_signals(
                project_ids,
                activity.get("table"),
                safe_list(activity.get("rows")),
                activity.get("project_created_at") if isinstance(activity.get("project_created_at"), dict) else None,
                now=now,
            )
        else:
            feeds = FeedSignals.from_payload(payload.get("feeds"))

        cr = payload.get("change_requests") if isinstance(payload.get("change_requests"), dict) else {}
        wbs_rpc = payload.get("wbs") if isinstance(payload.get("wbs"), dict) else {}

        return cls(
            project_ids=project_ids,
            days_param=window,
            wbs_documents=safe_list(payload.get("wbs_documents")),
            flow=FlowSignals.from_payload(payload.get("flow")),
            approvals_pending=approvals,
            feeds=feeds,
            change_requests=ChangeRequestCounts(
                open_total=num(cr.get("open_total")),
                hi_total=num(cr.get("hi_total")),
                stale_total=num(cr.get("stale_total")),
            ),
            wbs_stalled=num(wbs_rpc.get("stalled_inprogress")),
            rpc_data_missing=bool(payload.get("rpc_data_missing", False)),
        )


@dataclass(frozen=True)
class Briefing:
    insights: list[Insight]
    meta: dict

    def to_dict(self) -> dict:
        return {"insights": [i.to_dict() for i in self.insights], "meta": self.meta}


# ═════════════════════════════════════════════════════════════════════════════
# Links
# ═════════════════════════════════════════════════════════════════════════════

def wbs_list_href(params: dict | None = None) -> str:
    return build_href("/artifacts", {"type": "wbs", "view": "list", **(params or {})})


def changes_href(params: dict | None = None) -> str:
    return build_href("/changes", params)


def wbs_sample_href(wbs: WbsPortfolio) -> str | None:
    """Deep link to the first document with an effort gap, if known."""
    if wbs.sample_project_id and wbs.sample_artifact_id:
        return build_href(
            f"/projects/{wbs.sample_project_id}/artifacts/{wbs.sample_artifact_id}",
            {"focus": "wbs"},
        )
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Insight builders
# ═════════════════════════════════════════════════════════════════════════════

def build_ai_warning_insight(days_param, warnings: list[Warning], agg: FlowAgg, extra_meta: dict | None = None) -> Insight:
    """Wrap ranked warnings as the ai-warning insight.

    Severity and narrative both come from ``warnings``: the severity is
    that of the top-ranked warning (info when there are none).
    """
    link_days = href_days(days_param)
    severity = warnings[0].severity if warnings else Severity.INFO
    meta = {
        "window": days_param,
        "flow_agg": agg.summary(),
        "warnings": [w.to_dict() for w in warnings],
    }
    meta.update(extra_meta or {})
    return Insight(
        id="ai-warning",
        severity=severity,
        title=f"AI prediction & warnings (next {link_days} days)",
        body=build_executive_body(link_days, warnings, agg.slip_prob_max),
        href=build_href("/insights/ai-warning", {"days": link_days}),
        meta=meta,
    )


def build_change_request_insights(cr: ChangeRequestCounts) -> list[Insight]:
    out = []
    if cr.hi_total > 0:
        out.append(Insight(
            id="cr-hi",
            severity=Severity.HIGH if cr.hi_total >= THRESHOLDS["cr_hi_high_min"] else Severity.MEDIUM,
            title="High/Critical change requests require attention",
            body=(
                f"{cr.hi_total} high/critical change request(s) are open (out of {cr.open_total} open). "
                f"Prioritise decisioning and impact mitigation."
            ),
            href=changes_href({"priority": "High,Critical"}),
            meta={"crHi": cr.hi_total, "crOpen": cr.open_total},
        ))
    elif cr.open_total > 0:
        out.append(Insight(
            id="cr-open",
            severity=Severity.INFO,
            title="Change workload in progress",
            body=f"{cr.open_total} open change request(s). Keep flow moving with clear owners and decision dates.",
            href=changes_href(),
            meta={"crOpen": cr.open_total},
        ))
    if cr.stale_total > 0:
        out.append(Insight(
            id="cr-stale",
            severity=Severity.MEDIUM,
            title="Stale change requests detected",
            body=(
                f"{cr.stale_total} change request(s) haven't been updated recently. "
                f"Recommend nudges, decision deadlines, or close-out."
            ),
            href=changes_href({"stale": True}),
            meta={"crStale": cr.stale_total},
        ))
    return out


def build_approvals_insight(days_param, approvals_pending: int) -> Insight | None:
    if approvals_pending <= 0:
        return None
    return Insight(
        id="approvals-pending",
        severity=Severity.HIGH if approvals_pending >= THRESHOLDS["approvals_high_count"] else Severity.MEDIUM,
        title="Pending approvals",
        body=f"{approvals_pending} approval(s) are pending. Clear blockers to protect schedule and cost decisions.",
        href=build_href("/approvals", {"days": href_days(days_param)}),
        meta={"approvalsPending": approvals_pending},
    )


def wbs_pulse_severity(wbs: WbsPortfolio) -> Severity:
    if wbs.overdue > 0:
        return Severity.HIGH
    if wbs.due_7 + wbs.due_14 > 0:
        return Severity.MEDIUM
    return Severity.INFO


def build_wbs_insights(days_param, wbs: WbsPortfolio, stalled: int, rpc_data_missing: bool = False) -> list[Insight]:
    """Effort gaps, stalled packages and the schedule pulse (or empty state)."""
    if wbs.total_leaves <= 0:
        return [Insight(
            id="wbs-empty",
            severity=Severity.INFO,
            title="WBS not started",
            body=(
                "No WBS work packages found yet in this selection. Creating a WBS improves "
                "delivery control and progress visibility."
            ),
            href=wbs_list_href(),
            meta={"wbsTotalLeaves": 0},
        )]

    out = []
    if wbs.missing_effort > 0:
        window_note = "" if days_param == "all" else " (in the selected window)"
        out.append(Insight(
            id="wbs-missing-effort",
            severity=Severity.MEDIUM,
            title="WBS effort gaps",
            body=(
                f"{wbs.missing_effort} WBS item(s) are missing estimated effort{window_note}. "
                f"Fill this to improve schedule and capacity accuracy."
            ),
            href=wbs_sample_href(wbs) or wbs_list_href({"missingEffort": True}),
            meta={
                "wbsMissingEffort": wbs.missing_effort,
                "wbsTotalLeaves": wbs.total_leaves,
                "sample_project_id": wbs.sample_project_id,
                "sample_artifact_id": wbs.sample_artifact_id,
            },
        ))
    if stalled > 0:
        out.append(Insight(
            id="wbs-stalled",
            severity=Severity.MEDIUM,
            title="Stalled work packages",
            body=(
                f"{stalled} WBS item(s) have been in progress without updates for 14+ days. "
                f"Validate blockers and reset ownership."
            ),
            href=wbs_list_href({"stalled": True}),
            meta={"wbsStalled": stalled, "rpc_data_present": not rpc_data_missing},
        ))

    # overdue is windowed; the upcoming buckets always look forward from today
    overdue_note = ""
    if wbs.overdue > 0:
        if days_param == "all":
            overdue_note = f" • ⚠️ Overdue: {wbs.overdue}"
        else:
            overdue_note = f" • ⚠️ Overdue within {days_param}d window: {wbs.overdue}"
    if wbs.due_7 + wbs.due_14 + wbs.due_30 + wbs.due_60 > 0:
        upcoming = (
            f"Upcoming (absolute): {wbs.due_7} in 7d • {wbs.due_14} in 8–14d • "
            f"{wbs.due_30} in 15–30d • {wbs.due_60} in 31–60d."
        )
    else:
        upcoming = "No items due in the next 60 days."

    out.append(Insight(
        id="wbs-pulse",
        severity=wbs_pulse_severity(wbs),
        title="WBS schedule pulse",
        body=f"{wbs.done} of {wbs.total_leaves} work package(s) done — {wbs.remaining} remaining{overdue_note}.\n{upcoming}",
        href=wbs_list_href({"days": days_param}),
        meta={
            "wbsTotalLeaves": wbs.total_leaves,
            "wbsDone": wbs.done,
            "wbsRemaining": wbs.remaining,
            "wbsOverdue": wbs.overdue,
            "wbsDue7": wbs.due_7,
            "wbsDue14": wbs.due_14,
            "wbsDue30": wbs.due_30,
            "wbsDue60": wbs.due_60,
        },
    ))
    return out


ALL_CLEAR = Insight(
    id="all-clear",
    severity=Severity.INFO,
    title="All clear",
    body="No major governance signals detected right now. Keep momentum and check back later.",
    href=None,
)

NO_PROJECTS = Insight(
    id="no-projects",
    severity=Severity.INFO,
    title="No projects in scope",
    body="You don't have any active project memberships yet. Join an active project to see insights.",
    href="/projects",
)


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════

def build_briefing(snapshot: BriefingSnapshot, now: datetime | None = None) -> Briefing:
    """Reduce one snapshot of signals into the ordered insight list."""
    days_param = snapshot.days_param
    if not snapshot.project_ids:
        return Briefing(insights=[NO_PROJECTS], meta={"days": days_param, "projectCount": 0})

    today = utc_today(now)

    wbs = compute_portfolio_wbs(snapshot.wbs_documents, snapshot.days, today)
    agg = compute_flow_agg(snapshot.flow)
    warnings = build_flow_warnings(WarningInputs(
        days_param=days_param,
        agg=agg,
        approvals_pending=snapshot.approvals_pending,
        feeds=snapshot.feeds,
        wbs_missing_effort=wbs.missing_effort,
        wbs_stalled=snapshot.wbs_stalled,
        wbs_sample_href=wbs_sample_href(wbs),
    ))

    insights: list[Insight] = [build_ai_warning_insight(days_param, warnings, agg, {
        "rpc_data_missing": snapshot.rpc_data_missing,
        "stale_count_limited": snapshot.feeds.limited,
        "flow_rpc": snapshot.flow.status(),
    })]
    insights.extend(build_change_request_insights(snapshot.change_requests))
    approvals = build_approvals_insight(days_param, snapshot.approvals_pending)
    if approvals:
        insights.append(approvals)
    insights.extend(build_wbs_insights(days_param, wbs, snapshot.wbs_stalled, snapshot.rpc_data_missing))

    if not insights:
        insights.append(ALL_CLEAR)

    logger.info(
        "Briefing built: projects=%d window=%s warnings=%d insights=%d top=%s",
        len(snapshot.project_ids), days_param, len(warnings), len(insights),
        warnings[0].kind.value if warnings else None,
    )

    return Briefing(insights=insights, meta={
        "days": days_param,
        "today": today.isoformat(),
        "projectCount": len(snapshot.project_ids),
        "rpc_data_missing": snapshot.rpc_data_missing,
        "wbs_stalled_from_rpc": not snapshot.rpc_data_missing,
        "wbs_computed": wbs.to_dict(),
        "approvals_pending": snapshot.approvals_pending,
        "feeds": snapshot.feeds.to_dict(),
        "flow_warning_signals": snapshot.flow.status(),
    })
