"""
Warning Rules Engine

Converts portfolio aggregates (flow, approvals, WBS hygiene, activity
cadence) into typed, severity-ranked Warning records.

Every rule is evaluated independently; a rule may emit zero, one or two
warnings. The result is sorted by the kind's fixed priority score, then by
severity rank. The narrative and the caller-visible severity are both
derived from this one ranked list.

Usage:
    from portfolio_insights.services.warning_rules import WarningInputs, build_flow_warnings
    warnings = build_flow_warnings(WarningInputs(days_param=30, agg=agg, ...))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from portfolio_insights.services.activity_signals import FeedSignals
from portfolio_insights.services.flow_signals import FlowAgg
from portfolio_insights.utils.helpers import (
    build_href,
    clamp_pct,
    href_days,
    pct,
    pretty_stage,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Data Classes
# ═════════════════════════════════════════════════════════════════════════════

class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.INFO: 1}


class WarningKind(str, Enum):
    CYCLE_TIME_OUTLIERS = "cycle_time_outliers"
    BLOCKERS = "blockers"
    BOTTLENECK = "bottleneck"
    WIP_QUEUE_EXPANSION = "wip_queue_expansion"
    THROUGHPUT_FORECAST = "throughput_forecast"
    LINKED_RISK_TO_DUE_MILESTONE = "linked_risk_to_due_milestone"
    APPROVALS = "approvals"
    WBS_QUALITY = "wbs_quality"
    FEED_CADENCE = "feed_cadence"


# Fixed per-kind priority: primary sort key, independent of severity
KIND_SCORES: dict[WarningKind, int] = {
    WarningKind.CYCLE_TIME_OUTLIERS: 100,
    WarningKind.BLOCKERS: 90,
    WarningKind.BOTTLENECK: 80,
    WarningKind.WIP_QUEUE_EXPANSION: 75,
    WarningKind.THROUGHPUT_FORECAST: 70,
    WarningKind.LINKED_RISK_TO_DUE_MILESTONE: 60,
    WarningKind.APPROVALS: 40,
    WarningKind.WBS_QUALITY: 35,
    WarningKind.FEED_CADENCE: 30,
}


@dataclass(frozen=True)
class Warning:
    """One ranked warning. Immutable once built."""
    kind: WarningKind
    severity: Severity
    title: str
    detail: str
    evidence: dict = field(default_factory=dict)
    href: str | None = None

    @property
    def score(self) -> int:
        return KIND_SCORES[self.kind]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "score": self.score,
            "title": self.title,
            "detail": self.detail,
            "evidence": dict(self.evidence),
            "href": self.href,
        }


@dataclass(frozen=True)
class WarningInputs:
    """Everything the rule table reads."""
    days_param: Any
    agg: FlowAgg
    approvals_pending: int = 0
    feeds: FeedSignals = field(default_factory=FeedSignals)
    wbs_missing_effort: int = 0
    wbs_stalled: int = 0
    wbs_sample_href: str | None = None

    @property
    def link_days(self) -> int:
        return href_days(self.days_param)


# ═════════════════════════════════════════════════════════════════════════════
# Threshold Configuration
# ═════════════════════════════════════════════════════════════════════════════

THRESHOLDS: dict[str, Any] = {
    # Cycle-time outliers
    "outlier_variance_high_pct": 25,
    "outlier_count_high": 5,

    # Blockers (blocked / open ratio)
    "blocked_ratio_high_pct": 15,
    "blocked_ratio_medium_pct": 10,

    # Bottleneck stage share of WIP
    "bottleneck_high_pct": 55,
    "bottleneck_medium_pct": 40,

    # Queue expansion: share and minimum WIP of the winning project
    "queue_expansion_share_pct": 60,
    "queue_expansion_min_wip": 10,

    # Throughput forecast slip probability
    "slip_high_pct": 70,
    "slip_medium_pct": 45,

    # Approvals backlog
    "approvals_high_count": 10,

    # Change requests (insight layer)
    "cr_hi_high_min": 5,
}


# ═════════════════════════════════════════════════════════════════════════════
# Rule Definitions
# ═════════════════════════════════════════════════════════════════════════════

def _insight_href(inp: WarningInputs) -> str:
    return build_href("/insights/ai-warning", {"days": inp.link_days})


def _rule_cycle_time_outliers(inp: WarningInputs) -> list[Warning]:
    """Aged work items beyond twice the average cycle time."""
    agg = inp.agg
    if agg.outlier_count <= 0:
        return []
    var_flag = agg.cycle_variance_pct >= THRESHOLDS["outlier_variance_high_pct"]
    high = var_flag or agg.outlier_count >= THRESHOLDS["outlier_count_high"]
    detail = (
        f"{agg.outlier_count} work item(s) are aged >2× average cycle time "
        f"and due within {inp.link_days}d."
    )
    if var_flag:
        detail += f" Cycle-time variance is up {pct(agg.cycle_variance_pct)}%."
    return [Warning(
        kind=WarningKind.CYCLE_TIME_OUTLIERS,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        title="Cycle-time outliers (early slip risk)",
        detail=detail,
        evidence={"outlierCount": agg.outlier_count, "cycleVariancePct": pct(agg.cycle_variance_pct)},
        href=_insight_href(inp),
    )]


def _rule_blockers(inp: WarningInputs) -> list[Warning]:
    """Blocked items accumulating against open work."""
    agg = inp.agg
    if agg.blocked_count <= 0 and agg.blocked_long_count <= 0:
        return []
    ratio = agg.blocked_ratio_pct
    if agg.blocked_long_count > 0 or ratio >= THRESHOLDS["blocked_ratio_high_pct"]:
        sev = Severity.HIGH
    elif ratio >= THRESHOLDS["blocked_ratio_medium_pct"]:
        sev = Severity.MEDIUM
    else:
        sev = Severity.INFO
    if agg.blocked_open_count > 0:
        detail = (
            f"{pct(ratio)}% of open items have been blocked in the last 30 days "
            f"({agg.blocked_count}/{agg.blocked_open_count}). Long-blocked: {agg.blocked_long_count}."
        )
    else:
        detail = (
            f"{agg.blocked_count} blocked item(s) detected in the last 30 days. "
            f"Long-blocked: {agg.blocked_long_count}."
        )
    return [Warning(
        kind=WarningKind.BLOCKERS,
        severity=sev,
        title="Blockers accumulating (stall risk)",
        detail=detail,
        evidence={
            "blockedCount": agg.blocked_count,
            "openCount": agg.blocked_open_count,
            "blockedRatio": pct(ratio),
            "blockedLongCount": agg.blocked_long_count,
        },
        href=_insight_href(inp),
    )]


def _rule_bottleneck(inp: WarningInputs) -> list[Warning]:
    """WIP concentrated in one stage; may also signal queue expansion.

    The ratio denominator is the winning project's own WIP, never the
    portfolio sum.
    """
    agg = inp.agg
    if not agg.top_stage or agg.top_project_total_wip <= 0:
        return []
    share = agg.top_stage_share_pct
    if share >= THRESHOLDS["bottleneck_high_pct"]:
        sev = Severity.HIGH
    elif share >= THRESHOLDS["bottleneck_medium_pct"]:
        sev = Severity.MEDIUM
    else:
        sev = Severity.INFO
    stage = pretty_stage(agg.top_stage)
    out = [Warning(
        kind=WarningKind.BOTTLENECK,
        severity=sev,
        title="Bottleneck risk (CFD/WIP concentration)",
        detail=(
            f'Stage "{stage}" holds {agg.top_stage_wip}/{agg.top_project_total_wip} ({pct(share)}%) '
            f"of its project's WIP (portfolio WIP: {agg.portfolio_total_wip}). "
            f"Review WIP limits and unblock upstream flow."
        ),
        evidence={
            "topStage": agg.top_stage,
            "topStageShare": pct(share),
            "topStageWip": agg.top_stage_wip,
            "topProjectTotalWip": agg.top_project_total_wip,
            "portfolioTotalWip": agg.portfolio_total_wip,
        },
        href=_insight_href(inp),
    )]

    if (share >= THRESHOLDS["queue_expansion_share_pct"]
            and agg.top_project_total_wip >= THRESHOLDS["queue_expansion_min_wip"]):
        out.append(Warning(
            kind=WarningKind.WIP_QUEUE_EXPANSION,
            severity=Severity.HIGH,
            title="Queue expansion in critical stage",
            detail=(
                f'WIP is heavily queued in "{stage}" ({pct(share)}% share). This typically '
                f"precedes downstream milestone slip unless capacity is rebalanced."
            ),
            evidence={
                "topStage": agg.top_stage,
                "topStageShare": pct(share),
                "topProjectTotalWip": agg.top_project_total_wip,
                "portfolioTotalWip": agg.portfolio_total_wip,
            },
            href=_insight_href(inp),
        ))
    return out


def _rule_throughput_forecast(inp: WarningInputs) -> list[Warning]:
    """Slip probability of commitments due in the next 30 days."""
    agg = inp.agg
    if agg.due_30_open <= 0:
        return []
    p = clamp_pct(agg.slip_prob_max)
    if p >= THRESHOLDS["slip_high_pct"]:
        sev = Severity.HIGH
    elif p >= THRESHOLDS["slip_medium_pct"]:
        sev = Severity.MEDIUM
    else:
        sev = Severity.INFO
    expected = pct(agg.expected_done_30)
    return [Warning(
        kind=WarningKind.THROUGHPUT_FORECAST,
        severity=sev,
        title="Throughput-based slip forecast",
        detail=(
            f"{p}% chance due-soon commitments slip (based on aging + throughput). "
            f"Due in 30d: {agg.due_30_open} • Expected throughput (30d): {expected}."
        ),
        evidence={"slip_probability": p, "due_30_open": agg.due_30_open, "expected_done_30d": expected},
        href=_insight_href(inp),
    )]


def _rule_approvals(inp: WarningInputs) -> list[Warning]:
    """Pending approvals that may turn into blockers."""
    n = inp.approvals_pending
    if n <= 0:
        return []
    return [Warning(
        kind=WarningKind.APPROVALS,
        severity=Severity.HIGH if n >= THRESHOLDS["approvals_high_count"] else Severity.MEDIUM,
        title="Approvals at risk of becoming blockers",
        detail=f"{n} approval(s) pending. Long waits inflate cycle time and increase slip probability.",
        evidence={"approvalsPending": n},
        href=build_href("/approvals", {"days": inp.link_days}),
    )]


def _rule_wbs_quality(inp: WarningInputs) -> list[Warning]:
    """Work packages without estimates, or stalled in progress."""
    missing, stalled = inp.wbs_missing_effort, inp.wbs_stalled
    if missing <= 0 and stalled <= 0:
        return []
    parts = []
    if missing > 0:
        parts.append(f"{missing} work package(s) have no effort estimate")
    if stalled > 0:
        parts.append(f"{stalled} have been in progress without updates for 14+ days")
    if stalled > 0 and missing <= 0:
        link = build_href("/artifacts", {"type": "wbs", "view": "list", "stalled": True})
    else:
        link = inp.wbs_sample_href or build_href(
            "/artifacts", {"type": "wbs", "view": "list", "missingEffort": True},
        )
    return [Warning(
        kind=WarningKind.WBS_QUALITY,
        severity=Severity.MEDIUM if stalled > 0 else Severity.INFO,
        title="WBS quality gaps (forecast accuracy risk)",
        detail="; ".join(parts) + ". Gaps here weaken schedule and capacity forecasts.",
        evidence={"wbsMissingEffort": missing, "wbsStalled": stalled},
        href=link,
    )]


def _rule_feed_cadence(inp: WarningInputs) -> list[Warning]:
    """Projects with no recorded activity in the last 7 days."""
    feeds = inp.feeds
    if not feeds.table or feeds.stale_projects_7d <= 0:
        return []
    return [Warning(
        kind=WarningKind.FEED_CADENCE,
        severity=Severity.MEDIUM,
        title="Delivery cadence risk (low activity)",
        detail=(
            f"{feeds.stale_projects_7d} project(s) have had no updates in 7 days. "
            f"Low signal often hides blockers and cycle-time creep."
        ),
        evidence=feeds.to_dict(),
        href=build_href("/activity", {"scope": "stale", "days": 7}),
    )]


# Evaluation order; ranking is applied afterwards
_RULES: tuple[Callable[[WarningInputs], list[Warning]], ...] = (
    _rule_cycle_time_outliers,
    _rule_blockers,
    _rule_bottleneck,
    _rule_throughput_forecast,
    _rule_approvals,
    _rule_wbs_quality,
    _rule_feed_cadence,
)


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════

def rank_warnings(warnings: list[Warning]) -> list[Warning]:
    """Sort by score (desc), then severity rank (desc). Stable for equal keys."""
    return sorted(warnings, key=lambda w: (-w.score, -w.severity.rank))


def build_flow_warnings(inp: WarningInputs) -> list[Warning]:
    """Run the rule table and return the ranked warning list."""
    warnings: list[Warning] = []
    for rule in _RULES:
        warnings.extend(rule(inp))
    ranked = rank_warnings(warnings)
    logger.debug("Warnings built: %s", [w.kind.value for w in ranked])
    return ranked


class WarningRules:
    """Threshold accessors and rule catalogue."""

    @staticmethod
    def get_threshold(key: str, default=None):
        """Read a single threshold value."""
        return THRESHOLDS.get(key, default)

    @staticmethod
    def get_all_thresholds() -> dict:
        return dict(THRESHOLDS)

    @staticmethod
    def update_threshold(key: str, value) -> bool:
        """Update a threshold at runtime (valid until restart)."""
        if key in THRESHOLDS:
            THRESHOLDS[key] = value
            return True
        return False

    @staticmethod
    def list_rules() -> list[dict]:
        """Rule names and one-line descriptions, in evaluation order."""
        return [
            {
                "rule": fn.__name__.removeprefix("_rule_"),
                "description": (fn.__doc__ or "").strip().split("\n")[0],
            }
            for fn in _RULES
        ]
