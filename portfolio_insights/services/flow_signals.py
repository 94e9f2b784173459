"""
Flow-Signal Aggregator

Reduces per-project flow telemetry (cycle-time outliers, blocked items,
bottleneck/WIP, 30-day forecast) into one portfolio aggregate.

The bottleneck stage is winner-take-all: the project with the highest
stage WIP share (first seen wins ties) supplies the stage name, the stage
WIP and its own total WIP. The portfolio-wide WIP sum is tracked in a
separate accumulator and is never used as the ratio denominator.

Usage:
    from portfolio_insights.services.flow_signals import FlowSignals, compute_flow_agg
    agg = compute_flow_agg(FlowSignals.from_payload(raw))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from portfolio_insights.utils.helpers import clamp_pct, num, pct, safe_json

logger = logging.getLogger(__name__)

DEFAULT_FLOW_DAYS = 30


@dataclass(frozen=True)
class FlowSignals:
    """Flow telemetry bundle as delivered by the upstream collector."""
    ok: bool = False
    days: int = DEFAULT_FLOW_DAYS
    projects: list = field(default_factory=list)
    error: str | None = None

    @classmethod
    def unavailable(cls, error: str | None = None, days: int = DEFAULT_FLOW_DAYS) -> "FlowSignals":
        return cls(ok=False, days=days, projects=[], error=error)

    @classmethod
    def from_payload(cls, raw, days: int = DEFAULT_FLOW_DAYS) -> "FlowSignals":
        """Normalize a collector payload; anything unusable means "no signal"."""
        data = safe_json(raw)
        if not isinstance(data, dict):
            return cls.unavailable("flow signals missing", days)
        if data.get("ok") is False:
            return cls.unavailable(data.get("error") or "flow signals unavailable", num(data.get("days"), days))
        projects = data.get("projects")
        return cls(
            ok=True,
            days=num(data.get("days"), days),
            projects=projects if isinstance(projects, list) else [],
            error=None,
        )

    def status(self) -> dict:
        return {"ok": self.ok, "days": self.days, "error": self.error}


@dataclass
class FlowAgg:
    """Portfolio aggregate of flow telemetry."""
    outlier_count: float = 0
    cycle_variance_pct: float = 0
    blocked_count: float = 0
    blocked_open_count: float = 0
    blocked_ratio_pct: float = 0
    blocked_long_count: float = 0
    top_stage: str | None = None
    top_stage_share_pct: float = 0
    top_stage_wip: float = 0
    top_project_total_wip: float = 0
    portfolio_total_wip: float = 0
    due_30_open: float = 0
    expected_done_30: float = 0
    slip_prob_max: int = 0

    def summary(self) -> dict:
        """Rounded, camelCase view used in insight meta."""
        return {
            "outlierCount": self.outlier_count,
            "cycleVariancePct": pct(self.cycle_variance_pct),
            "blockedCount": self.blocked_count,
            "blockedOpenCount": self.blocked_open_count,
            "blockedRatioPct": pct(self.blocked_ratio_pct),
            "blockedLongCount": self.blocked_long_count,
            "topStage": self.top_stage,
            "topStageSharePct": pct(self.top_stage_share_pct),
            "topStageWip": self.top_stage_wip,
            "topProjectTotalWip": self.top_project_total_wip,
            "portfolioTotalWip": self.portfolio_total_wip,
            "due30Open": self.due_30_open,
            "expectedDone30": pct(self.expected_done_30),
            "slipProbMax": clamp_pct(self.slip_prob_max),
        }


def _section(record, key: str) -> dict:
    value = record.get(key) if isinstance(record, dict) else None
    return value if isinstance(value, dict) else {}


def compute_flow_agg(flow: FlowSignals) -> FlowAgg:
    """Reduce a FlowSignals bundle into a FlowAgg.

    A failed or empty bundle gives the all-zero aggregate.
    """
    agg = FlowAgg()
    if not flow.ok or not flow.projects:
        if not flow.ok:
            logger.info("Flow signals unavailable: %s", flow.error or "no detail")
        return agg

    for project in flow.projects:
        agg.outlier_count += num(_section(project, "age_cycle_outliers").get("count"))

        blocked = _section(project, "blocked")
        agg.blocked_count += num(blocked.get("blocked_count"))
        agg.blocked_open_count += num(blocked.get("open_count"))
        agg.blocked_long_count += num(blocked.get("blocked_long_count"))

        bottleneck = _section(project, "bottleneck")
        share = num(bottleneck.get("top_stage_share"))
        project_total_wip = num(bottleneck.get("total_wip"))
        agg.portfolio_total_wip += project_total_wip
        if share > agg.top_stage_share_pct:
            agg.top_stage_share_pct = share
            stage = bottleneck.get("top_stage")
            agg.top_stage = str(stage) if stage else None
            agg.top_stage_wip = num(bottleneck.get("top_stage_wip"))
            agg.top_project_total_wip = project_total_wip

        forecast = _section(project, "forecast")
        agg.due_30_open += num(forecast.get("due_30_open"))
        agg.expected_done_30 += num(forecast.get("expected_done_30d"))
        agg.slip_prob_max = max(agg.slip_prob_max, clamp_pct(forecast.get("slip_probability")))

        variance = project.get("cycle_time_variance_pct") if isinstance(project, dict) else None
        if variance is not None:
            agg.cycle_variance_pct = max(agg.cycle_variance_pct, num(variance))

    if agg.blocked_open_count > 0:
        agg.blocked_ratio_pct = agg.blocked_count / agg.blocked_open_count * 100

    logger.debug(
        "Flow aggregate: projects=%d outliers=%s blocked=%s/%s top_stage=%s",
        len(flow.projects), agg.outlier_count, agg.blocked_count, agg.blocked_open_count, agg.top_stage,
    )
    return agg
