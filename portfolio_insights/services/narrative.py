"""
Executive narrative for the AI warning insight.

The only inputs are the already-ranked warning list and the one aggregate
figure quoted verbatim (slip probability). Severity is never recomputed
here; the action line follows the top-ranked warning's kind.
"""

from __future__ import annotations

from portfolio_insights.services.warning_rules import Severity, Warning, WarningKind
from portfolio_insights.utils.helpers import clamp_pct

HIGH_MARKER = "🔴"
MEDIUM_MARKER = "🟡"
ACTION_MARKER = "👉"

DEFAULT_ACTION = "Review flagged items and assign owners."

STABLE_BODY = (
    "• No major risks detected\n"
    "Delivery is currently stable.\n\n"
    f"{ACTION_MARKER} Action: Maintain cadence and monitor early signals."
)


def heading(window_label) -> str:
    return f"AI Predictions & Warnings (Next {window_label} Days)"


def action_for(top: Warning, slip_probability) -> str:
    """Pick the action line from the top-ranked warning's kind."""
    kind = top.kind
    if kind in (WarningKind.BLOCKERS, WarningKind.CYCLE_TIME_OUTLIERS):
        return "Escalate blockers and assign owners to at-risk items immediately."
    if kind in (WarningKind.BOTTLENECK, WarningKind.WIP_QUEUE_EXPANSION):
        return "Reduce WIP limits and rebalance capacity to unblock downstream flow."
    if kind == WarningKind.THROUGHPUT_FORECAST:
        return (
            f"Review delivery commitments — {clamp_pct(slip_probability)}% "
            f"slip probability on upcoming milestones."
        )
    if kind == WarningKind.APPROVALS:
        return "Clear pending approvals to prevent cycle-time inflation."
    if kind == WarningKind.WBS_QUALITY:
        return "Improve effort estimates and refresh stalled work packages to restore forecast accuracy."
    return DEFAULT_ACTION


def build_executive_body(window_label, warnings: list[Warning], slip_probability=0) -> str:
    """Render the multi-paragraph executive text.

    Args:
        window_label: Reporting window shown in the heading.
        warnings: Ranked output of ``build_flow_warnings``.
        slip_probability: Portfolio max slip probability, quoted in the
            throughput action line.
    """
    if not warnings:
        return f"{heading(window_label)}\n\n{STABLE_BODY}"

    lines = [
        f"{HIGH_MARKER} {w.title}\n   {w.detail}"
        for w in warnings if w.severity == Severity.HIGH
    ]
    lines += [
        f"{MEDIUM_MARKER} {w.title}\n   {w.detail}"
        for w in warnings if w.severity == Severity.MEDIUM
    ]
    lines.append(f"{ACTION_MARKER} Action: {action_for(warnings[0], slip_probability)}")
    return f"{heading(window_label)}\n\n" + "\n\n".join(lines).strip()
