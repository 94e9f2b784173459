"""
Executive narrative — rendered only from the ranked warning list.
"""

import pytest

from portfolio_insights.services.narrative import (
    DEFAULT_ACTION,
    action_for,
    build_executive_body,
)
from portfolio_insights.services.warning_rules import Severity, Warning, WarningKind


def _w(kind, severity, title=None):
    return Warning(kind, severity, title or f"{kind.value} title", f"{kind.value} detail")


class TestBuildExecutiveBody:

    def test_empty_is_stable_message(self):
        body = build_executive_body(30, [])
        assert body.startswith("AI Predictions & Warnings (Next 30 Days)")
        assert "No major risks detected" in body
        assert "Maintain cadence" in body

    def test_high_lines_before_medium_lines(self):
        warnings = [
            _w(WarningKind.BLOCKERS, Severity.MEDIUM, "Blockers"),
            _w(WarningKind.BOTTLENECK, Severity.HIGH, "Bottleneck"),
        ]
        body = build_executive_body(14, warnings)
        assert body.index("🔴 Bottleneck") < body.index("🟡 Blockers")
        assert "\n   bottleneck detail" in body

    def test_info_warnings_not_narrated(self):
        warnings = [
            _w(WarningKind.APPROVALS, Severity.MEDIUM, "Approvals"),
            _w(WarningKind.WBS_QUALITY, Severity.INFO, "Quality"),
        ]
        body = build_executive_body(7, warnings)
        assert "Approvals" in body
        assert "Quality" not in body

    def test_single_action_line(self):
        warnings = [_w(WarningKind.BLOCKERS, Severity.HIGH), _w(WarningKind.APPROVALS, Severity.HIGH)]
        body = build_executive_body(30, warnings)
        assert body.count("Action:") == 1
        assert body.rstrip().endswith("Escalate blockers and assign owners to at-risk items immediately.")

    def test_action_keyed_on_top_kind_not_severity(self):
        """An info-severity top warning still selects the action."""
        warnings = [_w(WarningKind.BLOCKERS, Severity.INFO), _w(WarningKind.APPROVALS, Severity.HIGH)]
        body = build_executive_body(30, warnings)
        assert "Escalate blockers" in body
        assert "Clear pending approvals" not in body


class TestActionFor:

    @pytest.mark.parametrize("kind,fragment", [
        (WarningKind.CYCLE_TIME_OUTLIERS, "Escalate blockers"),
        (WarningKind.BLOCKERS, "Escalate blockers"),
        (WarningKind.BOTTLENECK, "Reduce WIP limits"),
        (WarningKind.WIP_QUEUE_EXPANSION, "Reduce WIP limits"),
        (WarningKind.APPROVALS, "Clear pending approvals"),
        (WarningKind.WBS_QUALITY, "Improve effort estimates"),
    ])
    def test_kind_actions(self, kind, fragment):
        assert fragment in action_for(_w(kind, Severity.HIGH), 0)

    def test_throughput_quotes_slip_probability(self):
        text = action_for(_w(WarningKind.THROUGHPUT_FORECAST, Severity.HIGH), 72.6)
        assert "73% slip probability" in text

    def test_default_action(self):
        assert action_for(_w(WarningKind.FEED_CADENCE, Severity.MEDIUM), 0) == DEFAULT_ACTION
