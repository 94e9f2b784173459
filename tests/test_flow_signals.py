"""
Flow-signal aggregation — sums, maxima and the winner-take-all bottleneck.
"""

from portfolio_insights.services.flow_signals import FlowAgg, FlowSignals, compute_flow_agg


def _project(**sections):
    return sections


class TestFlowSignalsPayload:

    def test_ok_payload(self):
        flow = FlowSignals.from_payload({"ok": True, "days": 30, "projects": [{}]})
        assert flow.ok is True
        assert flow.projects == [{}]

    def test_missing_payload_is_unavailable(self):
        flow = FlowSignals.from_payload(None)
        assert flow.ok is False
        assert flow.error

    def test_failed_payload_keeps_error(self):
        flow = FlowSignals.from_payload({"ok": False, "error": "flow RPC missing"})
        assert flow.ok is False
        assert flow.status() == {"ok": False, "days": 30, "error": "flow RPC missing"}

    def test_json_text_and_bad_projects(self):
        flow = FlowSignals.from_payload('{"days": 14, "projects": "nope"}')
        assert flow.ok is True
        assert flow.days == 14
        assert flow.projects == []


class TestComputeFlowAgg:

    def test_not_ok_is_all_zero(self):
        agg = compute_flow_agg(FlowSignals(ok=False, projects=[{"blocked": {"blocked_count": 5}}]))
        assert agg == FlowAgg()

    def test_empty_projects_all_zero(self):
        assert compute_flow_agg(FlowSignals(ok=True, projects=[])) == FlowAgg()

    def test_sums_and_maxima(self):
        flow = FlowSignals(ok=True, projects=[
            _project(
                age_cycle_outliers={"count": 2},
                cycle_time_variance_pct=12,
                blocked={"blocked_count": 3, "open_count": 20, "blocked_long_count": 1},
                forecast={"due_30_open": 4, "expected_done_30d": 2.5, "slip_probability": 40},
            ),
            _project(
                age_cycle_outliers={"count": "3"},
                cycle_time_variance_pct=30,
                blocked={"blocked_count": 1, "open_count": 20},
                forecast={"due_30_open": 6, "expected_done_30d": 1.2, "slip_probability": 120},
            ),
        ])
        agg = compute_flow_agg(flow)
        assert agg.outlier_count == 5
        assert agg.cycle_variance_pct == 30
        assert agg.blocked_count == 4
        assert agg.blocked_open_count == 40
        assert agg.blocked_long_count == 1
        assert agg.blocked_ratio_pct == 10
        assert agg.due_30_open == 10
        assert round(agg.expected_done_30, 1) == 3.7
        assert agg.slip_prob_max == 100

    def test_blocked_ratio_zero_denominator(self):
        flow = FlowSignals(ok=True, projects=[{"blocked": {"blocked_count": 3, "open_count": 0}}])
        agg = compute_flow_agg(flow)
        assert agg.blocked_count == 3
        assert agg.blocked_ratio_pct == 0

    def test_bottleneck_winner_uses_own_wip(self):
        """A (70%, 7/10) beats B (50%, 20/40); portfolio WIP is tracked separately."""
        flow = FlowSignals(ok=True, projects=[
            {"bottleneck": {"top_stage": "review", "top_stage_share": 70, "top_stage_wip": 7, "total_wip": 10}},
            {"bottleneck": {"top_stage": "build", "top_stage_share": 50, "top_stage_wip": 20, "total_wip": 40}},
        ])
        agg = compute_flow_agg(flow)
        assert agg.top_stage == "review"
        assert agg.top_stage_share_pct == 70
        assert agg.top_stage_wip == 7
        assert agg.top_project_total_wip == 10
        assert agg.portfolio_total_wip == 50

    def test_bottleneck_later_winner_replaces_earlier(self):
        flow = FlowSignals(ok=True, projects=[
            {"bottleneck": {"top_stage": "build", "top_stage_share": 50, "top_stage_wip": 20, "total_wip": 40}},
            {"bottleneck": {"top_stage": "review", "top_stage_share": 70, "top_stage_wip": 7, "total_wip": 10}},
        ])
        agg = compute_flow_agg(flow)
        assert (agg.top_stage, agg.top_stage_wip, agg.top_project_total_wip) == ("review", 7, 10)
        assert agg.portfolio_total_wip == 50

    def test_bottleneck_tie_keeps_first_seen(self):
        flow = FlowSignals(ok=True, projects=[
            {"bottleneck": {"top_stage": "first", "top_stage_share": 60, "top_stage_wip": 6, "total_wip": 10}},
            {"bottleneck": {"top_stage": "second", "top_stage_share": 60, "top_stage_wip": 12, "total_wip": 20}},
        ])
        agg = compute_flow_agg(flow)
        assert agg.top_stage == "first"
        assert agg.top_project_total_wip == 10

    def test_garbage_records_tolerated(self):
        flow = FlowSignals(ok=True, projects=[None, "x", {"blocked": "nope", "forecast": None}])
        agg = compute_flow_agg(flow)
        assert agg == FlowAgg()

    def test_summary_rounds(self):
        agg = FlowAgg(blocked_ratio_pct=13.333, top_stage_share_pct=61.26, expected_done_30=3.66, slip_prob_max=72)
        s = agg.summary()
        assert s["blockedRatioPct"] == 13.3
        assert s["topStageSharePct"] == 61.3
        assert s["expectedDone30"] == 3.7
        assert s["slipProbMax"] == 72
        assert set(s) >= {"outlierCount", "topStage", "topProjectTotalWip", "portfolioTotalWip", "due30Open"}
