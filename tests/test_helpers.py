"""
Guard functions — numeric coercion, dates, window parsing, deep links.
"""

from datetime import date, datetime, timedelta, timezone

from portfolio_insights.utils.helpers import (
    add_days,
    build_href,
    clamp_days,
    clamp_pct,
    href_days,
    norm_str,
    num,
    parse_due,
    parse_timestamp,
    pct,
    pretty_stage,
    safe_json,
    safe_list,
    uniq_strings,
    utc_today,
)


class TestNum:

    def test_numbers_pass_through(self):
        assert num(3) == 3
        assert num(2.5) == 2.5

    def test_integral_floats_become_int(self):
        assert num(7.0) == 7
        assert isinstance(num(7.0), int)
        assert isinstance(num("10"), int)

    def test_bad_input_uses_fallback(self):
        assert num(None) == 0
        assert num("") == 0
        assert num("   ") == 0
        assert num("abc") == 0
        assert num(float("nan")) == 0
        assert num(float("inf"), fallback=-1) == -1
        assert num({"a": 1}, fallback=5) == 5

    def test_booleans(self):
        assert num(True) == 1
        assert num(False) == 0

    def test_numeric_strings(self):
        assert num(" 12.5 ") == 12.5


class TestPercentages:

    def test_pct_one_decimal_half_up(self):
        assert pct(12.34) == 12.3
        assert pct(12.25) == 12.3
        assert pct(70) == 70

    def test_pct_non_finite(self):
        assert pct(None) == 0
        assert pct("x") == 0

    def test_clamp_pct(self):
        assert clamp_pct(49.5) == 50
        assert clamp_pct(-3) == 0
        assert clamp_pct(150) == 100
        assert clamp_pct(None) == 0
        assert clamp_pct("72.4") == 72


class TestStrings:

    def test_norm_str(self):
        assert norm_str("  DONE ") == "done"
        assert norm_str(None) == ""

    def test_pretty_stage(self):
        assert pretty_stage("code_review") == "code review"
        assert pretty_stage("") == "—"
        assert pretty_stage(None) == "—"

    def test_uniq_strings(self):
        assert uniq_strings([" a", "b", "a", "", None, "c "]) == ["a", "b", "c"]

    def test_safe_json(self):
        assert safe_json('{"a": 1}') == {"a": 1}
        assert safe_json({"a": 1}) == {"a": 1}
        assert safe_json("not json") is None
        assert safe_json(None) is None
        assert safe_json(42) is None

    def test_safe_list(self):
        assert safe_list([1]) == [1]
        assert safe_list("x") == []


class TestDates:

    def test_parse_iso_date(self):
        assert parse_due("2026-03-10") == date(2026, 3, 10)

    def test_parse_timestamp_truncates_to_utc_day(self):
        assert parse_due("2026-03-10T23:30:00-02:00") == date(2026, 3, 11)
        assert parse_due("2026-03-10T08:00:00Z") == date(2026, 3, 10)

    def test_parse_european_format(self):
        assert parse_due("15.04.2026") == date(2026, 4, 15)

    def test_parse_objects(self):
        assert parse_due(date(2026, 1, 2)) == date(2026, 1, 2)
        aware = datetime(2026, 1, 2, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_due(aware) == date(2026, 1, 3)

    def test_parse_invalid(self):
        assert parse_due("") is None
        assert parse_due("soon") is None
        assert parse_due(None) is None
        assert parse_due(12345) is None

    def test_parse_timestamp_naive_is_utc(self):
        ts = parse_timestamp("2026-03-10T10:00:00")
        assert ts.tzinfo is not None
        assert ts.hour == 10

    def test_utc_today(self):
        now = datetime(2026, 3, 10, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert utc_today(now) == date(2026, 3, 9)

    def test_add_days(self):
        assert add_days(date(2026, 2, 27), 2) == date(2026, 3, 1)


class TestWindowAndLinks:

    def test_clamp_days(self):
        assert clamp_days("30") == 30
        assert clamp_days(14) == 14
        assert clamp_days("ALL") == "all"
        assert clamp_days("45") == 7
        assert clamp_days(None) == 7

    def test_href_days(self):
        assert href_days("all") == 60
        assert href_days(14) == 14

    def test_build_href(self):
        assert build_href("/approvals", {"days": 30}) == "/approvals?days=30"
        assert build_href("/changes") == "/changes"
        assert build_href("/x", {"a": None, "b": True, "c": False}) == "/x?b=1"
        assert build_href("/changes", {"priority": "High,Critical"}) == "/changes?priority=High%2CCritical"
