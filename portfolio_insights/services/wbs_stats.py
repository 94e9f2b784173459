"""
WBS Leaf Statistics

Flattens a level-tagged WBS outline into leaf statistics and sums them
across every WBS document of the in-scope projects.

Nesting is implied by the sequence of ``level`` values only: row ``i`` is a
leaf unless row ``i + 1`` has a strictly greater level.

Usage:
    from portfolio_insights.services.wbs_stats import compute_portfolio_wbs
    stats = compute_portfolio_wbs(documents, days=30, today=today)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date

from portfolio_insights.utils.helpers import (
    add_days,
    norm_str,
    num,
    parse_due,
    safe_json,
    safe_list,
    utc_today,
)

logger = logging.getLogger(__name__)


DONE_STATUSES = frozenset({"done", "closed", "complete", "completed", "cancelled", "canceled"})

DUE_DATE_FIELDS = ("due_date", "dueDate", "end_date", "endDate", "end", "date")

EFFORT_HOUR_FIELDS = (
    "estimated_effort_hours",
    "estimatedEffortHours",
    "effort_hours",
    "effortHours",
    "estimate_hours",
    "estimateHours",
    "estimated_effort",
    "estimatedEffort",
)

EFFORT_SIZES = frozenset({"S", "M", "L"})

# (field, inclusive day offset from today); nearest boundary wins
PRESSURE_BUCKETS = (("due_7", 7), ("due_14", 14), ("due_30", 30), ("due_60", 60))


# ═════════════════════════════════════════════════════════════════════════════
# Result types
# ═════════════════════════════════════════════════════════════════════════════

def _camel_totals(data: dict) -> dict:
    data["totalLeaves"] = data.pop("total_leaves")
    return data


@dataclass
class WbsComputed:
    """Leaf statistics for one WBS document."""
    total_leaves: int = 0
    done: int = 0
    remaining: int = 0
    overdue: int = 0
    due_7: int = 0
    due_14: int = 0
    due_30: int = 0
    due_60: int = 0
    missing_effort: int = 0
    missing_row_ids: list[str] = field(default_factory=list)
    scoped_leaf_count_with_due: int = 0

    def to_dict(self) -> dict:
        return _camel_totals(asdict(self))


@dataclass
class WbsPortfolio:
    """Summed leaf statistics across documents, plus one deep-link sample."""
    total_leaves: int = 0
    done: int = 0
    remaining: int = 0
    overdue: int = 0
    due_7: int = 0
    due_14: int = 0
    due_30: int = 0
    due_60: int = 0
    missing_effort: int = 0
    sample_project_id: str = ""
    sample_artifact_id: str = ""
    documents: int = 0
    skipped: int = 0

    _SUMMED = ("total_leaves", "done", "remaining", "overdue",
               "due_7", "due_14", "due_30", "due_60", "missing_effort")

    def add(self, doc_stats: WbsComputed) -> None:
        for name in self._SUMMED:
            setattr(self, name, getattr(self, name) + getattr(doc_stats, name))

    def to_dict(self) -> dict:
        return _camel_totals(asdict(self))


# ═════════════════════════════════════════════════════════════════════════════
# Row predicates
# ═════════════════════════════════════════════════════════════════════════════

def _level(row) -> float:
    return num(row.get("level") if isinstance(row, dict) else None, 0)


def is_leaf(rows: list, idx: int) -> bool:
    """True unless the next row sits strictly deeper than this one."""
    if idx + 1 >= len(rows):
        return True
    return not _level(rows[idx + 1]) > _level(rows[idx])


def is_done(row: dict) -> bool:
    status = norm_str(row.get("status") or row.get("state"))
    if status in DONE_STATUSES:
        return True
    progress = num(row.get("progress"), fallback=None)
    return progress is not None and progress >= 100


def due_date_of(row: dict) -> date | None:
    """First alias that parses to a valid date wins."""
    for name in DUE_DATE_FIELDS:
        parsed = parse_due(row.get(name))
        if parsed is not None:
            return parsed
    return None


def has_effort(row: dict) -> bool:
    """Any positive hour-like field, or an S/M/L size, counts as effort."""
    for name in EFFORT_HOUR_FIELDS:
        value = row.get(name)
        if value is None or value == "":
            continue
        if num(value, fallback=0) > 0:
            return True
    size = "" if row.get("effort") is None else str(row.get("effort")).strip().upper()
    return size in EFFORT_SIZES


# ═════════════════════════════════════════════════════════════════════════════
# Per-document flattening
# ═════════════════════════════════════════════════════════════════════════════

def _pressure_bucket(due: date, today: date) -> str | None:
    if due < today:
        return None  # overdue, counted by the scoped pass
    for name, offset in PRESSURE_BUCKETS:
        if due <= add_days(today, offset):
            return name
    return None


def calc_wbs_leaf_stats(doc, days: int | None = None, today: date | None = None) -> WbsComputed:
    """Compute leaf statistics for one WBS document.

    Args:
        doc: Parsed document (``{"rows": [...]}``) or anything else.
        days: Optional forward horizon; None means unbounded.
        today: UTC day boundary captured once by the caller.

    Pressure buckets (due_7/14/30/60) always look forward from today.
    Core counts are gated by the horizon: a leaf is in scope when it is
    already past due or due within ``days``.
    """
    stats = WbsComputed()
    rows = safe_list(doc.get("rows") if isinstance(doc, dict) else None)
    if not rows:
        return stats

    if today is None:
        today = utc_today()
    scope_end = None if days is None else add_days(today, days)

    for idx, row in enumerate(rows):
        if not isinstance(row, dict) or not is_leaf(rows, idx):
            continue

        done = is_done(row)
        due = due_date_of(row)
        if due is None:
            continue

        if not done:
            bucket = _pressure_bucket(due, today)
            if bucket:
                setattr(stats, bucket, getattr(stats, bucket) + 1)

        if scope_end is not None and not (due < today or due <= scope_end):
            continue

        stats.scoped_leaf_count_with_due += 1
        stats.total_leaves += 1
        if done:
            stats.done += 1
        else:
            stats.remaining += 1
            if due < today:
                stats.overdue += 1

        if not has_effort(row):
            stats.missing_effort += 1
            row_id = row.get("id")
            if row_id:
                stats.missing_row_ids.append(str(row_id))

    return stats


# ═════════════════════════════════════════════════════════════════════════════
# Portfolio reduction
# ═════════════════════════════════════════════════════════════════════════════

def parse_wbs_document(record: dict):
    """Return the WBS body of an artifact record, or None if it is not one.

    Only ``{"type": "wbs", "version": 1, "rows": [...]}`` bodies qualify.
    """
    if not isinstance(record, dict):
        return None
    doc = safe_json(record.get("content_json"))
    if doc is None:
        doc = safe_json(record.get("content"))
    if not isinstance(doc, dict):
        return None
    if norm_str(doc.get("type")) != "wbs":
        return None
    if num(doc.get("version"), fallback=None) != 1:
        return None
    if not isinstance(doc.get("rows"), list):
        return None
    return doc


def compute_portfolio_wbs(records, days: int | None = None, today: date | None = None) -> WbsPortfolio:
    """Sum leaf statistics over every well-formed WBS document.

    Records that are not WBS v1 documents are skipped, not failed. The
    first document with a missing-effort leaf becomes the deep-link sample.
    """
    if today is None:
        today = utc_today()

    total = WbsPortfolio()
    for record in records or []:
        doc = parse_wbs_document(record)
        if doc is None:
            total.skipped += 1
            logger.debug("Skipping non-WBS artifact %s", (record or {}).get("id") if isinstance(record, dict) else None)
            continue

        doc_stats = calc_wbs_leaf_stats(doc, days, today)
        total.add(doc_stats)
        total.documents += 1

        if not total.sample_artifact_id and doc_stats.missing_effort > 0:
            total.sample_project_id = str(record.get("project_id") or "")
            total.sample_artifact_id = str(record.get("id") or "")

    logger.debug(
        "WBS reduction: docs=%d skipped=%d leaves=%d overdue=%d missing_effort=%d",
        total.documents, total.skipped, total.total_leaves, total.overdue, total.missing_effort,
    )
    return total
