"""
Activity & Approval Signals

Pure reductions over rows that the collectors have already fetched:
activity cadence (feed signals) and the pending-approvals count.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from portfolio_insights.utils.helpers import (
    norm_str,
    num,
    parse_timestamp,
    safe_json,
    uniq_strings,
    utc_now,
)

logger = logging.getLogger(__name__)

FEED_WINDOW_DAYS = 7
FEED_ROW_LIMIT = 2000

PENDING_STEP_STATUSES = frozenset({"", "pending", "open"})


@dataclass(frozen=True)
class FeedSignals:
    """Activity cadence for the in-scope projects over the last 7 days."""
    table: str | None = None
    days: int = FEED_WINDOW_DAYS
    total_7d: int = 0
    total_24h: int = 0
    active_projects_7d: int = 0
    stale_projects_7d: int = 0
    limited: bool = False

    @classmethod
    def from_payload(cls, raw) -> "FeedSignals":
        data = safe_json(raw)
        if not isinstance(data, dict):
            return cls()
        table = data.get("table")
        return cls(
            table=str(table) if table else None,
            days=num(data.get("days"), FEED_WINDOW_DAYS),
            total_7d=num(data.get("total_7d")),
            total_24h=num(data.get("total_24h")),
            active_projects_7d=num(data.get("active_projects_7d")),
            stale_projects_7d=num(data.get("stale_projects_7d")),
            limited=bool(data.get("limited", False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def compute_feed_signals(
    project_ids,
    table: str | None,
    activity_rows,
    project_created_at: dict | None = None,
    now: datetime | None = None,
) -> FeedSignals:
    """Summarize recent activity rows into FeedSignals.

    Args:
        project_ids: In-scope project ids.
        table: Name of the activity source; None means no source exists.
        activity_rows: Rows with ``project_id`` and ``created_at``. Rows for
            projects outside ``project_ids`` or older than the window are
            ignored; of the rest only the newest ``FEED_ROW_LIMIT`` count.
        project_created_at: project id -> creation timestamp. Without it
            the stale count cannot be trusted: it is reported as 0 and
            ``limited`` is set.
        now: Reference instant (UTC).

    Only projects created at least 7 days ago are expected to show
    activity, so younger projects never count as stale.
    """
    ids = uniq_strings(project_ids)
    if not ids or not table:
        return FeedSignals()

    if now is None:
        now = utc_now()
    now = parse_timestamp(now)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    since_7d = day_start - timedelta(days=FEED_WINDOW_DAYS)
    since_24h = now - timedelta(hours=24)

    scope = set(ids)
    in_window = []
    for row in activity_rows or []:
        if not isinstance(row, dict):
            continue
        pid = str(row.get("project_id") or "").strip()
        if pid not in scope:
            continue
        ts = parse_timestamp(row.get("created_at"))
        if ts is None or ts < since_7d:
            continue
        in_window.append((ts, pid))

    # only the newest FEED_ROW_LIMIT in-window rows count
    in_window.sort(key=lambda item: item[0], reverse=True)
    kept = in_window[:FEED_ROW_LIMIT]
    active = {pid for _, pid in kept}
    total_7d = len(kept)
    total_24h = sum(1 for ts, _ in kept if ts >= since_24h)

    stale = 0
    if project_created_at is not None:
        eligible = 0
        for pid in ids:
            created = parse_timestamp(project_created_at.get(pid))
            if created is None or created <= since_7d:
                eligible += 1
        stale = max(0, eligible - len(active))
    else:
        logger.info("Project creation dates unavailable; stale count suppressed")

    return FeedSignals(
        table=table,
        days=FEED_WINDOW_DAYS,
        total_7d=total_7d,
        total_24h=total_24h,
        active_projects_7d=len(active),
        stale_projects_7d=stale,
        limited=len(in_window) >= FEED_ROW_LIMIT or project_created_at is None,
    )


def count_pending_approvals(steps=None, artifacts=None) -> int:
    """Count pending approvals.

    Approval steps are authoritative: undecided steps whose status is
    blank, ``pending`` or ``open``. When no step list is available, fall
    back to artifacts whose status reads like "pending approval".
    """
    if steps is not None:
        return sum(
            1 for s in steps
            if isinstance(s, dict)
            and not s.get("decided_at")
            and norm_str(s.get("status")) in PENDING_STEP_STATUSES
        )
    count = 0
    for artifact in artifacts or []:
        if not isinstance(artifact, dict):
            continue
        status = norm_str(artifact.get("status"))
        if "pending" in status and "approval" in status:
            count += 1
    return count
