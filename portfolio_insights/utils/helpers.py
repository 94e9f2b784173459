"""Shared guard functions used by every reducer.

num / pct / clamp_pct:   finite-number coercion (never NaN, never raises)
parse_due:               due-date parsing onto the UTC calendar day
utc_today / add_days:    single-reference-timezone day boundaries
build_href:              deep-link builder for insight/warning links
"""
import json
import math
from datetime import date, datetime, timedelta, timezone
from urllib.parse import urlencode

WINDOW_CHOICES = (7, 14, 30, 60)
DEFAULT_WINDOW = 7


def _tidy(n: float):
    """Return ``n`` as an int when it has no fractional part."""
    return int(n) if float(n).is_integer() else n


def num(value, fallback=0):
    """Coerce anything into a finite number.

    Returns ``fallback`` for None, blank strings, NaN/inf and text that
    does not parse. Booleans count as 0/1. Integral values come back as
    ``int`` so that counts render as ``7`` rather than ``7.0``.
    """
    if value is None:
        return fallback
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        n = float(value)
    else:
        s = str(value).strip()
        if not s:
            return fallback
        try:
            n = float(s)
        except (ValueError, TypeError):
            return fallback
    if not math.isfinite(n):
        return fallback
    return _tidy(n)


def _round_half_up(n: float, places: int = 0) -> float:
    factor = 10 ** places
    return math.floor(n * factor + 0.5) / factor


def pct(value):
    """One-decimal percentage (half-up). Non-finite input gives 0."""
    n = num(value, fallback=None)
    if n is None:
        return 0
    return _tidy(_round_half_up(n, 1))


def clamp_pct(value) -> int:
    """Integer percentage clamped to 0..100."""
    n = num(value, fallback=None)
    if n is None:
        return 0
    return max(0, min(100, int(_round_half_up(n))))


def norm_str(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def pretty_stage(value) -> str:
    s = "" if value is None else str(value).strip()
    if not s:
        return "—"
    return s.replace("_", " ")


def safe_json(value):
    """Return a dict/list as-is, decode JSON text, else None."""
    if not value:
        return None
    if isinstance(value, (dict, list)):
        return value
    if not isinstance(value, (str, bytes)):
        return None
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        return None


def safe_list(value) -> list:
    return value if isinstance(value, list) else []


def uniq_strings(values) -> list[str]:
    """Trimmed, non-blank strings in first-seen order."""
    out = []
    seen = set()
    for v in values or []:
        s = "" if v is None else str(v).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


# ── Dates ────────────────────────────────────────────────────────────────────

def _to_utc_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def parse_due(value):
    """Parse a due-date value onto its UTC calendar day.

    Accepts date/datetime objects, ISO dates and timestamps (a trailing
    ``Z`` is understood) and DD.MM.YYYY. Naive timestamps are taken as
    UTC. Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return _to_utc_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    iso = s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s
    try:
        return _to_utc_date(datetime.fromisoformat(iso))
    except ValueError:
        pass
    try:
        return datetime.strptime(s, "%d.%m.%Y").date()
    except ValueError:
        return None


def parse_timestamp(value):
    """Parse an activity timestamp into an aware UTC datetime (or None)."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today(now: datetime | None = None) -> date:
    """UTC calendar day of ``now`` (the wall clock when omitted)."""
    if now is None:
        now = utc_now()
    if isinstance(now, datetime):
        return _to_utc_date(now)
    return now


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


# ── Request parameters & links ───────────────────────────────────────────────

def clamp_days(value):
    """Parse a reporting window: ``"all"`` or one of 7/14/30/60 (default 7)."""
    s = norm_str(value)
    if s == "all":
        return "all"
    n = num(s, fallback=None)
    return n if n in WINDOW_CHOICES else DEFAULT_WINDOW


def href_days(days_param) -> int:
    """Window used in deep links; surfaces without an "all" option get 60."""
    return 60 if days_param == "all" else days_param


def build_href(path: str, params: dict | None = None) -> str:
    """Build a relative link; None/False values are dropped, True becomes "1"."""
    pairs = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            if value:
                pairs.append((key, "1"))
            continue
        pairs.append((key, str(value)))
    qs = urlencode(pairs)
    return f"{path}?{qs}" if qs else path
