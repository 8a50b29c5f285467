from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO string / date / datetime -> aware UTC datetime. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _is_date_only(value: Any) -> bool:
    if isinstance(value, date) and not isinstance(value, datetime):
        return True
    return isinstance(value, str) and len(value.strip()) == 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def within_window(start: Any, end: Any, now: Optional[datetime] = None) -> bool:
    """True when `now` lies in [start, end]; a missing bound is open."""
    now = now or utcnow()
    lo, hi = parse_timestamp(start), parse_timestamp(end)
    if hi and _is_date_only(end):
        hi = hi + timedelta(days=1) - timedelta(microseconds=1)
    if lo and now < lo:
        return False
    if hi and now > hi:
        return False
    return True
