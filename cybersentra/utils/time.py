from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dtparser


# Two defaults that differ in year, month and day; a free-form string that
# parses differently under each is missing part of its date.
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


def _parse_free_form(ts: str) -> datetime:
    a = dtparser.parse(ts, default=_DEFAULT_A)
    b = dtparser.parse(ts, default=_DEFAULT_B)
    if a.date() != b.date():
        raise ValueError(f"Incomplete date in timestamp: {ts!r}")
    return a


def parse_ts(ts: str) -> datetime:
    """Parse a timestamp and normalize to UTC.

    ISO-8601 is tried first; collector exports that use locale formats
    (e.g. ``10/18/2026 1:05:00 PM``) fall back to dateutil's free-form parser,
    which must find a full year, month and day. Naive values are taken as UTC.
    """
    try:
        dt = dtparser.isoparse(ts)
    except ValueError:
        dt = _parse_free_form(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime) -> str:
    """Serialize datetime to an ISO string with Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def hour_bucket(dt: datetime) -> datetime:
    """Truncate to the start of the UTC hour."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def safe_parse_ts(ts: Optional[str]) -> Optional[datetime]:
    if not ts:
        return None
    try:
        return parse_ts(ts)
    except (ValueError, OverflowError, TypeError):
        return None
