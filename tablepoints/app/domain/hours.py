"""Business-day clock helpers.

A restaurant has one business timezone. It decides both whether the daily
auto-close window is active and which calendar day the point and dish logs
are booked against.
"""

from __future__ import annotations

from datetime import datetime, time
from zoneinfo import ZoneInfo

from config import get_settings


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def resolve_timezone(name: str | None = None) -> ZoneInfo:
    """Return ``name`` as a :class:`ZoneInfo`, defaulting to the configured zone."""

    return ZoneInfo(name or get_settings().business_timezone)


def business_now(now: datetime, tz_name: str | None = None) -> datetime:
    """Convert the aware ``now`` into the restaurant's business timezone."""

    return now.astimezone(resolve_timezone(tz_name))


def business_date(now: datetime, tz_name: str | None = None) -> str:
    """Return the ``YYYY-MM-DD`` business day containing ``now``."""

    return business_now(now, tz_name).date().isoformat()


def is_within_auto_close_time(start: str, end: str, at: time | datetime) -> bool:
    """Return ``True`` if ``at`` falls inside the closed window ``[start, end)``.

    ``start`` and ``end`` are ``HH:MM`` strings. When ``start > end`` the
    window wraps midnight and covers ``[start, 24:00) ∪ [00:00, end)``. Equal
    bounds describe an empty window. ``at`` must already be expressed in the
    business timezone.
    """

    current = at.hour * 60 + at.minute
    start_minutes = _minutes(start)
    end_minutes = _minutes(end)
    if start_minutes <= end_minutes:
        return start_minutes <= current < end_minutes
    return current >= start_minutes or current < end_minutes
