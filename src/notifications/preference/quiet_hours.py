"""Quiet-hours window arithmetic.

A window is ``[start, end)`` in the user's local time. ``start > end`` wraps
past midnight (22:00-08:00); ``start == end`` is an empty window.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` string. Raises ValueError on anything else."""
    parts = (value or "").split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"Invalid time format: {value}. Use HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time format: {value}. Use HH:MM")
    return time(hour, minute)


def load_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name. Raises ValueError when unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, TypeError, ValueError):
        raise ValueError(f"Unknown timezone: {name}") from None


def is_within(start: str, end: str, timezone: str, now: datetime) -> bool:
    """True when ``now`` falls inside the window in the given timezone."""
    start_at, end_at = parse_clock(start), parse_clock(end)
    if start_at == end_at:
        return False

    local = _aware(now).astimezone(load_zone(timezone)).time().replace(second=0, microsecond=0, tzinfo=None)
    if start_at < end_at:
        return start_at <= local < end_at
    return local >= start_at or local < end_at


def next_window_end(end: str, timezone: str, now: datetime) -> datetime:
    """The next local ``end`` boundary strictly after ``now``, in UTC."""
    zone = load_zone(timezone)
    end_at = parse_clock(end)
    local_now = _aware(now).astimezone(zone)

    candidate = datetime.combine(local_now.date(), end_at, tzinfo=zone)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), end_at, tzinfo=zone)
    return candidate.astimezone(UTC)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
