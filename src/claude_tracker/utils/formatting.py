"""Formatting helpers for durations and timestamps."""

from datetime import datetime, timedelta, timezone
from typing import Union

Duration = Union[timedelta, float, int]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _seconds(value: Duration) -> int:
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def format_duration(value: Duration) -> str:
    """Format a duration as e.g. ``1h 5m 3s``."""
    total = max(_seconds(value), 0)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_duration_short(value: Duration) -> str:
    """Format a duration rounded to minutes, e.g. ``2h 10m``."""
    total_minutes = round(max(_seconds(value), 0) / 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_datetime(value: datetime) -> str:
    """Local, human-readable timestamp."""
    return value.astimezone().strftime("%a %b %d %Y %H:%M")


def period_start(period: str, now: datetime) -> datetime:
    """Start of the day, week (Sunday) or month containing ``now``.

    ``now`` should be local time; the result keeps its tzinfo.
    """
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "month":
        return day_start.replace(day=1)
    if period == "week":
        # Python weeks start Monday; reports start on Sunday
        return day_start - timedelta(days=(now.weekday() + 1) % 7)
    return day_start
