"""Time-related utility functions."""

from datetime import date, datetime, timedelta
from typing import Iterator, Optional, TypeVar


D = TypeVar("D", date, datetime)

# Dispatch hours counted as nighttime; everything else is daytime.
NIGHTTIME_HOURS = frozenset({18, 19, 20, 21, 22, 23, 0, 1, 2, 3, 4, 5})


def add_days(value: D, days: int) -> D:
    """Return a new date/datetime shifted by whole calendar days."""
    return value + timedelta(days=days)


def seconds_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Elapsed seconds from start to end, or None if either is missing."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds()


def valid_interval(
    start: Optional[datetime],
    end: Optional[datetime],
    minimum_seconds: float,
) -> Optional[float]:
    """Elapsed seconds, discarding deltas at or below the minimum.

    Deltas that small come from a timestamp being copied into the next
    field, not from a real interval.

    Args:
        start: Interval start
        end: Interval end
        minimum_seconds: Largest delta still treated as bad data

    Returns:
        Seconds as int when whole, else float; None when rejected
    """
    seconds = seconds_between(start, end)
    if seconds is None or seconds <= minimum_seconds:
        return None
    return whole(seconds)


def whole(value: float) -> int | float:
    """Collapse integral floats to int so JSON output reads 120, not 120.0."""
    if float(value).is_integer():
        return int(value)
    return value


def is_nighttime(dt: datetime) -> bool:
    """True when the wall-clock hour falls in the nighttime range."""
    return dt.hour in NIGHTTIME_HOURS


def iter_days(start: date, stop: date) -> Iterator[date]:
    """Yield every calendar day from start through stop inclusive."""
    day = start
    while day <= stop:
        yield day
        day = add_days(day, 1)


def format_duration(seconds: float) -> str:
    """Format duration in seconds as human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "2h 15m" or "45m 30s"
    """
    if seconds < 60:
        return f"{int(seconds)}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        if remaining_seconds > 0:
            return f"{minutes}m {remaining_seconds}s"
        return f"{minutes}m"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    if remaining_minutes > 0:
        return f"{hours}h {remaining_minutes}m"
    return f"{hours}h"
