"""
Time-of-day arithmetic on minutes since midnight.

Schedules, breaks and appointments are all compared as integer minutes so
that the same half-open overlap rule applies everywhere: an interval
[start, end) touches, but does not overlap, an interval that starts at end.
"""

from datetime import time
from typing import Union

from core.constants import MINUTES_PER_DAY

TimeLike = Union[str, time]


def time_to_minutes(value: TimeLike) -> int:
    """
    Convert "HH:MM", "HH:MM:SS" or a time object to minutes since midnight.

    Seconds are ignored. "24:00" is accepted as the end of the day.

    Raises:
        ValueError: If the value is not a recognisable time of day
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise ValueError(f"Invalid time value: {value!r}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")

    hours, minutes = int(parts[0]), int(parts[1])
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def clamp_minutes(minutes: int, lower: int = 0, upper: int = MINUTES_PER_DAY) -> int:
    """Clamp a minute count into [lower, upper]."""
    return max(lower, min(upper, minutes))


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM" (1440 renders as "24:00")."""
    minutes = clamp_minutes(minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time_obj(minutes: int) -> time:
    """Convert minutes since midnight to a time object; end of day becomes 23:59."""
    minutes = clamp_minutes(minutes, upper=MINUTES_PER_DAY - 1)
    return time(minutes // 60, minutes % 60)


def add_minutes(value: TimeLike, delta: int) -> str:
    """Shift a time forward by delta minutes, clamped to the same day."""
    return minutes_to_time(time_to_minutes(value) + delta)


def subtract_minutes(value: TimeLike, delta: int) -> str:
    """Shift a time backward by delta minutes, clamped to the same day."""
    return minutes_to_time(time_to_minutes(value) - delta)


def intervals_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open overlap test: [start1, end1) and [start2, end2) share a minute."""
    return start1 < end2 and start2 < end1


def format_time(value: TimeLike) -> str:
    """Normalise any accepted time value to "HH:MM"."""
    return minutes_to_time(time_to_minutes(value))
