"""
Datetime utilities for consistent timezone handling across the application.

Appointment dates and times are stored as naive wall-clock values that belong
to the calendar timezone (CALENDAR_TIMEZONE). Everything that needs "now" or
has to express an appointment as an absolute instant goes through here.
"""

import logging
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from core.config import CALENDAR_TIMEZONE

logger = logging.getLogger(__name__)

CALENDAR_TZ = ZoneInfo(CALENDAR_TIMEZONE)


def local_now() -> datetime:
    """
    Get the current datetime in the calendar timezone.

    Returns:
        Timezone-aware datetime in CALENDAR_TIMEZONE
    """
    return datetime.now(CALENDAR_TZ)


def local_today() -> date:
    """Get today's date in the calendar timezone."""
    return local_now().date()


def format_calendar_datetime(day: date, at: time) -> str:
    """
    Format a stored (date, time) pair as a local RFC3339 wall-clock string.

    The result carries no offset ("2025-03-30T10:00:00"); it must be sent
    together with the timeZone field so the calendar resolves DST itself.
    """
    return datetime.combine(day, at.replace(second=0, microsecond=0)).strftime("%Y-%m-%dT%H:%M:%S")


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days.

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e
