"""
Recurrence service for recurring group activity series.

Generates the occurrence dates of a weekly or monthly rule. Everything here
is pure: no database access, no clock. Materializing the dates as bookings
is GroupActivityService's job.
"""

import calendar
import logging
from datetime import date, timedelta
from typing import List

from core.constants import (
    MAX_MONTHLY_RECURRENCE_INTERVAL,
    MAX_RECURRENCE_OCCURRENCES,
    MAX_WEEKLY_RECURRENCE_INTERVAL,
)
from core.exceptions import ValidationError
from shared_types.recurrence import RecurrenceRule

logger = logging.getLogger(__name__)

RECURRENCE_TYPES = ("weekly", "monthly")


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole months, clamping the day to the target month's length.

    Jan 31 + 1 month is Feb 28 (or 29). Always compute from the series start
    date, not from the previous occurrence, so later months return to day 31.
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class RecurrenceService:
    """Service class for recurrence rule validation and expansion."""

    @staticmethod
    def validate_rule(rule: RecurrenceRule, start_date: date) -> None:
        """
        Validate a recurrence rule against its start date.

        Raises:
            ValidationError: Unknown type, interval out of range, or not
                exactly one of end_date/count, or a termination before the start
        """
        if rule.type not in RECURRENCE_TYPES:
            raise ValidationError(f"Unsupported recurrence type: {rule.type}")

        if not isinstance(rule.interval, int) or rule.interval < 1:
            raise ValidationError("The recurrence interval must be at least 1")

        if rule.type == "weekly" and rule.interval > MAX_WEEKLY_RECURRENCE_INTERVAL:
            raise ValidationError(
                f"For weekly recurrence the maximum interval is {MAX_WEEKLY_RECURRENCE_INTERVAL} weeks"
            )
        if rule.type == "monthly" and rule.interval > MAX_MONTHLY_RECURRENCE_INTERVAL:
            raise ValidationError(
                f"For monthly recurrence the maximum interval is {MAX_MONTHLY_RECURRENCE_INTERVAL} months"
            )

        if (rule.end_date is None) == (rule.count is None):
            raise ValidationError("Exactly one of end_date and count must be given")

        if rule.count is not None and rule.count < 1:
            raise ValidationError("The occurrence count must be at least 1")

        if rule.end_date is not None and rule.end_date < start_date:
            raise ValidationError("The end date must not be before the start date")

    @staticmethod
    def generate_recurrence_dates(start_date: date, rule: RecurrenceRule) -> List[date]:
        """
        Expand a rule into its occurrence dates.

        The start date is always the first occurrence. Generation stops at
        the first date after end_date, when count dates exist, or at
        MAX_RECURRENCE_OCCURRENCES, whichever comes first.

        Raises:
            ValidationError: If the rule is invalid
        """
        RecurrenceService.validate_rule(rule, start_date)

        limit = MAX_RECURRENCE_OCCURRENCES
        if rule.count is not None:
            limit = min(limit, rule.count)

        dates: List[date] = [start_date]
        step = 1
        while len(dates) < limit:
            if rule.type == "weekly":
                current = start_date + timedelta(weeks=rule.interval * step)
            else:
                current = add_months(start_date, rule.interval * step)

            if rule.end_date is not None and current > rule.end_date:
                break

            dates.append(current)
            step += 1

        if rule.end_date is not None and len(dates) == MAX_RECURRENCE_OCCURRENCES:
            logger.info(
                f"Recurrence from {start_date} truncated at {MAX_RECURRENCE_OCCURRENCES} occurrences"
            )
        return dates

    @staticmethod
    def describe_rule(rule: RecurrenceRule) -> str:
        """Human-readable summary, e.g. "Every 2 weeks, 3 times"."""
        unit = "week" if rule.type == "weekly" else "month"
        if rule.interval == 1:
            frequency = f"Every {unit}"
        else:
            frequency = f"Every {rule.interval} {unit}s"

        if rule.count is not None:
            return f"{frequency}, {rule.count} time{'s' if rule.count != 1 else ''}"
        if rule.end_date is not None:
            return f"{frequency} until {rule.end_date.isoformat()}"
        return frequency
