"""
Recurrence rule value object for recurring group activities.
"""

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional

RecurrenceType = Literal["weekly", "monthly"]


@dataclass(frozen=True)
class RecurrenceRule:
    """
    How a series repeats: every `interval` weeks or months.

    Exactly one of end_date and count terminates the series; whichever is
    given, no series ever exceeds MAX_RECURRENCE_OCCURRENCES dates.
    """
    type: RecurrenceType
    interval: int = 1
    end_date: Optional[date] = None
    count: Optional[int] = None
