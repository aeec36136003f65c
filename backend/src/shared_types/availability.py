"""
Shared types for availability-related functionality.

This module contains shared data classes used between the work schedule store,
the availability calculator and the booking guard. Times are kept as minutes
since midnight; conversion to "HH:MM" happens only at the edges.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from utils.time_utils import minutes_to_time


@dataclass
class BreakData:
    """A break window inside a work interval."""
    start_minutes: int
    end_minutes: int
    name: Optional[str] = None


@dataclass
class WorkIntervalData:
    """
    An active working interval resolved for one date.

    Produced by WorkScheduleService.get_intervals_for_date and consumed by
    AvailabilityService.calculate_slots. Only active breaks are included.
    """
    start_minutes: int
    end_minutes: int
    buffer_minutes: int = 0
    breaks: List[BreakData] = field(default_factory=list)
    work_schedule_id: Optional[int] = None
    is_exception: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "work_schedule_id": self.work_schedule_id,
            "start_time": minutes_to_time(self.start_minutes),
            "end_time": minutes_to_time(self.end_minutes),
            "buffer_minutes": self.buffer_minutes,
            "is_exception": self.is_exception,
            "breaks": [
                {
                    "name": b.name,
                    "start_time": minutes_to_time(b.start_minutes),
                    "end_time": minutes_to_time(b.end_minutes),
                }
                for b in self.breaks
            ],
        }


@dataclass
class BusyInterval:
    """A non-cancelled appointment occupying part of the professional's day."""
    start_minutes: int
    end_minutes: int
    appointment_id: Optional[int] = None


@dataclass
class SlotData:
    """
    Represents an available time slot.

    Used by AvailabilityService and the availability endpoints to ensure a
    consistent slot data structure.
    """
    start_time: str  # Format: "HH:MM"
    end_time: str  # Format: "HH:MM"
    professional_id: Optional[int] = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to dictionary format."""
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "professional_id": self.professional_id,
        }
