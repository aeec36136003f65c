"""
Shared types for group activities.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass
class ParticipantStats:
    """
    Participant counts of one activity occurrence.

    Cancelled enrollments are not counted anywhere.
    """
    max_participants: int
    confirmed_participants: int = 0
    pending_participants: int = 0
    waiting_list_participants: int = 0

    @property
    def total_participants(self) -> int:
        return self.confirmed_participants + self.pending_participants + self.waiting_list_participants

    @property
    def available_spots(self) -> int:
        return max(0, self.max_participants - self.confirmed_participants)

    @property
    def is_full(self) -> bool:
        return self.available_spots == 0

    @property
    def has_waiting_list(self) -> bool:
        return self.waiting_list_participants > 0

    def to_dict(self) -> dict[str, int | bool]:
        """Convert to dictionary format."""
        return {
            "max_participants": self.max_participants,
            "total_participants": self.total_participants,
            "confirmed_participants": self.confirmed_participants,
            "pending_participants": self.pending_participants,
            "waiting_list_participants": self.waiting_list_participants,
            "available_spots": self.available_spots,
            "is_full": self.is_full,
            "has_waiting_list": self.has_waiting_list,
        }


@dataclass
class OccurrencePreview:
    """One generated date of a series and whether its time is already taken."""
    date: date
    conflicting_appointment_ids: List[int] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicting_appointment_ids)


@dataclass
class SkippedOccurrence:
    """A series date that was not created because its time was taken."""
    date: date
    reason: str
    conflicting_appointment_ids: List[int] = field(default_factory=list)


@dataclass
class SeriesCreationResult:
    """Outcome of creating a (possibly recurring) group activity."""
    recurrence_series_id: Optional[str]
    activities: List["GroupActivity"] = field(default_factory=list)  # type: ignore  # noqa: F821
    skipped: List[SkippedOccurrence] = field(default_factory=list)
