"""
Shared type definitions for the scheduling engine.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import SlotData, WorkIntervalData, BreakData, BusyInterval
from shared_types.group_activity import (
    ParticipantStats, OccurrencePreview, SkippedOccurrence, SeriesCreationResult
)
from shared_types.recurrence import RecurrenceRule

__all__ = [
    "SlotData",
    "WorkIntervalData",
    "BreakData",
    "BusyInterval",
    "ParticipantStats",
    "OccurrencePreview",
    "SkippedOccurrence",
    "SeriesCreationResult",
    "RecurrenceRule",
]
