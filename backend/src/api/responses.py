"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every error produced by the scheduling exception handlers."""
    detail: str
    type: str
    conflicting_appointment_ids: Optional[List[int]] = None  # Only for slot conflicts


class AvailableSlotResponse(BaseModel):
    """Response model for available time slot."""
    start_time: str
    end_time: str


class AvailableSlotsResponse(BaseModel):
    """Response model for available slots query."""
    date: str  # YYYY-MM-DD
    professional_id: int
    duration_minutes: int
    available_slots: List[AvailableSlotResponse]


class AvailableSlotsRangeResponse(BaseModel):
    """Response model for a multi-day availability query."""
    professional_id: int
    duration_minutes: int
    days: Dict[str, List[AvailableSlotResponse]]  # ISO date -> slots


class BreakResponse(BaseModel):
    id: int
    name: Optional[str] = None
    start_time: str
    end_time: str
    is_active: bool


class WorkIntervalResponse(BaseModel):
    """One stored work interval (weekly or exception row)."""
    id: int
    start_time: str
    end_time: str
    is_active: bool
    buffer_minutes: int
    breaks: List[BreakResponse]


class ScheduleResponse(BaseModel):
    """Response model for a professional's full work schedule."""
    professional_id: int
    weekly: Dict[int, List[WorkIntervalResponse]]  # 0 = Monday
    exceptions: Dict[str, List[WorkIntervalResponse]]  # ISO date -> rows


class AppointmentResponse(BaseModel):
    """Response model for an individual appointment."""
    id: int
    professional_id: int
    client_id: Optional[int] = None  # None for group activity blocks
    client_name: Optional[str] = None
    service_id: Optional[int] = None
    date: date
    start_time: str
    end_time: str
    duration: int
    status: str
    notes: Optional[str] = None
    is_group_activity: bool
    synced_with_google: bool
    cancelled_at: Optional[datetime] = None


class RecurrencePreviewResponse(BaseModel):
    """Dates generated by a recurrence rule."""
    description: str
    dates: List[date]


class ParticipantStatsResponse(BaseModel):
    max_participants: int
    total_participants: int
    confirmed_participants: int
    pending_participants: int
    waiting_list_participants: int
    available_spots: int
    is_full: bool
    has_waiting_list: bool


class GroupActivityResponse(BaseModel):
    """Response model for one group activity occurrence."""
    id: int
    professional_id: int
    appointment_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    max_participants: int
    status: str
    recurrence_series_id: Optional[str] = None
    synced_with_google: bool
    stats: Optional[ParticipantStatsResponse] = None


class SkippedOccurrenceResponse(BaseModel):
    date: date
    reason: str
    conflicting_appointment_ids: List[int]


class GroupActivitySeriesResponse(BaseModel):
    """Response model for creating a (possibly recurring) group activity."""
    recurrence_series_id: Optional[str] = None
    activities: List[GroupActivityResponse]
    skipped: List[SkippedOccurrenceResponse]


class OccurrencePreviewResponse(BaseModel):
    date: date
    has_conflict: bool
    conflicting_appointment_ids: List[int]


class SeriesPreviewResponse(BaseModel):
    occurrences: List[OccurrencePreviewResponse]


class ParticipantResponse(BaseModel):
    """Response model for a group activity participant."""
    id: int
    group_activity_id: int
    client_id: int
    client_name: Optional[str] = None
    enrollment_status: str
    notes: Optional[str] = None
    enrolled_at: datetime


class PromotionResponse(BaseModel):
    """Result of a waiting list promotion; participant is None when nobody moved up."""
    promoted: bool
    participant: Optional[ParticipantResponse] = None


class SyncResultResponse(BaseModel):
    """Outcome of one calendar synchronization."""
    success: bool
    action: Optional[str] = None
    event_id: Optional[str] = None
    error: Optional[str] = None


class SyncError(BaseModel):
    kind: str
    id: int
    error: Optional[str] = None


class BulkSyncResponse(BaseModel):
    """Outcome of syncing every pending record of a professional."""
    total: int
    synced: int
    failed: int
    errors: List[SyncError]
