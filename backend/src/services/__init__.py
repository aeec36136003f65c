"""
Services package for shared business logic.

This package contains service classes that encapsulate the scheduling rules
shared across the API endpoints and background jobs.
"""

from .work_schedule_service import WorkScheduleService
from .availability_service import AvailabilityService
from .client_service import ClientService
from .appointment_service import AppointmentService
from .recurrence_service import RecurrenceService
from .group_activity_service import GroupActivityService
from .calendar_sync_service import CalendarSyncService

__all__ = [
    "WorkScheduleService",
    "AvailabilityService",
    "ClientService",
    "AppointmentService",
    "RecurrenceService",
    "GroupActivityService",
    "CalendarSyncService",
]
