# Package initialization
# Import all models to ensure relationships are properly established
from .organization import Organization
from .professional import Professional
from .client import Client
from .service import Service
from .work_schedule import WorkSchedule
from .work_schedule_break import WorkScheduleBreak
from .appointment import Appointment
from .group_activity import GroupActivity
from .group_activity_participant import GroupActivityParticipant

__all__ = [
    "Organization",
    "Professional",
    "Client",
    "Service",
    "WorkSchedule",
    "WorkScheduleBreak",
    "Appointment",
    "GroupActivity",
    "GroupActivityParticipant",
]
