"""
Utility functions for consistent appointment queries.

This module contains reusable query functions that ensure common appointment
query patterns (blocking appointments, overlap lookups, future filtering) are
applied consistently across the availability calculator, the booking guard
and the calendar synchronizer.
"""

from datetime import date, time
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from models import Appointment
from shared_types.availability import BusyInterval
from utils.datetime_utils import local_now
from utils.time_utils import time_to_minutes


def blocking_appointments_query(
    db: Session,
    professional_id: int,
    day: date,
    exclude_appointment_id: Optional[int] = None
) -> Query[Appointment]:
    """
    Query the appointments that occupy a professional's time on a date.

    Every status except 'cancelled' blocks the slot.
    """
    query = db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        Appointment.date == day,
        Appointment.status != "cancelled",
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query


def find_overlapping_appointments(
    db: Session,
    professional_id: int,
    day: date,
    start_time: time,
    end_time: time,
    exclude_appointment_id: Optional[int] = None
) -> List[Appointment]:
    """
    Find non-cancelled appointments overlapping [start_time, end_time).

    Overlap is existing.start < new.end AND existing.end > new.start, so
    back-to-back appointments do not conflict.
    """
    return blocking_appointments_query(
        db, professional_id, day, exclude_appointment_id
    ).filter(
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    ).order_by(Appointment.start_time).all()


def get_busy_intervals(
    db: Session,
    professional_id: int,
    day: date,
    exclude_appointment_id: Optional[int] = None
) -> List[BusyInterval]:
    """Load blocking appointments of a date as minute intervals."""
    appointments = blocking_appointments_query(
        db, professional_id, day, exclude_appointment_id
    ).order_by(Appointment.start_time).all()

    return [
        BusyInterval(
            start_minutes=time_to_minutes(appointment.start_time),
            end_minutes=time_to_minutes(appointment.end_time),
            appointment_id=appointment.id,
        )
        for appointment in appointments
    ]


def filter_future_appointments(query: Query[Appointment]) -> Query[Appointment]:
    """
    Apply filter to only include future/upcoming appointments.

    An appointment is considered "future" if:
    - Its date is after today, OR
    - Its date is today AND its start time is after the current time

    Uses the calendar timezone for consistent time comparisons.
    """
    current = local_now()
    today = current.date()
    current_time = current.time().replace(tzinfo=None)

    return query.filter(
        or_(
            Appointment.date > today,
            and_(Appointment.date == today, Appointment.start_time > current_time)
        )
    )
