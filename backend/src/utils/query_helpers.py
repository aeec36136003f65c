"""
Query helper utilities for database operations.

This module provides shared lookups that raise NotFoundError instead of
returning None, plus the row-lock helper used by the booking guard and the
capacity tracker.
"""

from typing import Type, TypeVar

from sqlalchemy.orm import Session

from core.database import Base
from core.exceptions import NotFoundError
from models import Professional, Service, GroupActivity, Appointment, GroupActivityParticipant

# Type variable for model classes
T = TypeVar('T', bound=Base)


def get_or_404(db: Session, model: Type[T], record_id: int, label: str, lock: bool = False) -> T:
    """
    Load a row by primary key or raise NotFoundError.

    Args:
        db: Database session
        model: Mapped class to query
        record_id: Primary key value
        label: Human-readable entity name for the error message
        lock: Take a row lock (SELECT ... FOR UPDATE) held until the transaction ends

    Example:
        ```python
        professional = get_or_404(db, Professional, professional_id, "Professional", lock=True)
        ```
    """
    query = db.query(model).filter(model.id == record_id)  # type: ignore[attr-defined]
    if lock:
        # SQLite ignores FOR UPDATE; its engine begins transactions with BEGIN IMMEDIATE instead
        query = query.with_for_update()
    record = query.first()
    if record is None:
        raise NotFoundError(f"{label} {record_id} not found")
    return record


def get_professional(db: Session, professional_id: int, lock: bool = False) -> Professional:
    return get_or_404(db, Professional, professional_id, "Professional", lock=lock)


def get_service(db: Session, service_id: int) -> Service:
    return get_or_404(db, Service, service_id, "Service")


def get_appointment(db: Session, appointment_id: int, lock: bool = False) -> Appointment:
    return get_or_404(db, Appointment, appointment_id, "Appointment", lock=lock)


def get_group_activity(db: Session, activity_id: int, lock: bool = False) -> GroupActivity:
    return get_or_404(db, GroupActivity, activity_id, "Group activity", lock=lock)


def get_participant(db: Session, participant_id: int) -> GroupActivityParticipant:
    return get_or_404(db, GroupActivityParticipant, participant_id, "Participant")
