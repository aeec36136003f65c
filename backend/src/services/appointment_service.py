"""
Appointment service: the booking conflict guard.

Every write that occupies a professional's time (individual bookings and
the blocks reserved by group activity occurrences) goes through the guarded
section in this module. Within one transaction it locks the professional row,
re-checks for overlapping non-cancelled appointments and only then inserts,
so two concurrent requests for the same time can never both succeed.
"""

import logging
from datetime import date as date_type, time
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import APPOINTMENT_STATUSES, MINUTES_PER_DAY
from core.exceptions import (
    NotFoundError, SchedulingError, SlotConflictError, StorageError, ValidationError
)
from models import Appointment, Professional
from models.appointment import EXCLUSION_CONSTRAINT_NAME
from services.client_service import ClientService
from utils.appointment_queries import find_overlapping_appointments
from utils.datetime_utils import local_now
from utils.query_helpers import get_appointment, get_professional, get_service
from utils.time_utils import minutes_to_time, minutes_to_time_obj, time_to_minutes

logger = logging.getLogger(__name__)

# SQLSTATE raised by PostgreSQL for exclusion constraint violations
EXCLUSION_VIOLATION_PGCODE = "23P01"


def is_overlap_violation(error: IntegrityError) -> bool:
    """Whether an IntegrityError comes from the appointment exclusion constraint."""
    original = getattr(error, "orig", None)
    if getattr(original, "pgcode", None) == EXCLUSION_VIOLATION_PGCODE:
        return True
    return EXCLUSION_CONSTRAINT_NAME in str(original)


class AppointmentService:
    """
    Service class for appointment operations.

    Methods raise SchedulingError subclasses; the API layer maps them to HTTP
    responses. Successful writes are committed before returning.
    """

    @staticmethod
    def find_conflicts(
        db: Session,
        professional_id: int,
        date: date_type,
        start_time: Any,
        end_time: Any,
        exclude_appointment_id: Optional[int] = None
    ) -> List[Appointment]:
        """
        Return non-cancelled appointments overlapping [start_time, end_time).

        Args:
            start_time: "HH:MM" string or time object
            end_time: "HH:MM" string or time object
        """
        start, end = AppointmentService._parse_times(start_time, end_time)
        return find_overlapping_appointments(
            db, professional_id, date,
            minutes_to_time_obj(start), minutes_to_time_obj(end),
            exclude_appointment_id,
        )

    @staticmethod
    def book_appointment(
        db: Session,
        organization_id: int,
        professional_id: int,
        client_phone: str,
        client_name: Optional[str],
        date: date_type,
        start_time: Any,
        end_time: Any = None,
        service_id: Optional[int] = None,
        client_email: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = "confirmed"
    ) -> Appointment:
        """
        Book an individual appointment if the time is still free.

        The end time defaults to start time plus the service duration. The
        client is resolved by phone number inside the same transaction and
        created when unknown.

        Returns:
            The committed appointment

        Raises:
            ValidationError: Bad phone, times, status or missing duration source
            NotFoundError: Unknown professional or service
            SlotConflictError: The range overlaps a non-cancelled appointment
            StorageError: The store failed; nothing was written
        """
        if not client_phone or not client_phone.strip():
            raise ValidationError("Client phone is required")
        if status not in APPOINTMENT_STATUSES or status == "cancelled":
            raise ValidationError(f"Invalid status for a new appointment: {status}")

        try:
            professional = AppointmentService._get_professional_for_organization(
                db, organization_id, professional_id
            )

            service = get_service(db, service_id) if service_id is not None else None
            if service is not None and service.organization_id != organization_id:
                raise NotFoundError(f"Service {service_id} not found")

            start = AppointmentService._parse_time(start_time, "start_time")
            if end_time is None:
                if service is None:
                    raise ValidationError("end_time or service_id is required")
                end = start + service.duration_minutes
            else:
                end = AppointmentService._parse_time(end_time, "end_time")
            AppointmentService._validate_range(start, end)

            AppointmentService._lock_and_check(db, professional.id, date, start, end)

            client = ClientService.find_or_create_by_phone(
                db, organization_id, client_phone, client_name, client_email
            )

            appointment = Appointment(
                organization_id=organization_id,
                professional_id=professional.id,
                client_id=client.id,
                service_id=service.id if service else None,
                date=date,
                start_time=minutes_to_time_obj(start),
                end_time=minutes_to_time_obj(end),
                duration=end - start,
                status=status,
                notes=notes,
                is_group_activity=False,
            )
            db.add(appointment)
            db.commit()
            db.refresh(appointment)

        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            raise AppointmentService._map_integrity_error(e, professional_id, date) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to book appointment for professional {professional_id}: {e}")
            raise StorageError("Failed to book the appointment") from e

        logger.info(
            f"Booked appointment {appointment.id} for client {appointment.client_id} with "
            f"professional {professional_id} on {date} {minutes_to_time(start)}-{minutes_to_time(end)}"
        )
        return appointment

    @staticmethod
    def reserve_time_block(
        db: Session,
        organization_id: int,
        professional_id: int,
        date: date_type,
        start_time: Any,
        end_time: Any,
        notes: Optional[str] = None,
        commit: bool = True
    ) -> Appointment:
        """
        Reserve a block of a professional's time for a group activity occurrence.

        Runs the same guarded section as book_appointment, without a client.
        With ``commit=False`` the block is flushed inside a savepoint so that a
        caller can reserve several blocks in one transaction: a rejected block
        leaves the earlier ones in place, and the caller owns the rollback of
        the surrounding transaction.

        Raises:
            SlotConflictError: The range overlaps a non-cancelled appointment
        """
        start, end = AppointmentService._parse_times(start_time, end_time)

        try:
            AppointmentService._get_professional_for_organization(db, organization_id, professional_id)
            AppointmentService._lock_and_check(db, professional_id, date, start, end)

            block = Appointment(
                organization_id=organization_id,
                professional_id=professional_id,
                client_id=None,
                date=date,
                start_time=minutes_to_time_obj(start),
                end_time=minutes_to_time_obj(end),
                duration=end - start,
                status="confirmed",
                notes=notes,
                is_group_activity=True,
            )
            if commit:
                db.add(block)
                db.commit()
                db.refresh(block)
            else:
                # A rejected insert only undoes its own savepoint, not the caller's earlier blocks
                with db.begin_nested():
                    db.add(block)

        except SchedulingError:
            if commit:
                db.rollback()
            raise
        except IntegrityError as e:
            if commit:
                db.rollback()
            raise AppointmentService._map_integrity_error(e, professional_id, date) from e
        except SQLAlchemyError as e:
            if commit:
                db.rollback()
            logger.exception(f"Failed to reserve time block for professional {professional_id}: {e}")
            raise StorageError("Failed to reserve the time block") from e

        logger.info(
            f"Reserved group block {block.id} for professional {professional_id} on {date} "
            f"{minutes_to_time(start)}-{minutes_to_time(end)}"
        )
        return block

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Appointment:
        """Get an appointment by id or raise NotFoundError."""
        return get_appointment(db, appointment_id)

    @staticmethod
    def cancel_appointment(
        db: Session,
        appointment_id: int,
        commit: bool = True,
        allow_group_block: bool = False
    ) -> Appointment:
        """
        Cancel an appointment, freeing its time.

        Cancelling an already cancelled appointment is a no-op. The block
        reserved by a group activity is only released together with its
        activity (``allow_group_block`` is set by GroupActivityService).

        Raises:
            ValidationError: The appointment is a group activity block
        """
        appointment = get_appointment(db, appointment_id)
        if appointment.is_group_activity and not allow_group_block:
            raise ValidationError(
                f"Appointment {appointment_id} is reserved by a group activity; "
                f"cancel the group activity instead"
            )
        if appointment.is_cancelled:
            return appointment

        appointment.status = "cancelled"
        appointment.cancelled_at = local_now()
        try:
            if commit:
                db.commit()
            else:
                db.flush()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to cancel appointment {appointment_id}: {e}")
            raise StorageError("Failed to cancel the appointment") from e

        logger.info(f"Cancelled appointment {appointment_id}")
        return appointment

    @staticmethod
    def update_appointment_status(db: Session, appointment_id: int, status: str) -> Appointment:
        """
        Move an appointment to any of the known statuses.

        Any transition is allowed for individual bookings; group activity
        blocks follow their activity. Reviving a cancelled appointment takes its
        time back, so it goes through the guarded overlap check first.

        Raises:
            ValidationError: Unknown status, or the appointment is a group activity block
            SlotConflictError: Reviving would overlap another appointment
        """
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Allowed: {', '.join(APPOINTMENT_STATUSES)}"
            )

        try:
            appointment = get_appointment(db, appointment_id)
            if appointment.is_group_activity:
                raise ValidationError(
                    f"Appointment {appointment_id} is reserved by a group activity; "
                    f"change the group activity instead"
                )
            previous = appointment.status
            if previous == status:
                return appointment

            if previous == "cancelled":
                AppointmentService._lock_and_check(
                    db,
                    appointment.professional_id,
                    appointment.date,
                    time_to_minutes(appointment.start_time),
                    time_to_minutes(appointment.end_time),
                    exclude_appointment_id=appointment.id,
                )
                appointment.cancelled_at = None
            elif status == "cancelled":
                appointment.cancelled_at = local_now()

            appointment.status = status
            db.commit()
        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            raise AppointmentService._map_integrity_error(e, None, None) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to update status of appointment {appointment_id}: {e}")
            raise StorageError("Failed to update the appointment status") from e

        logger.info(f"Appointment {appointment_id} status changed from {previous} to {status}")
        return appointment

    @staticmethod
    def _lock_and_check(
        db: Session,
        professional_id: int,
        date: date_type,
        start: int,
        end: int,
        exclude_appointment_id: Optional[int] = None
    ) -> None:
        """
        Guarded section: lock the professional's calendar, then re-check overlaps.

        The lock is held until the surrounding transaction commits or rolls back.
        """
        get_professional(db, professional_id, lock=True)

        conflicts = find_overlapping_appointments(
            db, professional_id, date,
            minutes_to_time_obj(start), minutes_to_time_obj(end),
            exclude_appointment_id,
        )
        if conflicts:
            conflicting_ids = [conflict.id for conflict in conflicts]
            logger.warning(
                f"Booking conflict for professional {professional_id} on {date} "
                f"{minutes_to_time(start)}-{minutes_to_time(end)}: overlaps {conflicting_ids}"
            )
            raise SlotConflictError(
                f"The requested time {minutes_to_time(start)}-{minutes_to_time(end)} on {date} "
                f"is no longer available",
                conflicting_ids=conflicting_ids,
            )

    @staticmethod
    def _map_integrity_error(
        error: IntegrityError,
        professional_id: Optional[int],
        date: Optional[date_type]
    ) -> SchedulingError:
        if is_overlap_violation(error):
            logger.warning(
                f"Booking conflict rejected by the database for professional {professional_id} on {date}"
            )
            return SlotConflictError("The requested time is no longer available")
        logger.exception(f"Integrity error while writing appointment: {error}")
        return StorageError("Failed to save the appointment")

    @staticmethod
    def _get_professional_for_organization(
        db: Session,
        organization_id: int,
        professional_id: int
    ) -> Professional:
        professional = get_professional(db, professional_id)
        if professional.organization_id != organization_id:
            raise NotFoundError(f"Professional {professional_id} not found")
        if not professional.is_active:
            raise ValidationError(f"Professional {professional_id} is not accepting bookings")
        return professional

    @staticmethod
    def _parse_time(value: Any, field: str) -> int:
        if value is None:
            raise ValidationError(f"{field} is required")
        if not isinstance(value, (str, time)):
            raise ValidationError(f"{field} must be a time of day")
        try:
            return time_to_minutes(value)
        except ValueError as e:
            raise ValidationError(f"Invalid {field}: {e}") from e

    @staticmethod
    def _validate_range(start: int, end: int) -> None:
        if start >= end:
            raise ValidationError("start_time must be before end_time")
        if end > MINUTES_PER_DAY - 1:
            raise ValidationError("Appointments must end before midnight")

    @staticmethod
    def _parse_times(start_time: Any, end_time: Any) -> tuple[int, int]:
        start = AppointmentService._parse_time(start_time, "start_time")
        end = AppointmentService._parse_time(end_time, "end_time")
        AppointmentService._validate_range(start, end)
        return start, end
