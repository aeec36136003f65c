"""
Availability service for computing bookable slots.

This module turns a professional's resolved work intervals, breaks and
existing appointments into the list of fixed-length slots that can still be
booked on a date. The slot arithmetic itself is a pure function
(calculate_slots) so that it can be exercised without a database.
"""

import logging
from datetime import date as date_type, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from core.constants import MAX_AVAILABILITY_RANGE_DAYS
from core.exceptions import ValidationError
from services.work_schedule_service import WorkScheduleService
from shared_types.availability import BusyInterval, SlotData, WorkIntervalData
from utils.appointment_queries import get_busy_intervals
from utils.query_helpers import get_professional, get_service
from utils.time_utils import intervals_overlap, minutes_to_time

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for availability operations.

    Slots are laid out on a grid that starts at each interval's start time and
    advances by the requested duration. A candidate is offered when it fits
    inside the interval, does not overlap any active break, and, after being
    widened by the interval's buffer on both sides, does not overlap any
    non-cancelled appointment.
    """

    @staticmethod
    def calculate_slots(
        intervals: Sequence[WorkIntervalData],
        busy: Sequence[BusyInterval],
        duration_minutes: int,
        professional_id: Optional[int] = None
    ) -> List[SlotData]:
        """
        Compute available slots from resolved intervals and busy time.

        Args:
            intervals: Active work intervals of the date, with active breaks
            busy: Non-cancelled appointments of the professional on that date
            duration_minutes: Slot length; also the grid step
            professional_id: Copied into each slot

        Returns:
            Slots in interval order, then time order. Empty when nothing fits.
        """
        if duration_minutes <= 0:
            raise ValidationError("duration_minutes must be a positive integer")

        slots: List[SlotData] = []
        seen_starts: set[int] = set()

        for interval in intervals:
            candidate_start = interval.start_minutes
            while candidate_start + duration_minutes <= interval.end_minutes:
                candidate_end = candidate_start + duration_minutes

                if candidate_start not in seen_starts and AvailabilityService._is_candidate_free(
                    interval, busy, candidate_start, candidate_end
                ):
                    seen_starts.add(candidate_start)
                    slots.append(SlotData(
                        start_time=minutes_to_time(candidate_start),
                        end_time=minutes_to_time(candidate_end),
                        professional_id=professional_id,
                    ))

                candidate_start += duration_minutes

        return slots

    @staticmethod
    def _is_candidate_free(
        interval: WorkIntervalData,
        busy: Sequence[BusyInterval],
        candidate_start: int,
        candidate_end: int
    ) -> bool:
        for work_break in interval.breaks:
            if intervals_overlap(candidate_start, candidate_end, work_break.start_minutes, work_break.end_minutes):
                return False

        padded_start = candidate_start - interval.buffer_minutes
        padded_end = candidate_end + interval.buffer_minutes
        for appointment in busy:
            if intervals_overlap(padded_start, padded_end, appointment.start_minutes, appointment.end_minutes):
                return False

        return True

    @staticmethod
    def compute_available_slots(
        db: Session,
        professional_id: int,
        date: date_type,
        duration_minutes: int,
        existing: Optional[Sequence[BusyInterval]] = None,
        exclude_appointment_id: Optional[int] = None
    ) -> List[SlotData]:
        """
        Compute the slots a professional can still take on a date.

        Args:
            db: Database session
            professional_id: Professional to check
            date: Date to check (calendar timezone)
            duration_minutes: Slot length in minutes
            existing: Busy intervals to use instead of loading appointments
            exclude_appointment_id: Appointment to ignore (when rescheduling it)

        Returns:
            Available slots; an empty list means no schedule, a closed day or a full day

        Raises:
            ValidationError: If duration is not positive
            NotFoundError: If the professional does not exist
        """
        if not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValidationError("duration_minutes must be a positive integer")

        professional = get_professional(db, professional_id)
        if not professional.is_active:
            logger.debug(f"Professional {professional_id} is inactive; no availability")
            return []

        intervals = WorkScheduleService.get_intervals_for_date(db, professional_id, date)
        if not intervals:
            return []

        busy = list(existing) if existing is not None else get_busy_intervals(
            db, professional_id, date, exclude_appointment_id
        )

        slots = AvailabilityService.calculate_slots(intervals, busy, duration_minutes, professional_id)
        logger.debug(
            f"Computed {len(slots)} slots for professional {professional_id} on {date} "
            f"({duration_minutes} min, {len(intervals)} intervals, {len(busy)} appointments)"
        )
        return slots

    @staticmethod
    def compute_available_slots_for_service(
        db: Session,
        professional_id: int,
        date: date_type,
        service_id: int
    ) -> List[SlotData]:
        """Compute slots using the duration of a service."""
        service = get_service(db, service_id)
        return AvailabilityService.compute_available_slots(
            db, professional_id, date, service.duration_minutes
        )

    @staticmethod
    def compute_available_slots_for_range(
        db: Session,
        professional_id: int,
        start_date: date_type,
        end_date: date_type,
        duration_minutes: int,
        max_slots_per_day: Optional[int] = None
    ) -> Dict[str, List[SlotData]]:
        """
        Compute slots for every date in [start_date, end_date].

        Args:
            max_slots_per_day: Truncate each day's list to this many slots

        Returns:
            ISO date -> slots; days without slots are included with an empty list

        Raises:
            ValidationError: If the range is inverted or longer than MAX_AVAILABILITY_RANGE_DAYS
        """
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        days = (end_date - start_date).days + 1
        if days > MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationError(f"At most {MAX_AVAILABILITY_RANGE_DAYS} days can be requested at once")
        if max_slots_per_day is not None and max_slots_per_day <= 0:
            raise ValidationError("max_slots_per_day must be a positive integer")

        results: Dict[str, List[SlotData]] = {}
        for offset in range(days):
            current = start_date + timedelta(days=offset)
            slots = AvailabilityService.compute_available_slots(
                db, professional_id, current, duration_minutes
            )
            if max_slots_per_day is not None:
                slots = slots[:max_slots_per_day]
            results[current.isoformat()] = slots
        return results
