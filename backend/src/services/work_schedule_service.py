"""
Work schedule service for professionals' working hours.

This module owns reads and writes of the work schedule store: the weekly
pattern, per-date exceptions and the breaks inside each interval. Reads
resolve which intervals apply to a date; writes validate intervals so that
the availability calculator can trust what it reads.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.constants import MINUTES_PER_DAY
from core.exceptions import StorageError, ValidationError
from models import WorkSchedule, WorkScheduleBreak
from shared_types.availability import BreakData, WorkIntervalData
from utils.query_helpers import get_professional, get_or_404
from utils.time_utils import (
    intervals_overlap, minutes_to_time, minutes_to_time_obj, time_to_minutes
)

logger = logging.getLogger(__name__)

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


class WorkScheduleService:
    """
    Service class for work schedule operations.

    Interval payloads are dictionaries with ``start_time``, ``end_time`` and
    optionally ``buffer_minutes``, ``is_active`` and ``breaks`` (a list of
    dictionaries with ``start_time``, ``end_time``, ``name``).
    """

    @staticmethod
    def get_intervals_for_date(db: Session, professional_id: int, day: date) -> List[WorkIntervalData]:
        """
        Resolve the active work intervals that apply to a date.

        Exception rows for the exact date replace the weekly pattern entirely,
        even when all of them are inactive (a closed day). Otherwise the rows
        for the date's weekday are used.

        Returns:
            Active intervals ordered by start time, each with its active breaks
        """
        exception_rows = db.query(WorkSchedule).options(
            selectinload(WorkSchedule.breaks)
        ).filter(
            WorkSchedule.professional_id == professional_id,
            WorkSchedule.specific_date == day,
        ).all()

        if exception_rows:
            rows = exception_rows
        else:
            rows = db.query(WorkSchedule).options(
                selectinload(WorkSchedule.breaks)
            ).filter(
                WorkSchedule.professional_id == professional_id,
                WorkSchedule.specific_date.is_(None),
                WorkSchedule.day_of_week == day.weekday(),
            ).all()

        intervals = [
            WorkScheduleService._to_interval_data(row)
            for row in rows
            if row.is_active
        ]
        intervals.sort(key=lambda interval: interval.start_minutes)
        return intervals

    @staticmethod
    def get_schedule(db: Session, professional_id: int) -> Dict[str, Any]:
        """
        Get the full schedule of a professional for display.

        Returns:
            Dict with ``weekly`` (weekday -> intervals) and ``exceptions``
            (ISO date -> intervals, inactive rows included so closed days show)
        """
        get_professional(db, professional_id)

        rows = db.query(WorkSchedule).options(
            selectinload(WorkSchedule.breaks)
        ).filter(
            WorkSchedule.professional_id == professional_id
        ).order_by(WorkSchedule.start_time).all()

        weekly: Dict[int, List[Dict[str, Any]]] = {day: [] for day in range(7)}
        exceptions: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            entry = WorkScheduleService.serialize_row(row)
            if row.specific_date is not None:
                exceptions.setdefault(row.specific_date.isoformat(), []).append(entry)
            elif row.day_of_week is not None:
                weekly[row.day_of_week].append(entry)

        return {
            "professional_id": professional_id,
            "weekly": weekly,
            "exceptions": dict(sorted(exceptions.items())),
        }

    @staticmethod
    def replace_weekly_schedule(
        db: Session,
        professional_id: int,
        intervals_by_day: Dict[int, List[Dict[str, Any]]]
    ) -> List[WorkSchedule]:
        """
        Atomically replace the weekly pattern of a professional.

        Days missing from ``intervals_by_day`` end up with no intervals.
        Date exceptions are left untouched.

        Raises:
            ValidationError: If any day or interval is invalid
            NotFoundError: If the professional does not exist
        """
        get_professional(db, professional_id)

        for day_of_week, intervals in intervals_by_day.items():
            if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
                raise ValidationError(f"day_of_week must be between 0 and 6, got {day_of_week}")
            WorkScheduleService._validate_intervals(intervals, DAY_NAMES[day_of_week])

        try:
            weekly_rows = db.query(WorkSchedule).filter(
                WorkSchedule.professional_id == professional_id,
                WorkSchedule.specific_date.is_(None),
            ).all()
            for row in weekly_rows:
                db.delete(row)
            db.flush()

            created: List[WorkSchedule] = []
            for day_of_week, intervals in sorted(intervals_by_day.items()):
                for interval in intervals:
                    row = WorkScheduleService._build_row(professional_id, interval, day_of_week=day_of_week)
                    db.add(row)
                    created.append(row)

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to replace weekly schedule for professional {professional_id}: {e}")
            raise StorageError("Failed to save the weekly schedule") from e

        logger.info(f"Replaced weekly schedule for professional {professional_id}: {len(created)} intervals")
        return created

    @staticmethod
    def set_date_exception(
        db: Session,
        professional_id: int,
        day: date,
        intervals: List[Dict[str, Any]]
    ) -> List[WorkSchedule]:
        """
        Replace the exception intervals of one date.

        An empty list closes the day: a single inactive row is stored so that
        the weekly pattern no longer applies to that date.
        """
        get_professional(db, professional_id)
        WorkScheduleService._validate_intervals(intervals, day.isoformat())

        try:
            WorkScheduleService._delete_exception_rows(db, professional_id, day)

            created: List[WorkSchedule] = []
            if intervals:
                for interval in intervals:
                    row = WorkScheduleService._build_row(professional_id, interval, specific_date=day)
                    db.add(row)
                    created.append(row)
            else:
                closed = WorkScheduleService._build_row(
                    professional_id,
                    {"start_time": "00:00", "end_time": "23:59", "is_active": False},
                    specific_date=day,
                )
                db.add(closed)
                created.append(closed)

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to set schedule exception {day} for professional {professional_id}: {e}")
            raise StorageError("Failed to save the schedule exception") from e

        logger.info(
            f"Set schedule exception for professional {professional_id} on {day}: "
            f"{'closed' if not intervals else f'{len(intervals)} intervals'}"
        )
        return created

    @staticmethod
    def clear_date_exception(db: Session, professional_id: int, day: date) -> int:
        """Remove the exception of a date so the weekly pattern applies again."""
        get_professional(db, professional_id)
        try:
            deleted = WorkScheduleService._delete_exception_rows(db, professional_id, day)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to clear schedule exception {day} for professional {professional_id}: {e}")
            raise StorageError("Failed to clear the schedule exception") from e
        return deleted

    @staticmethod
    def add_break(
        db: Session,
        work_schedule_id: int,
        start_time: Any,
        end_time: Any,
        name: Optional[str] = None,
        sort_order: Optional[int] = None
    ) -> WorkScheduleBreak:
        """
        Add a break to an existing work interval.

        The break must lie within the interval. It may overlap other breaks.
        """
        schedule = get_or_404(db, WorkSchedule, work_schedule_id, "Work schedule")
        interval_start = time_to_minutes(schedule.start_time)
        interval_end = time_to_minutes(schedule.end_time)
        break_start, break_end = WorkScheduleService._parse_range(start_time, end_time, "break")
        WorkScheduleService._validate_break_within(break_start, break_end, interval_start, interval_end)

        if sort_order is None:
            sort_order = len(schedule.breaks)

        work_break = WorkScheduleBreak(
            work_schedule_id=schedule.id,
            name=name,
            start_time=minutes_to_time_obj(break_start),
            end_time=minutes_to_time_obj(break_end),
            sort_order=sort_order,
        )
        try:
            db.add(work_break)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to add break to work schedule {work_schedule_id}: {e}")
            raise StorageError("Failed to save the break") from e

        db.refresh(work_break)
        return work_break

    @staticmethod
    def _delete_exception_rows(db: Session, professional_id: int, day: date) -> int:
        # Delete through the ORM so break rows cascade on SQLite as well
        rows = db.query(WorkSchedule).filter(
            WorkSchedule.professional_id == professional_id,
            WorkSchedule.specific_date == day,
        ).all()
        for row in rows:
            db.delete(row)
        db.flush()
        return len(rows)

    @staticmethod
    def _parse_range(start_time: Any, end_time: Any, label: str) -> tuple[int, int]:
        try:
            start = time_to_minutes(start_time)
            end = time_to_minutes(end_time)
        except ValueError as e:
            raise ValidationError(f"Invalid {label} time: {e}") from e
        # Stored as TIME columns, so 24:00 has no representation
        if end >= MINUTES_PER_DAY:
            raise ValidationError(f"The {label} must end by 23:59")
        if start >= end:
            raise ValidationError(
                f"The {label} start time ({minutes_to_time(start)}) must be before its end time ({minutes_to_time(end)})"
            )
        return start, end

    @staticmethod
    def _validate_break_within(break_start: int, break_end: int, interval_start: int, interval_end: int) -> None:
        if break_start < interval_start or break_end > interval_end:
            raise ValidationError(
                f"Break {minutes_to_time(break_start)}-{minutes_to_time(break_end)} must lie within "
                f"the work interval {minutes_to_time(interval_start)}-{minutes_to_time(interval_end)}"
            )

    @staticmethod
    def _validate_intervals(intervals: List[Dict[str, Any]], label: str) -> None:
        """
        Validate intervals of one weekday or date.

        Checks time order, non-negative buffers and break containment, and
        rejects overlapping active intervals.
        """
        active_ranges: List[tuple[int, int]] = []
        for interval in intervals:
            start, end = WorkScheduleService._parse_range(
                interval.get("start_time"), interval.get("end_time"), "interval"
            )

            buffer_minutes = interval.get("buffer_minutes") or 0
            if buffer_minutes < 0:
                raise ValidationError(f"buffer_minutes must be zero or positive, got {buffer_minutes}")

            for work_break in interval.get("breaks") or []:
                break_start, break_end = WorkScheduleService._parse_range(
                    work_break.get("start_time"), work_break.get("end_time"), "break"
                )
                WorkScheduleService._validate_break_within(break_start, break_end, start, end)

            if interval.get("is_active", True):
                active_ranges.append((start, end))

        active_ranges.sort()
        for (start1, end1), (start2, end2) in zip(active_ranges, active_ranges[1:]):
            if intervals_overlap(start1, end1, start2, end2):
                raise ValidationError(
                    f"Overlapping work intervals on {label}: "
                    f"{minutes_to_time(start1)}-{minutes_to_time(end1)} and "
                    f"{minutes_to_time(start2)}-{minutes_to_time(end2)}"
                )

    @staticmethod
    def _build_row(
        professional_id: int,
        interval: Dict[str, Any],
        day_of_week: Optional[int] = None,
        specific_date: Optional[date] = None
    ) -> WorkSchedule:
        row = WorkSchedule(
            professional_id=professional_id,
            day_of_week=day_of_week,
            specific_date=specific_date,
            start_time=minutes_to_time_obj(time_to_minutes(interval["start_time"])),
            end_time=minutes_to_time_obj(time_to_minutes(interval["end_time"])),
            is_active=interval.get("is_active", True),
            buffer_minutes=interval.get("buffer_minutes") or 0,
        )
        for index, work_break in enumerate(interval.get("breaks") or []):
            row.breaks.append(WorkScheduleBreak(
                name=work_break.get("name"),
                start_time=minutes_to_time_obj(time_to_minutes(work_break["start_time"])),
                end_time=minutes_to_time_obj(time_to_minutes(work_break["end_time"])),
                is_active=work_break.get("is_active", True),
                sort_order=work_break.get("sort_order", index),
            ))
        return row

    @staticmethod
    def _to_interval_data(row: WorkSchedule) -> WorkIntervalData:
        return WorkIntervalData(
            work_schedule_id=row.id,
            start_minutes=time_to_minutes(row.start_time),
            end_minutes=time_to_minutes(row.end_time),
            buffer_minutes=row.buffer_minutes or 0,
            is_exception=row.specific_date is not None,
            breaks=[
                BreakData(
                    start_minutes=time_to_minutes(work_break.start_time),
                    end_minutes=time_to_minutes(work_break.end_time),
                    name=work_break.name,
                )
                for work_break in row.breaks
                if work_break.is_active
            ],
        )

    @staticmethod
    def serialize_row(row: WorkSchedule) -> Dict[str, Any]:
        return {
            "id": row.id,
            "start_time": row.start_time.strftime('%H:%M'),
            "end_time": row.end_time.strftime('%H:%M'),
            "is_active": row.is_active,
            "buffer_minutes": row.buffer_minutes,
            "breaks": [
                {
                    "id": work_break.id,
                    "name": work_break.name,
                    "start_time": work_break.start_time.strftime('%H:%M'),
                    "end_time": work_break.end_time.strftime('%H:%M'),
                    "is_active": work_break.is_active,
                }
                for work_break in row.breaks
            ],
        }
