"""
Professional schedule and availability API endpoints.

Provides:
- Weekly work schedule and per-date exception management
- Breaks inside work intervals
- Available slots for a date or a date range
"""

import logging
from datetime import date as date_type
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import SchedulingError, ValidationError
from services import AvailabilityService, WorkScheduleService
from api.responses import (
    AvailableSlotResponse, AvailableSlotsRangeResponse, AvailableSlotsResponse,
    BreakResponse, ScheduleResponse, WorkIntervalResponse
)
from utils.datetime_utils import parse_date_string
from utils.query_helpers import get_service
from utils.time_utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models

def _normalize_time(value: str) -> str:
    return minutes_to_time(time_to_minutes(value))


class BreakRequest(BaseModel):
    """Break inside a work interval."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    name: Optional[str] = Field(None, max_length=255)
    is_active: bool = True

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)


class WorkIntervalRequest(BaseModel):
    """Work interval with optional buffer and breaks."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    buffer_minutes: int = Field(0, ge=0)
    is_active: bool = True
    breaks: List[BreakRequest] = []

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)


class WeeklyScheduleRequest(BaseModel):
    """Request model for replacing the weekly schedule."""
    monday: List[WorkIntervalRequest] = []
    tuesday: List[WorkIntervalRequest] = []
    wednesday: List[WorkIntervalRequest] = []
    thursday: List[WorkIntervalRequest] = []
    friday: List[WorkIntervalRequest] = []
    saturday: List[WorkIntervalRequest] = []
    sunday: List[WorkIntervalRequest] = []

    def intervals_by_day(self) -> Dict[int, List[Dict[str, Any]]]:
        days = [self.monday, self.tuesday, self.wednesday, self.thursday,
                self.friday, self.saturday, self.sunday]
        return {
            day_of_week: [interval.model_dump() for interval in intervals]
            for day_of_week, intervals in enumerate(days)
        }


class DateExceptionRequest(BaseModel):
    """Intervals replacing the weekly pattern on one date; empty closes the day."""
    intervals: List[WorkIntervalRequest] = []


class BreakCreateRequest(BreakRequest):
    sort_order: Optional[int] = Field(None, ge=0)


def _parse_date(value: str, field: str = "date") -> date_type:
    try:
        return parse_date_string(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: {e}") from e


def _slot_responses(slots: List[Any]) -> List[AvailableSlotResponse]:
    return [AvailableSlotResponse(start_time=slot.start_time, end_time=slot.end_time) for slot in slots]


# API Endpoints

@router.get("/professionals/{professional_id}/schedule",
            summary="Get a professional's work schedule")
async def get_schedule(
    professional_id: int,
    db: Session = Depends(get_db)
) -> ScheduleResponse:
    """Weekly pattern plus every stored date exception, closed days included."""
    try:
        return ScheduleResponse(**WorkScheduleService.get_schedule(db, professional_id))
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to fetch schedule for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch the schedule"
        )


@router.put("/professionals/{professional_id}/schedule",
            summary="Replace a professional's weekly schedule")
async def update_weekly_schedule(
    professional_id: int,
    request: WeeklyScheduleRequest,
    db: Session = Depends(get_db)
) -> ScheduleResponse:
    """
    Replace the weekly pattern.

    Overlapping active intervals on the same day are rejected. Date
    exceptions are not touched.
    """
    try:
        WorkScheduleService.replace_weekly_schedule(db, professional_id, request.intervals_by_day())
        return ScheduleResponse(**WorkScheduleService.get_schedule(db, professional_id))
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to update weekly schedule for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update the schedule"
        )


@router.put("/professionals/{professional_id}/schedule/exceptions/{exception_date}",
            summary="Set the schedule of a specific date")
async def set_date_exception(
    professional_id: int,
    exception_date: str,
    request: DateExceptionRequest,
    db: Session = Depends(get_db)
) -> List[WorkIntervalResponse]:
    try:
        day = _parse_date(exception_date)
        rows = WorkScheduleService.set_date_exception(
            db, professional_id, day, [interval.model_dump() for interval in request.intervals]
        )
        return [WorkIntervalResponse(**WorkScheduleService.serialize_row(row)) for row in rows]
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to set schedule exception for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save the schedule exception"
        )


@router.delete("/professionals/{professional_id}/schedule/exceptions/{exception_date}",
               summary="Remove the schedule exception of a date",
               status_code=status.HTTP_204_NO_CONTENT)
async def delete_date_exception(
    professional_id: int,
    exception_date: str,
    db: Session = Depends(get_db)
) -> None:
    try:
        WorkScheduleService.clear_date_exception(db, professional_id, _parse_date(exception_date))
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to delete schedule exception for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete the schedule exception"
        )


@router.post("/schedules/{work_schedule_id}/breaks",
             summary="Add a break to a work interval",
             status_code=status.HTTP_201_CREATED)
async def add_break(
    work_schedule_id: int,
    request: BreakCreateRequest,
    db: Session = Depends(get_db)
) -> BreakResponse:
    try:
        work_break = WorkScheduleService.add_break(
            db, work_schedule_id, request.start_time, request.end_time,
            name=request.name, sort_order=request.sort_order,
        )
        return BreakResponse(
            id=work_break.id,
            name=work_break.name,
            start_time=work_break.start_time.strftime('%H:%M'),
            end_time=work_break.end_time.strftime('%H:%M'),
            is_active=work_break.is_active,
        )
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to add break to work schedule {work_schedule_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add the break"
        )


@router.get("/professionals/{professional_id}/available-slots",
            summary="Get available time slots for booking")
async def get_available_slots(
    professional_id: int,
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    duration: Optional[int] = Query(None, gt=0, description="Slot length in minutes"),
    service_id: Optional[int] = Query(None, description="Use the duration of this service"),
    exclude_appointment_id: Optional[int] = Query(None, description="Appointment to ignore when rescheduling it"),
    db: Session = Depends(get_db)
) -> AvailableSlotsResponse:
    """
    Get available time slots on one date.

    Exactly one of ``duration`` and ``service_id`` must be given. An empty
    list means the professional does not work, the day is closed, or the day
    is full.
    """
    try:
        if (duration is None) == (service_id is None):
            raise ValidationError("Provide exactly one of duration and service_id")

        day = _parse_date(date)
        duration_minutes = duration if service_id is None else get_service(db, service_id).duration_minutes
        slots = AvailabilityService.compute_available_slots(
            db, professional_id, day, duration_minutes, exclude_appointment_id=exclude_appointment_id
        )

        return AvailableSlotsResponse(
            date=day.isoformat(),
            professional_id=professional_id,
            duration_minutes=duration_minutes,
            available_slots=_slot_responses(slots),
        )
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to fetch available slots for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch available slots"
        )


@router.get("/professionals/{professional_id}/available-slots/range",
            summary="Get available time slots for a date range")
async def get_available_slots_range(
    professional_id: int,
    start_date: str = Query(..., description="First date, YYYY-MM-DD"),
    end_date: str = Query(..., description="Last date (inclusive), YYYY-MM-DD"),
    duration: int = Query(..., gt=0, description="Slot length in minutes"),
    max_slots_per_day: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db)
) -> AvailableSlotsRangeResponse:
    try:
        days = AvailabilityService.compute_available_slots_for_range(
            db, professional_id,
            _parse_date(start_date, "start_date"), _parse_date(end_date, "end_date"),
            duration, max_slots_per_day=max_slots_per_day,
        )
        return AvailableSlotsRangeResponse(
            professional_id=professional_id,
            duration_minutes=duration,
            days={day: _slot_responses(slots) for day, slots in days.items()},
        )
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to fetch slot range for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch available slots"
        )
