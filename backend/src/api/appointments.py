"""
Appointment booking API endpoints.

Bookings go through the conflict guard in AppointmentService; a conflict is
answered with 409 and the ids of the overlapping appointments. Calendar sync
runs after the response as a background task and never affects the booking.
"""

import logging
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import SchedulingError
from models import Appointment
from services import AppointmentService, RecurrenceService
from services.calendar_sync_service import (
    SYNC_KIND_APPOINTMENT, SYNC_KIND_DELETE_APPOINTMENT, run_sync_in_background
)
from shared_types.recurrence import RecurrenceRule, RecurrenceType
from api.responses import AppointmentResponse, RecurrencePreviewResponse
from utils.query_helpers import get_professional
from utils.time_utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

router = APIRouter()


class AppointmentCreateRequest(BaseModel):
    """Request model for booking an individual appointment."""
    professional_id: int
    date: date_type
    start_time: str  # Format: "HH:MM"
    end_time: Optional[str] = None  # Defaults to start_time + service duration
    service_id: Optional[int] = None
    client_phone: str = Field(..., min_length=1, max_length=50)
    client_name: Optional[str] = Field(None, max_length=255)
    client_email: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)
    status: str = "confirmed"

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return minutes_to_time(time_to_minutes(v))

    @field_validator('client_name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class AppointmentStatusRequest(BaseModel):
    status: str


class RecurrenceRuleRequest(BaseModel):
    """Weekly or monthly rule; exactly one of end_date and count."""
    type: RecurrenceType
    interval: int = Field(1, ge=1)
    end_date: Optional[date_type] = None
    count: Optional[int] = Field(None, ge=1)

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(type=self.type, interval=self.interval, end_date=self.end_date, count=self.count)


class RecurrencePreviewRequest(BaseModel):
    start_date: date_type
    rule: RecurrenceRuleRequest


def _appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        professional_id=appointment.professional_id,
        client_id=appointment.client_id,
        client_name=appointment.client.name if appointment.client else None,
        service_id=appointment.service_id,
        date=appointment.date,
        start_time=appointment.start_time.strftime('%H:%M'),
        end_time=appointment.end_time.strftime('%H:%M'),
        duration=appointment.duration,
        status=appointment.status,
        notes=appointment.notes,
        is_group_activity=appointment.is_group_activity,
        synced_with_google=appointment.synced_with_google,
        cancelled_at=appointment.cancelled_at,
    )


@router.post("/appointments",
             summary="Book an appointment",
             status_code=status.HTTP_201_CREATED)
async def create_appointment(
    request: AppointmentCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    """
    Book an appointment if the time is still free.

    The client is looked up by phone number and created when unknown (a name
    is then required). Returns 409 when the time overlaps another booking.
    """
    try:
        professional = get_professional(db, request.professional_id)
        appointment = AppointmentService.book_appointment(
            db,
            organization_id=professional.organization_id,
            professional_id=professional.id,
            client_phone=request.client_phone,
            client_name=request.client_name,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            service_id=request.service_id,
            client_email=request.client_email,
            notes=request.notes,
            status=request.status,
        )
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_APPOINTMENT, appointment.id)
        return _appointment_response(appointment)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to book appointment for professional {request.professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to book the appointment"
        )


@router.get("/appointments/{appointment_id}", summary="Get an appointment")
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    return _appointment_response(AppointmentService.get_appointment(db, appointment_id))


@router.post("/appointments/{appointment_id}/cancel", summary="Cancel an appointment")
async def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    """Cancel an appointment. Cancelling twice is harmless."""
    try:
        appointment = AppointmentService.cancel_appointment(db, appointment_id)
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_DELETE_APPOINTMENT, appointment.id)
        return _appointment_response(appointment)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to cancel appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel the appointment"
        )


@router.patch("/appointments/{appointment_id}/status", summary="Change an appointment's status")
async def update_appointment_status(
    appointment_id: int,
    request: AppointmentStatusRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    try:
        appointment = AppointmentService.update_appointment_status(db, appointment_id, request.status)
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_APPOINTMENT, appointment.id)
        return _appointment_response(appointment)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to update status of appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update the appointment status"
        )


@router.post("/recurrence/preview", summary="Preview the dates of a recurrence rule")
async def preview_recurrence(request: RecurrencePreviewRequest) -> RecurrencePreviewResponse:
    rule = request.rule.to_rule()
    dates = RecurrenceService.generate_recurrence_dates(request.start_date, rule)
    return RecurrencePreviewResponse(description=RecurrenceService.describe_rule(rule), dates=dates)
