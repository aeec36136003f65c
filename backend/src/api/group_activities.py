"""
Group activity API endpoints.

Provides:
- Creating single or recurring group activities (with a conflict preview)
- Enrollment by client id or public sign-up by phone
- Participant status changes, removal and waiting list promotion
- Participant statistics and cancellation
"""

import logging
from datetime import date as date_type
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import SchedulingError
from models import GroupActivity, GroupActivityParticipant
from services import GroupActivityService
from services.calendar_sync_service import SYNC_KIND_GROUP_ACTIVITY, run_sync_in_background
from shared_types.group_activity import ParticipantStats
from api.appointments import RecurrenceRuleRequest
from api.responses import (
    GroupActivityResponse, GroupActivitySeriesResponse, OccurrencePreviewResponse,
    ParticipantResponse, ParticipantStatsResponse, PromotionResponse,
    SeriesPreviewResponse, SkippedOccurrenceResponse
)
from utils.query_helpers import get_group_activity as fetch_group_activity, get_professional
from utils.time_utils import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

router = APIRouter()


class GroupActivityCreateRequest(BaseModel):
    """Request model for creating a group activity or a recurring series."""
    professional_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    date: date_type
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    max_participants: int = Field(..., ge=1)
    recurrence: Optional[RecurrenceRuleRequest] = None
    skip_conflicts: bool = False

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return minutes_to_time(time_to_minutes(v))

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Activity name cannot be empty')
        return v


class SeriesPreviewRequest(BaseModel):
    professional_id: int
    date: date_type
    start_time: str
    end_time: str
    recurrence: Optional[RecurrenceRuleRequest] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return minutes_to_time(time_to_minutes(v))


class EnrollRequest(BaseModel):
    client_id: int
    notes: Optional[str] = Field(None, max_length=1000)
    status: Optional[str] = None  # 'confirmed', 'pending' or 'waiting_list'


class SignupRequest(BaseModel):
    """Public sign-up; the client is found or created by phone."""
    phone: str = Field(..., min_length=1, max_length=50)
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class ParticipantStatusRequest(BaseModel):
    status: str


def _stats_response(stats: ParticipantStats) -> ParticipantStatsResponse:
    return ParticipantStatsResponse(**stats.to_dict())


def _activity_response(activity: GroupActivity, stats: Optional[ParticipantStats] = None) -> GroupActivityResponse:
    return GroupActivityResponse(**GroupActivityService.serialize_activity(activity, stats))


def _participant_response(participant: GroupActivityParticipant) -> ParticipantResponse:
    return ParticipantResponse(
        id=participant.id,
        group_activity_id=participant.group_activity_id,
        client_id=participant.client_id,
        client_name=participant.client.name if participant.client else None,
        enrollment_status=participant.enrollment_status,
        notes=participant.notes,
        enrolled_at=participant.enrolled_at,
    )


@router.post("/group-activities",
             summary="Create a group activity",
             status_code=status.HTTP_201_CREATED)
async def create_group_activity(
    request: GroupActivityCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> GroupActivitySeriesResponse:
    """
    Create one occurrence, or one per date of the recurrence rule.

    Every occurrence reserves the professional's time. With skip_conflicts
    the dates whose time is taken are reported instead of failing the series.
    """
    try:
        professional = get_professional(db, request.professional_id)
        result = GroupActivityService.create_group_activity(
            db,
            organization_id=professional.organization_id,
            professional_id=professional.id,
            name=request.name,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            max_participants=request.max_participants,
            description=request.description,
            recurrence=request.recurrence.to_rule() if request.recurrence else None,
            skip_conflicts=request.skip_conflicts,
        )
        for activity in result.activities:
            background_tasks.add_task(run_sync_in_background, SYNC_KIND_GROUP_ACTIVITY, activity.id)

        return GroupActivitySeriesResponse(
            recurrence_series_id=result.recurrence_series_id,
            activities=[_activity_response(activity) for activity in result.activities],
            skipped=[
                SkippedOccurrenceResponse(
                    date=skipped.date,
                    reason=skipped.reason,
                    conflicting_appointment_ids=skipped.conflicting_appointment_ids,
                )
                for skipped in result.skipped
            ],
        )
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to create group activity '{request.name}': {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create the group activity"
        )


@router.post("/group-activities/preview", summary="Preview the occurrences of a series")
async def preview_group_activity_series(
    request: SeriesPreviewRequest,
    db: Session = Depends(get_db)
) -> SeriesPreviewResponse:
    """Generated dates flagged with the appointments they would collide with. Writes nothing."""
    previews = GroupActivityService.preview_series(
        db,
        request.professional_id,
        request.date,
        request.start_time,
        request.end_time,
        request.recurrence.to_rule() if request.recurrence else None,
    )
    return SeriesPreviewResponse(occurrences=[
        OccurrencePreviewResponse(
            date=preview.date,
            has_conflict=preview.has_conflict,
            conflicting_appointment_ids=preview.conflicting_appointment_ids,
        )
        for preview in previews
    ])


@router.get("/group-activities/{activity_id}", summary="Get a group activity")
async def get_group_activity(
    activity_id: int,
    db: Session = Depends(get_db)
) -> GroupActivityResponse:
    activity = fetch_group_activity(db, activity_id)
    return _activity_response(activity, GroupActivityService.get_stats(db, activity_id))


@router.get("/group-activities/{activity_id}/stats", summary="Get participant statistics")
async def get_group_activity_stats(
    activity_id: int,
    db: Session = Depends(get_db)
) -> ParticipantStatsResponse:
    return _stats_response(GroupActivityService.get_stats(db, activity_id))


@router.get("/group-activities/{activity_id}/participants", summary="List participants")
async def list_participants(
    activity_id: int,
    db: Session = Depends(get_db)
) -> List[ParticipantResponse]:
    """Participants in enrollment order, cancelled ones included."""
    fetch_group_activity(db, activity_id)
    participants = db.query(GroupActivityParticipant).filter(
        GroupActivityParticipant.group_activity_id == activity_id
    ).order_by(GroupActivityParticipant.enrolled_at, GroupActivityParticipant.id).all()
    return [_participant_response(participant) for participant in participants]


@router.post("/group-activities/{activity_id}/participants",
             summary="Enroll a client",
             status_code=status.HTTP_201_CREATED)
async def enroll_participant(
    activity_id: int,
    request: EnrollRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> ParticipantResponse:
    """Confirmed while places remain, otherwise waiting list. 409 if already enrolled."""
    try:
        participant = GroupActivityService.enroll_participant(
            db, activity_id, request.client_id, notes=request.notes, status=request.status
        )
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_GROUP_ACTIVITY, activity_id)
        return _participant_response(participant)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to enroll client {request.client_id} in activity {activity_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to enroll the participant"
        )


@router.post("/group-activities/{activity_id}/signup",
             summary="Public sign-up by phone",
             status_code=status.HTTP_201_CREATED)
async def signup(
    activity_id: int,
    request: SignupRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> ParticipantResponse:
    try:
        participant = GroupActivityService.enroll_client_by_phone(
            db, activity_id, request.phone, request.name, email=request.email, notes=request.notes
        )
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_GROUP_ACTIVITY, activity_id)
        return _participant_response(participant)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to sign up for activity {activity_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sign up"
        )


@router.patch("/group-activities/participants/{participant_id}", summary="Change a participant's status")
async def update_participant_status(
    participant_id: int,
    request: ParticipantStatusRequest,
    db: Session = Depends(get_db)
) -> ParticipantResponse:
    participant = GroupActivityService.update_participant_status(db, participant_id, request.status)
    return _participant_response(participant)


@router.delete("/group-activities/participants/{participant_id}",
               summary="Remove a participant",
               status_code=status.HTTP_204_NO_CONTENT)
async def remove_participant(
    participant_id: int,
    db: Session = Depends(get_db)
) -> None:
    GroupActivityService.remove_participant(db, participant_id)


@router.post("/group-activities/{activity_id}/promote", summary="Promote from the waiting list")
async def promote_from_waiting_list(
    activity_id: int,
    db: Session = Depends(get_db)
) -> PromotionResponse:
    participant = GroupActivityService.promote_from_waiting_list(db, activity_id)
    if participant is None:
        return PromotionResponse(promoted=False)
    return PromotionResponse(promoted=True, participant=_participant_response(participant))


@router.post("/group-activities/{activity_id}/cancel", summary="Cancel a group activity occurrence")
async def cancel_group_activity(
    activity_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
) -> GroupActivityResponse:
    """Cancel the occurrence and free the professional's time."""
    try:
        activity = GroupActivityService.cancel_group_activity(db, activity_id)
        background_tasks.add_task(run_sync_in_background, SYNC_KIND_GROUP_ACTIVITY, activity_id)
        return _activity_response(activity)
    except SchedulingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to cancel group activity {activity_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel the group activity"
        )
