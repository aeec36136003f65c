"""
Google Calendar sync API endpoints.

Manual triggers for the calendar synchronizer plus storage of a
professional's OAuth tokens. Sync failures are reported in the response body
with HTTP 200; they never turn into server errors.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import StorageError
from services import CalendarSyncService
from services.calendar_sync_service import SyncResult
from services.google_oauth import GoogleTokenManager
from api.responses import BulkSyncResponse, SyncResultResponse
from utils.query_helpers import get_professional

logger = logging.getLogger(__name__)

router = APIRouter()


class CalendarCredentialsRequest(BaseModel):
    """Token response obtained from Google's OAuth flow."""
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(None, gt=0)
    token_type: Optional[str] = None
    scope: Optional[str] = None


class CalendarConnectionResponse(BaseModel):
    professional_id: int
    gcal_sync_enabled: bool
    has_calendar_connection: bool


def get_calendar_sync_service() -> CalendarSyncService:
    """Dependency so tests can swap in fake calendar clients."""
    return CalendarSyncService()


def _sync_response(result: SyncResult) -> SyncResultResponse:
    return SyncResultResponse(**result.to_dict())


@router.post("/calendar/sync/appointments/{appointment_id}", summary="Sync an appointment to Google Calendar")
async def sync_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    sync_service: CalendarSyncService = Depends(get_calendar_sync_service)
) -> SyncResultResponse:
    return _sync_response(await sync_service.sync_appointment(db, appointment_id))


@router.delete("/calendar/sync/appointments/{appointment_id}", summary="Remove an appointment's calendar event")
async def delete_appointment_event(
    appointment_id: int,
    db: Session = Depends(get_db),
    sync_service: CalendarSyncService = Depends(get_calendar_sync_service)
) -> SyncResultResponse:
    return _sync_response(await sync_service.delete_appointment_event(db, appointment_id))


@router.post("/calendar/sync/group-activities/{activity_id}", summary="Sync a group activity to Google Calendar")
async def sync_group_activity(
    activity_id: int,
    db: Session = Depends(get_db),
    sync_service: CalendarSyncService = Depends(get_calendar_sync_service)
) -> SyncResultResponse:
    return _sync_response(await sync_service.sync_group_activity(db, activity_id))


@router.post("/calendar/sync-all/{professional_id}", summary="Sync every pending record of a professional")
async def sync_all(
    professional_id: int,
    db: Session = Depends(get_db),
    sync_service: CalendarSyncService = Depends(get_calendar_sync_service)
) -> BulkSyncResponse:
    result = await sync_service.sync_all_pending(db, professional_id)
    return BulkSyncResponse(**result.to_dict())


@router.put("/calendar/credentials/{professional_id}", summary="Store Google Calendar credentials")
async def store_credentials(
    professional_id: int,
    request: CalendarCredentialsRequest,
    db: Session = Depends(get_db)
) -> CalendarConnectionResponse:
    """Encrypt and store the tokens, enabling sync for the professional."""
    professional = get_professional(db, professional_id)
    try:
        GoogleTokenManager.store_credentials(db, professional, request.model_dump())
        db.commit()
    except ValueError as e:
        db.rollback()
        logger.error(f"Failed to encrypt calendar credentials for professional {professional_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Calendar credentials could not be stored"
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Failed to store calendar credentials for professional {professional_id}: {e}")
        raise StorageError("Failed to store the calendar credentials") from e

    logger.info(f"Stored Google Calendar credentials for professional {professional_id}")
    return CalendarConnectionResponse(
        professional_id=professional.id,
        gcal_sync_enabled=professional.gcal_sync_enabled,
        has_calendar_connection=professional.has_calendar_connection,
    )


@router.delete("/calendar/credentials/{professional_id}", summary="Disconnect Google Calendar")
async def delete_credentials(
    professional_id: int,
    db: Session = Depends(get_db)
) -> CalendarConnectionResponse:
    professional = get_professional(db, professional_id)
    professional.gcal_credentials = None
    professional.gcal_sync_enabled = False
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Failed to remove calendar credentials for professional {professional_id}: {e}")
        raise StorageError("Failed to remove the calendar credentials") from e

    logger.info(f"Disconnected Google Calendar for professional {professional_id}")
    return CalendarConnectionResponse(
        professional_id=professional.id,
        gcal_sync_enabled=False,
        has_calendar_connection=False,
    )
