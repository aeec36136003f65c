"""
Calendar sync service: mirrors bookings into professionals' Google Calendars.

Synchronization is idempotent and never fatal. A record that already has an
event id is updated in place (or re-created if the event was deleted on
Google's side); a record without one gets a new event. Any failure is logged,
leaves the record marked as not synced and is reported in the returned
SyncResult. Nothing here raises into the booking flow.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import get_db_context
from core.exceptions import ExternalSyncError, NotFoundError
from models import Appointment, GroupActivity, GroupActivityParticipant, Professional
from services.google_calendar_service import GoogleCalendarService
from services.google_oauth import GoogleTokenManager
from utils.appointment_queries import filter_future_appointments
from utils.datetime_utils import local_now, local_today
from utils.query_helpers import get_appointment, get_group_activity, get_professional

logger = logging.getLogger(__name__)

SyncTarget = Union[Appointment, GroupActivity]

SYNC_KIND_APPOINTMENT = "appointment"
SYNC_KIND_GROUP_ACTIVITY = "group_activity"
SYNC_KIND_DELETE_APPOINTMENT = "delete_appointment"


@dataclass
class SyncResult:
    """Outcome of one synchronization attempt."""
    success: bool
    action: Optional[str] = None  # 'created', 'updated', 'deleted' or 'skipped'
    event_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "event_id": self.event_id,
            "error": self.error,
        }


@dataclass
class BulkSyncResult:
    """Outcome of a sync-all pass."""
    synced: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.synced + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "synced": self.synced,
            "failed": self.failed,
            "errors": self.errors,
        }


class CalendarSyncService:
    """
    Synchronizes appointments and group activities to Google Calendar.

    Args:
        token_manager: Provides valid credentials per professional
        calendar_factory: Builds a calendar client from decrypted credentials
    """

    def __init__(
        self,
        token_manager: Optional[GoogleTokenManager] = None,
        calendar_factory: Optional[Callable[[Dict[str, Any]], GoogleCalendarService]] = None
    ) -> None:
        self.token_manager = token_manager or GoogleTokenManager()
        self.calendar_factory = calendar_factory or GoogleCalendarService

    async def sync_appointment(self, db: Session, appointment_id: int) -> SyncResult:
        """
        Push an individual appointment to its professional's calendar.

        Cancelled appointments have their event removed instead.
        """
        appointment = get_appointment(db, appointment_id)
        if appointment.is_cancelled:
            return await self.delete_appointment_event(db, appointment_id)

        body = self._appointment_event_body(appointment)
        return await self._sync_record(db, appointment, appointment.professional, body)

    async def sync_group_activity(self, db: Session, activity_id: int) -> SyncResult:
        """Push a group activity occurrence to its professional's calendar."""
        activity = get_group_activity(db, activity_id)
        if activity.status == "cancelled":
            return await self.delete_group_activity_event(db, activity_id)

        body = self._group_activity_event_body(db, activity)
        return await self._sync_record(db, activity, activity.professional, body)

    async def delete_appointment_event(self, db: Session, appointment_id: int) -> SyncResult:
        """Remove the calendar event of an appointment, if it has one."""
        appointment = get_appointment(db, appointment_id)
        return await self._delete_record_event(db, appointment, appointment.professional)

    async def delete_group_activity_event(self, db: Session, activity_id: int) -> SyncResult:
        """Remove the calendar event of a group activity occurrence, if it has one."""
        activity = get_group_activity(db, activity_id)
        return await self._delete_record_event(db, activity, activity.professional)

    async def sync_all_pending(self, db: Session, professional_id: int) -> BulkSyncResult:
        """
        Sync every upcoming record of a professional that is not yet synced.

        Covers non-cancelled individual appointments (group blocks are synced
        through their activity) and active group activities.
        """
        get_professional(db, professional_id)
        result = BulkSyncResult()

        appointments = filter_future_appointments(
            db.query(Appointment).filter(
                Appointment.professional_id == professional_id,
                Appointment.status != "cancelled",
                Appointment.is_group_activity.is_(False),
                Appointment.synced_with_google.is_(False),
            )
        ).order_by(Appointment.date, Appointment.start_time).all()

        activities = db.query(GroupActivity).filter(
            GroupActivity.professional_id == professional_id,
            GroupActivity.status == "active",
            GroupActivity.synced_with_google.is_(False),
            GroupActivity.date >= local_today(),
        ).order_by(GroupActivity.date, GroupActivity.start_time).all()

        for appointment in appointments:
            outcome = await self.sync_appointment(db, appointment.id)
            self._tally(result, SYNC_KIND_APPOINTMENT, appointment.id, outcome)

        for activity in activities:
            outcome = await self.sync_group_activity(db, activity.id)
            self._tally(result, SYNC_KIND_GROUP_ACTIVITY, activity.id, outcome)

        logger.info(
            f"Sync-all for professional {professional_id}: {result.synced} synced, {result.failed} failed"
        )
        return result

    async def _sync_record(
        self,
        db: Session,
        record: SyncTarget,
        professional: Professional,
        body: Dict[str, Any]
    ) -> SyncResult:
        label = self._label(record)
        try:
            credentials = await self.token_manager.get_valid_credentials(db, professional)
            calendar = self.calendar_factory(credentials)

            event: Optional[Dict[str, Any]] = None
            action = "created"
            if record.google_calendar_event_id:
                existing = await calendar.get_event(record.google_calendar_event_id)
                if existing is not None:
                    event = await calendar.update_event(record.google_calendar_event_id, body)
                    action = "updated"
                else:
                    logger.info(f"Calendar event of {label} no longer exists; creating a new one")

            if event is None:
                event = await calendar.create_event(body)

            record.google_calendar_event_id = event.get("id") or record.google_calendar_event_id
            record.synced_with_google = True
            record.last_google_sync = local_now()
            db.commit()

        except ExternalSyncError as e:
            logger.warning(f"Google Calendar sync failed for {label}: {e.message}")
            self._mark_not_synced(db, record, label)
            return SyncResult(success=False, error=e.message)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to store sync state of {label}: {e}")
            return SyncResult(success=False, error="Failed to store sync state")
        except Exception as e:
            logger.exception(f"Unexpected error syncing {label} to Google Calendar: {e}")
            db.rollback()
            self._mark_not_synced(db, record, label)
            return SyncResult(success=False, error=f"Unexpected sync error: {e}")

        logger.info(f"Synced {label} to Google Calendar ({action}, event {record.google_calendar_event_id})")
        return SyncResult(success=True, action=action, event_id=record.google_calendar_event_id)

    async def _delete_record_event(
        self,
        db: Session,
        record: SyncTarget,
        professional: Professional
    ) -> SyncResult:
        label = self._label(record)
        event_id = record.google_calendar_event_id
        if not event_id:
            return SyncResult(success=True, action="skipped")

        try:
            credentials = await self.token_manager.get_valid_credentials(db, professional)
            calendar = self.calendar_factory(credentials)
            await calendar.delete_event(event_id)

            record.google_calendar_event_id = None
            record.synced_with_google = False
            record.last_google_sync = local_now()
            db.commit()

        except ExternalSyncError as e:
            logger.warning(f"Failed to delete Google Calendar event of {label}: {e.message}")
            db.rollback()
            return SyncResult(success=False, event_id=event_id, error=e.message)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to store sync state of {label}: {e}")
            return SyncResult(success=False, event_id=event_id, error="Failed to store sync state")
        except Exception as e:
            logger.exception(f"Unexpected error deleting Google Calendar event of {label}: {e}")
            db.rollback()
            return SyncResult(success=False, event_id=event_id, error=f"Unexpected sync error: {e}")

        logger.info(f"Deleted Google Calendar event {event_id} of {label}")
        return SyncResult(success=True, action="deleted", event_id=event_id)

    @staticmethod
    def _mark_not_synced(db: Session, record: SyncTarget, label: str) -> None:
        try:
            record.synced_with_google = False
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to mark {label} as not synced: {e}")

    @staticmethod
    def _tally(result: BulkSyncResult, kind: str, record_id: int, outcome: SyncResult) -> None:
        if outcome.success:
            result.synced += 1
        else:
            result.failed += 1
            result.errors.append({"kind": kind, "id": record_id, "error": outcome.error})

    @staticmethod
    def _label(record: SyncTarget) -> str:
        if isinstance(record, GroupActivity):
            return f"group activity {record.id}"
        return f"appointment {record.id}"

    @staticmethod
    def _appointment_event_body(appointment: Appointment) -> Dict[str, Any]:
        client = appointment.client
        service = appointment.service
        client_name = client.name if client else "Reserved"
        summary = f"{client_name} - {service.name}" if service else client_name

        description_lines = [
            f"Client: {client.name}" if client else None,
            f"Phone: {client.phone}" if client else None,
            f"Email: {client.email}" if client and client.email else None,
            f"Service: {service.name}" if service else None,
            f"Notes: {appointment.notes}" if appointment.notes else None,
            f"Status: {appointment.status}",
        ]

        return GoogleCalendarService.build_event_body(
            summary=summary,
            day=appointment.date,
            start=appointment.start_time,
            end=appointment.end_time,
            description_lines=description_lines,
            attendee_emails=[client.email] if client else [],
            extended_properties={"appointment_id": str(appointment.id)},
        )

    @staticmethod
    def _group_activity_event_body(db: Session, activity: GroupActivity) -> Dict[str, Any]:
        participants = db.query(GroupActivityParticipant).filter(
            GroupActivityParticipant.group_activity_id == activity.id,
            GroupActivityParticipant.enrollment_status.in_(("confirmed", "pending")),
        ).order_by(GroupActivityParticipant.enrolled_at).all()
        confirmed = sum(1 for p in participants if p.enrollment_status == "confirmed")

        description_lines = [
            activity.description,
            f"Participants: {confirmed}/{activity.max_participants}",
            "Attendees: " + ", ".join(p.client.name for p in participants) if participants else None,
        ]

        return GoogleCalendarService.build_event_body(
            summary=f"{activity.name} (group)",
            day=activity.date,
            start=activity.start_time,
            end=activity.end_time,
            description_lines=description_lines,
            attendee_emails=[p.client.email for p in participants],
            extended_properties={"group_activity_id": str(activity.id)},
        )


def run_sync_in_background(kind: str, record_id: int) -> None:
    """
    Sync one record after the request that wrote it has committed.

    Meant for FastAPI BackgroundTasks: it opens its own session and, like every
    sync path, only logs failures. Professionals without a calendar connection
    are skipped silently.
    """
    async def _run() -> None:
        with get_db_context() as db:
            service = CalendarSyncService()
            if kind == SYNC_KIND_APPOINTMENT:
                record: SyncTarget = get_appointment(db, record_id)
            elif kind == SYNC_KIND_GROUP_ACTIVITY:
                record = get_group_activity(db, record_id)
            elif kind == SYNC_KIND_DELETE_APPOINTMENT:
                record = get_appointment(db, record_id)
            else:
                raise ValueError(f"Unknown sync kind: {kind}")

            if not record.professional.has_calendar_connection:
                logger.debug(f"Professional {record.professional_id} has no calendar connection; skipping sync")
                return

            if kind == SYNC_KIND_APPOINTMENT:
                await service.sync_appointment(db, record_id)
            elif kind == SYNC_KIND_GROUP_ACTIVITY:
                await service.sync_group_activity(db, record_id)
            else:
                await service.delete_appointment_event(db, record_id)

    try:
        asyncio.run(_run())
    except NotFoundError as e:
        logger.warning(f"Background calendar sync skipped: {e.message}")
    except Exception as e:
        logger.exception(f"Background calendar sync of {kind} {record_id} failed: {e}")
