"""
Group activity service: series creation and capacity tracking.

A group activity is a class or workshop led by one professional. Each dated
occurrence reserves the professional's time through the booking guard and
tracks its own participants against a soft cap: once the confirmed places
are taken, new enrollments are accepted onto the waiting list.
"""

import logging
import uuid
from datetime import date as date_type
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import ENROLLMENT_STATUSES
from core.exceptions import (
    DuplicateEnrollmentError, NotFoundError, SchedulingError, SlotConflictError,
    StorageError, ValidationError
)
from models import Client, GroupActivity, GroupActivityParticipant
from services.appointment_service import AppointmentService
from services.client_service import ClientService
from services.recurrence_service import RecurrenceService
from shared_types.group_activity import (
    OccurrencePreview, ParticipantStats, SeriesCreationResult, SkippedOccurrence
)
from shared_types.recurrence import RecurrenceRule
from utils.datetime_utils import local_now
from utils.query_helpers import get_group_activity, get_or_404, get_participant, get_professional

logger = logging.getLogger(__name__)


class GroupActivityService:
    """
    Service class for group activity operations.

    Enrollment changes lock the activity row so that two concurrent
    enrollments cannot both take the last confirmed place.
    """

    @staticmethod
    def calculate_stats(statuses: Iterable[str], max_participants: int) -> ParticipantStats:
        """
        Aggregate enrollment statuses into participant counts.

        Args:
            statuses: enrollment_status of every participant row
            max_participants: Confirmed-place cap of the activity
        """
        stats = ParticipantStats(max_participants=max_participants)
        for status in statuses:
            if status == "confirmed":
                stats.confirmed_participants += 1
            elif status == "pending":
                stats.pending_participants += 1
            elif status == "waiting_list":
                stats.waiting_list_participants += 1
        return stats

    @staticmethod
    def decide_enrollment_status(confirmed_count: int, max_participants: int) -> str:
        """A new participant is confirmed while places remain, else waits."""
        return "confirmed" if confirmed_count < max_participants else "waiting_list"

    @staticmethod
    def get_stats(db: Session, activity_id: int) -> ParticipantStats:
        activity = get_group_activity(db, activity_id)
        return GroupActivityService._stats_for(db, activity)

    @staticmethod
    def create_group_activity(
        db: Session,
        organization_id: int,
        professional_id: int,
        name: str,
        date: date_type,
        start_time: Any,
        end_time: Any,
        max_participants: int,
        description: Optional[str] = None,
        recurrence: Optional[RecurrenceRule] = None,
        skip_conflicts: bool = False
    ) -> SeriesCreationResult:
        """
        Create a group activity, or one occurrence per date of a recurrence rule.

        Every occurrence reserves the professional's time through the booking
        guard. The whole series is written in one transaction.

        Args:
            skip_conflicts: Leave out occurrences whose time is taken instead of
                failing the whole series; they are reported in ``skipped``

        Raises:
            ValidationError: Bad name, capacity, times or recurrence rule
            NotFoundError: Unknown professional
            SlotConflictError: An occurrence overlaps an appointment and skip_conflicts is False
        """
        if not name or not name.strip():
            raise ValidationError("Activity name is required")
        if not isinstance(max_participants, int) or max_participants < 1:
            raise ValidationError("max_participants must be at least 1")

        professional = get_professional(db, professional_id)
        if professional.organization_id != organization_id:
            raise NotFoundError(f"Professional {professional_id} not found")

        dates = [date]
        if recurrence is not None:
            dates = RecurrenceService.generate_recurrence_dates(date, recurrence)
        series_id = str(uuid.uuid4()) if recurrence is not None else None

        result = SeriesCreationResult(recurrence_series_id=series_id)
        try:
            for occurrence_date in dates:
                try:
                    block = AppointmentService.reserve_time_block(
                        db, organization_id, professional_id, occurrence_date,
                        start_time, end_time, notes=name.strip(), commit=False,
                    )
                except SlotConflictError as e:
                    if not skip_conflicts:
                        raise
                    result.skipped.append(SkippedOccurrence(
                        date=occurrence_date,
                        reason=e.message,
                        conflicting_appointment_ids=e.conflicting_ids,
                    ))
                    continue

                activity = GroupActivity(
                    organization_id=organization_id,
                    professional_id=professional_id,
                    appointment_id=block.id,
                    name=name.strip(),
                    description=description,
                    date=occurrence_date,
                    start_time=block.start_time,
                    end_time=block.end_time,
                    max_participants=max_participants,
                    status="active",
                    recurrence_series_id=series_id,
                )
                db.add(activity)
                result.activities.append(activity)

            db.commit()
        except SchedulingError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to create group activity '{name}': {e}")
            raise StorageError("Failed to create the group activity") from e

        for activity in result.activities:
            db.refresh(activity)

        logger.info(
            f"Created {len(result.activities)} occurrence(s) of group activity '{name}' "
            f"for professional {professional_id} (series {series_id}, skipped {len(result.skipped)})"
        )
        return result

    @staticmethod
    def preview_series(
        db: Session,
        professional_id: int,
        start_date: date_type,
        start_time: Any,
        end_time: Any,
        rule: Optional[RecurrenceRule]
    ) -> List[OccurrencePreview]:
        """Dates a series would occupy, each flagged with conflicting appointments. Writes nothing."""
        get_professional(db, professional_id)
        dates = [start_date] if rule is None else RecurrenceService.generate_recurrence_dates(start_date, rule)

        previews: List[OccurrencePreview] = []
        for occurrence_date in dates:
            conflicts = AppointmentService.find_conflicts(
                db, professional_id, occurrence_date, start_time, end_time
            )
            previews.append(OccurrencePreview(
                date=occurrence_date,
                conflicting_appointment_ids=[conflict.id for conflict in conflicts],
            ))
        return previews

    @staticmethod
    def cancel_group_activity(db: Session, activity_id: int) -> GroupActivity:
        """Cancel an occurrence and free the time it reserved."""
        activity = get_group_activity(db, activity_id, lock=True)
        if activity.status == "cancelled":
            return activity

        try:
            activity.status = "cancelled"
            if activity.appointment_id is not None:
                AppointmentService.cancel_appointment(
                    db, activity.appointment_id, commit=False, allow_group_block=True
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to cancel group activity {activity_id}: {e}")
            raise StorageError("Failed to cancel the group activity") from e

        logger.info(f"Cancelled group activity {activity_id}")
        return activity

    @staticmethod
    def enroll_participant(
        db: Session,
        activity_id: int,
        client_id: int,
        notes: Optional[str] = None,
        status: Optional[str] = None
    ) -> GroupActivityParticipant:
        """
        Enroll a client in an activity occurrence.

        The participant is confirmed while confirmed places remain and put on
        the waiting list otherwise. A request for 'pending' is honoured only
        while places remain. A previously cancelled enrollment of the same
        client is reactivated instead of inserting a second row.

        Raises:
            DuplicateEnrollmentError: The client already holds an active enrollment
            ValidationError: The activity is not active or the status is unknown
        """
        if status is not None and status not in ("confirmed", "pending", "waiting_list"):
            raise ValidationError(f"Invalid enrollment status: {status}")

        try:
            activity = get_group_activity(db, activity_id, lock=True)
            if activity.status != "active":
                raise ValidationError(f"Group activity {activity_id} is {activity.status}")

            client = get_or_404(db, Client, client_id, "Client")
            if client.organization_id != activity.organization_id:
                raise NotFoundError(f"Client {client_id} not found")

            participant = GroupActivityService._enroll_locked(db, activity, client.id, notes, status)
            db.commit()
        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            raise DuplicateEnrollmentError(
                f"Client {client_id} is already enrolled in activity {activity_id}"
            ) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to enroll client {client_id} in activity {activity_id}: {e}")
            raise StorageError("Failed to enroll the participant") from e

        db.refresh(participant)
        logger.info(
            f"Enrolled client {client_id} in group activity {activity_id} as {participant.enrollment_status}"
        )
        return participant

    @staticmethod
    def enroll_client_by_phone(
        db: Session,
        activity_id: int,
        phone: str,
        name: Optional[str],
        email: Optional[str] = None,
        notes: Optional[str] = None
    ) -> GroupActivityParticipant:
        """Public sign-up: resolve (or create) the client by phone, then enroll."""
        activity = get_group_activity(db, activity_id)
        try:
            client = ClientService.find_or_create_by_phone(db, activity.organization_id, phone, name, email)
            db.commit()
        except SchedulingError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to resolve client for sign-up to activity {activity_id}: {e}")
            raise StorageError("Failed to register the client") from e
        return GroupActivityService.enroll_participant(db, activity_id, client.id, notes=notes)

    @staticmethod
    def update_participant_status(db: Session, participant_id: int, status: str) -> GroupActivityParticipant:
        """
        Set a participant's enrollment status.

        Any transition among the enrollment statuses is accepted; the cap only
        applies when enrolling.
        """
        if status not in ENROLLMENT_STATUSES:
            raise ValidationError(
                f"Invalid enrollment status '{status}'. Allowed: {', '.join(ENROLLMENT_STATUSES)}"
            )
        participant = get_participant(db, participant_id)
        previous = participant.enrollment_status
        participant.enrollment_status = status
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to update participant {participant_id}: {e}")
            raise StorageError("Failed to update the participant") from e

        logger.info(f"Participant {participant_id} status changed from {previous} to {status}")
        return participant

    @staticmethod
    def remove_participant(db: Session, participant_id: int) -> None:
        """Delete a participant row outright."""
        participant = get_participant(db, participant_id)
        try:
            db.delete(participant)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to remove participant {participant_id}: {e}")
            raise StorageError("Failed to remove the participant") from e
        logger.info(f"Removed participant {participant_id}")

    @staticmethod
    def promote_from_waiting_list(db: Session, activity_id: int) -> Optional[GroupActivityParticipant]:
        """
        Confirm the longest-waiting participant if a confirmed place is free.

        Returns:
            The promoted participant, or None when nobody waits or no place is free
        """
        try:
            activity = get_group_activity(db, activity_id, lock=True)
            stats = GroupActivityService._stats_for(db, activity)
            if stats.available_spots == 0:
                db.rollback()
                return None

            waiting = db.query(GroupActivityParticipant).filter(
                GroupActivityParticipant.group_activity_id == activity_id,
                GroupActivityParticipant.enrollment_status == "waiting_list",
            ).order_by(
                GroupActivityParticipant.enrolled_at, GroupActivityParticipant.id
            ).first()
            if waiting is None:
                db.rollback()
                return None

            waiting.enrollment_status = "confirmed"
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to promote waiting list of activity {activity_id}: {e}")
            raise StorageError("Failed to promote from the waiting list") from e

        logger.info(f"Promoted participant {waiting.id} from the waiting list of activity {activity_id}")
        return waiting

    @staticmethod
    def _enroll_locked(
        db: Session,
        activity: GroupActivity,
        client_id: int,
        notes: Optional[str],
        requested_status: Optional[str]
    ) -> GroupActivityParticipant:
        """Enrollment decision; the caller holds the activity row lock."""
        existing = db.query(GroupActivityParticipant).filter(
            GroupActivityParticipant.group_activity_id == activity.id,
            GroupActivityParticipant.client_id == client_id,
        ).first()
        if existing is not None and existing.enrollment_status != "cancelled":
            raise DuplicateEnrollmentError(
                f"Client {client_id} is already enrolled in activity {activity.id}"
            )

        stats = GroupActivityService._stats_for(db, activity)
        status = GroupActivityService.decide_enrollment_status(
            stats.confirmed_participants, activity.max_participants
        )
        if requested_status is not None and status == "confirmed":
            status = requested_status

        if existing is not None:
            existing.enrollment_status = status
            existing.enrolled_at = local_now()
            if notes is not None:
                existing.notes = notes
            db.flush()
            return existing

        participant = GroupActivityParticipant(
            group_activity_id=activity.id,
            client_id=client_id,
            enrollment_status=status,
            notes=notes,
            enrolled_at=local_now(),
        )
        db.add(participant)
        db.flush()
        return participant

    @staticmethod
    def _stats_for(db: Session, activity: GroupActivity) -> ParticipantStats:
        statuses = [
            row.enrollment_status
            for row in db.query(GroupActivityParticipant.enrollment_status).filter(
                GroupActivityParticipant.group_activity_id == activity.id
            )
        ]
        return GroupActivityService.calculate_stats(statuses, activity.max_participants)

    @staticmethod
    def serialize_activity(activity: GroupActivity, stats: Optional[ParticipantStats] = None) -> dict[str, Any]:
        """Dictionary form of an occurrence for API responses."""
        data: dict[str, Any] = {
            "id": activity.id,
            "professional_id": activity.professional_id,
            "appointment_id": activity.appointment_id,
            "name": activity.name,
            "description": activity.description,
            "date": activity.date.isoformat(),
            "start_time": activity.start_time.strftime('%H:%M'),
            "end_time": activity.end_time.strftime('%H:%M'),
            "max_participants": activity.max_participants,
            "status": activity.status,
            "recurrence_series_id": activity.recurrence_series_id,
            "synced_with_google": activity.synced_with_google,
        }
        if stats is not None:
            data["stats"] = stats.to_dict()
        return data
