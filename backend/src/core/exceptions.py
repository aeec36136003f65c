"""
Domain exceptions for the scheduling engine.

Services raise these instead of HTTP errors; the API layer maps each type to a
status code in ``main.py``. External calendar failures are the exception to the
rule: they are caught inside the synchronizer and never reach a booking caller.
"""

from typing import Sequence


class SchedulingError(Exception):
    """Base class for all scheduling engine errors."""

    status_code = 500
    error_type = "scheduling_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SchedulingError, ValueError):
    """Malformed input: missing ids, non-positive durations, invalid phone numbers."""

    status_code = 400
    error_type = "validation_error"


class NotFoundError(SchedulingError):
    """A referenced professional, service, activity or appointment does not exist."""

    status_code = 404
    error_type = "not_found"


class SlotConflictError(SchedulingError):
    """A booking overlaps an existing non-cancelled appointment of the same professional."""

    status_code = 409
    error_type = "slot_conflict"

    def __init__(self, message: str, conflicting_ids: Sequence[int] = ()) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids)


class DuplicateEnrollmentError(SchedulingError):
    """The client already holds an active enrollment in the group activity."""

    status_code = 409
    error_type = "duplicate_enrollment"


class StorageError(SchedulingError):
    """The store failed while checking or writing; the transaction was rolled back."""

    status_code = 500
    error_type = "storage_error"


class ExternalSyncError(SchedulingError):
    """Failure talking to the external calendar. Never fatal to a booking."""

    status_code = 502
    error_type = "external_sync_error"
