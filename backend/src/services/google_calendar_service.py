# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportMissingTypeStubs=false
"""
Google Calendar service for appointment synchronization.

This module wraps the Google Calendar API v3 events resource. It knows
nothing about appointments: callers hand it a ready event body. Every call is
bounded by GOOGLE_API_TIMEOUT_SECONDS through the httplib2 transport.
"""

import json
import logging
from datetime import date, time
from typing import Any, Dict, List, Optional, Sequence

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import (
    CALENDAR_TIMEZONE, GOOGLE_API_TIMEOUT_SECONDS, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
)
from core.constants import EMAIL_REMINDER_MINUTES, GOOGLE_CALENDAR_ID, POPUP_REMINDER_MINUTES
from core.exceptions import ExternalSyncError
from utils.datetime_utils import format_calendar_datetime

logger = logging.getLogger(__name__)


class GoogleCalendarError(ExternalSyncError):
    """Custom exception for Google Calendar API errors."""

    error_type = "google_calendar_error"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _http_error_message(error: HttpError) -> str:
    try:
        details = json.loads(error.content.decode('utf-8')) if error.content else {}
    except (ValueError, UnicodeDecodeError):
        details = {}
    return details.get('error', {}).get('message', str(error))


class GoogleCalendarService:
    """
    Service for Google Calendar API operations.

    Attributes:
        credentials: Google OAuth2 credentials for API access
        calendar_id: Google Calendar ID (defaults to primary calendar)
        service: Google Calendar API service client
    """

    def __init__(
        self,
        credentials: Dict[str, Any],
        calendar_id: str = GOOGLE_CALENDAR_ID,
        timeout: float = GOOGLE_API_TIMEOUT_SECONDS
    ) -> None:
        """
        Initialize Google Calendar service.

        Args:
            credentials: Decrypted credential document with a valid access_token
            calendar_id: Google Calendar ID to operate on (defaults to primary)
            timeout: Socket timeout in seconds for every API request

        Raises:
            GoogleCalendarError: If the client cannot be built
        """
        try:
            self.credentials = Credentials(
                token=credentials["access_token"],
                refresh_token=credentials.get("refresh_token"),
                token_uri="https://oauth2.googleapis.com/token",
                client_id=GOOGLE_CLIENT_ID,
                client_secret=GOOGLE_CLIENT_SECRET,
            )
            authorized_http = AuthorizedHttp(self.credentials, http=httplib2.Http(timeout=timeout))
            self.service = build('calendar', 'v3', http=authorized_http, cache_discovery=False)
            self.calendar_id = calendar_id
        except KeyError as e:
            raise GoogleCalendarError(f"Credentials are missing {e}")
        except Exception as e:
            raise GoogleCalendarError(f"Failed to initialize Google Calendar service: {e}")

    @staticmethod
    def build_event_body(
        summary: str,
        day: date,
        start: time,
        end: time,
        description_lines: Sequence[Optional[str]] = (),
        attendee_emails: Sequence[Optional[str]] = (),
        extended_properties: Optional[Dict[str, str]] = None,
        time_zone: str = CALENDAR_TIMEZONE
    ) -> Dict[str, Any]:
        """
        Build an events resource body.

        Start and end are sent as local wall-clock times plus the calendar
        timezone. Empty description lines and attendees without email are dropped.
        """
        body: Dict[str, Any] = {
            'summary': summary or '',
            'description': "\n".join(line for line in description_lines if line),
            'start': {
                'dateTime': format_calendar_datetime(day, start),
                'timeZone': time_zone,
            },
            'end': {
                'dateTime': format_calendar_datetime(day, end),
                'timeZone': time_zone,
            },
            'reminders': {
                'useDefault': False,
                'overrides': [
                    {'method': 'email', 'minutes': EMAIL_REMINDER_MINUTES},
                    {'method': 'popup', 'minutes': POPUP_REMINDER_MINUTES},
                ],
            },
        }

        attendees: List[Dict[str, str]] = [{'email': email} for email in attendee_emails if email]
        if attendees:
            body['attendees'] = attendees

        if extended_properties:
            body['extendedProperties'] = {'private': extended_properties}

        return body

    async def create_event(self, event_body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new Google Calendar event.

        Returns:
            Google Calendar event data including event ID

        Raises:
            GoogleCalendarError: If event creation fails
        """
        try:
            logger.debug(f"Creating Google Calendar event with calendar_id={self.calendar_id}")
            event = self.service.events().insert(
                calendarId=self.calendar_id,
                body=event_body
            ).execute()
            logger.info(f"Google Calendar event created successfully: {event.get('id')}")
            return event

        except HttpError as e:
            message = _http_error_message(e)
            logger.error(f"Google Calendar API error: {message} (status: {e.resp.status})")
            raise GoogleCalendarError(f"Failed to create calendar event: {message}", status=e.resp.status)
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error creating calendar event: {e}")

    async def get_event(self, event_id: str) -> Optional[Dict[str, Any]]:
        """
        Get details of a Google Calendar event.

        Returns:
            Event data, or None when the event no longer exists (HTTP 404/410)

        Raises:
            GoogleCalendarError: If event retrieval fails for any other reason
        """
        try:
            return self.service.events().get(
                calendarId=self.calendar_id,
                eventId=event_id
            ).execute()

        except HttpError as e:
            if e.resp.status in (404, 410):
                return None
            raise GoogleCalendarError(
                f"Failed to get calendar event: {_http_error_message(e)}", status=e.resp.status
            )
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error getting calendar event: {e}")

    async def update_event(self, event_id: str, event_body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace an existing Google Calendar event.

        Raises:
            GoogleCalendarError: If event update fails
        """
        try:
            return self.service.events().update(
                calendarId=self.calendar_id,
                eventId=event_id,
                body=event_body
            ).execute()

        except HttpError as e:
            raise GoogleCalendarError(
                f"Failed to update calendar event: {_http_error_message(e)}", status=e.resp.status
            )
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error updating calendar event: {e}")

    async def delete_event(self, event_id: str) -> None:
        """
        Delete a Google Calendar event.

        Raises:
            GoogleCalendarError: If event deletion fails
        """
        try:
            self.service.events().delete(
                calendarId=self.calendar_id,
                eventId=event_id
            ).execute()

        except HttpError as e:
            if e.resp.status in (404, 410):
                # Event already deleted, treat as success
                return
            raise GoogleCalendarError(
                f"Failed to delete calendar event: {_http_error_message(e)}", status=e.resp.status
            )
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error deleting calendar event: {e}")
