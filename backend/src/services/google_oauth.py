"""
Google OAuth token handling for calendar synchronization.

GoogleOAuthService talks to Google's token endpoint; GoogleTokenManager keeps
a professional's stored credentials usable by refreshing the access token
shortly before it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import httpx
from sqlalchemy.orm import Session

from core.config import GOOGLE_API_TIMEOUT_SECONDS, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from core.constants import TOKEN_REFRESH_MARGIN_MINUTES
from core.exceptions import ExternalSyncError
from models import Professional
from services.encryption_service import get_encryption_service

logger = logging.getLogger(__name__)


class CalendarCredentialsError(ExternalSyncError):
    """The professional has no usable Google Calendar credentials."""

    error_type = "calendar_credentials_error"


class GoogleOAuthService:
    """Service for Google OAuth2 token requests"""

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    DEFAULT_TOKEN_TYPE = "Bearer"

    def __init__(self, timeout: float = GOOGLE_API_TIMEOUT_SECONDS) -> None:
        super().__init__()
        self.client_id = GOOGLE_CLIENT_ID
        self.client_secret = GOOGLE_CLIENT_SECRET
        self.timeout = timeout

    async def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token for a new access token"""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token"
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.TOKEN_URL, data=data)
            response.raise_for_status()
            return response.json()


class GoogleTokenManager:
    """
    Loads, refreshes and stores a professional's Google credentials.

    Stored document: access_token, refresh_token, expires_at (epoch seconds),
    token_type, scope.
    """

    def __init__(self, oauth_service: GoogleOAuthService | None = None) -> None:
        self.oauth_service = oauth_service or GoogleOAuthService()

    @staticmethod
    def needs_refresh(credentials: Dict[str, Any], now: datetime | None = None) -> bool:
        """True when the access token is missing or expires within the refresh margin."""
        if not credentials.get("access_token"):
            return True
        expires_at = credentials.get("expires_at")
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expiry = datetime.fromtimestamp(float(expires_at), tz=timezone.utc)
        return expiry - now <= timedelta(minutes=TOKEN_REFRESH_MARGIN_MINUTES)

    @staticmethod
    def load_credentials(professional: Professional) -> Dict[str, Any]:
        """
        Decrypt the stored credentials of a professional.

        Raises:
            CalendarCredentialsError: Sync disabled, nothing stored, or undecryptable
        """
        if not professional.gcal_sync_enabled:
            raise CalendarCredentialsError(f"Google Calendar sync is disabled for professional {professional.id}")
        if not professional.gcal_credentials:
            raise CalendarCredentialsError(f"Professional {professional.id} has no Google Calendar credentials")
        try:
            return get_encryption_service().decrypt_data(professional.gcal_credentials)
        except ValueError as e:
            raise CalendarCredentialsError(
                f"Stored Google Calendar credentials of professional {professional.id} are invalid: {e}"
            ) from e

    @staticmethod
    def store_credentials(db: Session, professional: Professional, token_data: Dict[str, Any]) -> None:
        """Encrypt and store a token response, enabling sync. Flushes, does not commit."""
        credentials = {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_at": GoogleTokenManager._expires_at(token_data),
            "token_type": token_data.get("token_type") or GoogleOAuthService.DEFAULT_TOKEN_TYPE,
            "scope": token_data.get("scope"),
        }
        professional.gcal_credentials = get_encryption_service().encrypt_data(credentials)
        professional.gcal_sync_enabled = True
        db.flush()

    async def get_valid_credentials(self, db: Session, professional: Professional) -> Dict[str, Any]:
        """
        Return credentials with an access token valid for at least the refresh margin.

        A refreshed token is written back to the professional (flushed only).

        Raises:
            CalendarCredentialsError: No credentials, no refresh token, or refresh failed
        """
        credentials = self.load_credentials(professional)
        if not self.needs_refresh(credentials):
            return credentials

        refresh_token = credentials.get("refresh_token")
        if not refresh_token:
            raise CalendarCredentialsError(
                f"Access token of professional {professional.id} expired and no refresh token is stored"
            )

        try:
            token_data = await self.oauth_service.refresh_access_token(refresh_token)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to refresh Google token for professional {professional.id}: {e}")
            raise CalendarCredentialsError(f"Failed to refresh Google access token: {e}") from e
        except ValueError as e:
            # Non-JSON body (e.g. an HTML error page)
            logger.warning(f"Malformed Google token response for professional {professional.id}: {e}")
            raise CalendarCredentialsError(f"Malformed Google token response: {e}") from e

        if not isinstance(token_data, dict) or "access_token" not in token_data:
            raise CalendarCredentialsError("Google token response did not include an access token")

        try:
            expires_at = self._expires_at(token_data)
        except (TypeError, ValueError) as e:
            raise CalendarCredentialsError(f"Google token response has an invalid expires_in: {e}") from e

        credentials["access_token"] = token_data["access_token"]
        credentials["expires_at"] = expires_at
        if token_data.get("refresh_token"):
            credentials["refresh_token"] = token_data["refresh_token"]

        professional.gcal_credentials = get_encryption_service().encrypt_data(credentials)
        db.flush()
        logger.info(f"Refreshed Google access token for professional {professional.id}")
        return credentials

    @staticmethod
    def _expires_at(token_data: Dict[str, Any]) -> float | None:
        expires_in = token_data.get("expires_in")
        if expires_in is None:
            return None
        return (datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))).timestamp()
