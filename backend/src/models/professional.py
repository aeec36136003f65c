"""
Professional model representing a practitioner who can be booked.

A professional owns a work schedule (weekly pattern plus date exceptions) and
the appointments booked against it. The professional row doubles as the lock
target that serialises concurrent bookings for the same calendar.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, Text, ForeignKey, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Professional(Base):
    """
    Professional entity with an optional Google Calendar connection.

    Calendar credentials are stored encrypted (see EncryptionService) as a JSON
    document with access_token, refresh_token and expires_at.
    """

    __tablename__ = "professionals"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the professional."""

    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), index=True)
    """Reference to the organization the professional works for."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Full name shown in calendar event titles."""

    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Contact email of the professional."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive professionals have no availability."""

    gcal_credentials: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Fernet-encrypted JSON with the Google OAuth tokens."""

    gcal_sync_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Whether bookings should be pushed to the professional's Google Calendar."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="professionals")
    """Relationship to the owning Organization."""

    work_schedules = relationship("WorkSchedule", back_populates="professional", cascade="all, delete-orphan")
    """Weekly pattern rows and date exception rows."""

    appointments = relationship("Appointment", back_populates="professional")
    """Appointments booked against this professional."""

    @property
    def has_calendar_connection(self) -> bool:
        return bool(self.gcal_sync_enabled and self.gcal_credentials)

    def __repr__(self) -> str:
        return f"<Professional(id={self.id}, name='{self.name}')>"
