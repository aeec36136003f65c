"""
Appointment model representing a booked block of a professional's time.

Individual bookings link a client; group activity occurrences reserve a block
with no client (is_group_activity=True) so that both kinds of booking are
checked against the same set of rows.

On PostgreSQL the table additionally carries the exclusion constraint
``ex_appointments_no_overlap`` (created by the baseline migration) which rejects
two non-cancelled rows of the same professional whose [start, end) ranges
overlap.
"""

from datetime import date as date_type, datetime, time
from typing import Optional
from sqlalchemy import String, Date, Time, Boolean, ForeignKey, Index, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_NOTES_LENGTH

EXCLUSION_CONSTRAINT_NAME = "ex_appointments_no_overlap"


class Appointment(Base):
    """Appointment entity: a professional, a date and a half-open time range."""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the appointment."""

    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    professional_id: Mapped[int] = mapped_column(ForeignKey("professionals.id"))
    """Reference to the professional whose time is booked."""

    client_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)
    """Reference to the client. NULL for group activity blocks."""

    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey("services.id"), nullable=True)
    """Optional service the duration was taken from."""

    date: Mapped[date_type] = mapped_column(Date)
    """Calendar date of the appointment (calendar timezone)."""

    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    duration: Mapped[int] = mapped_column()
    """Length in minutes (end_time - start_time)."""

    status: Mapped[str] = mapped_column(String(50), default="confirmed")
    """One of 'pending', 'confirmed', 'cancelled', 'completed', 'no_show'. Only 'cancelled' frees the slot."""

    notes: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)

    is_group_activity: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """True when this row is the time block reserved by a group activity occurrence."""

    google_calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Identifier of the mirrored Google Calendar event, once synced."""

    synced_with_google: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Whether the last sync attempt succeeded."""

    last_google_sync: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    professional = relationship("Professional", back_populates="appointments")
    client = relationship("Client", back_populates="appointments")
    service = relationship("Service")
    group_activity = relationship("GroupActivity", back_populates="appointment", uselist=False)

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_appointments_time_order'),
        Index('idx_appointments_professional_date', 'professional_id', 'date'),
        Index('idx_appointments_professional_date_status', 'professional_id', 'date', 'status'),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, professional_id={self.professional_id}, "
            f"{self.date} {self.start_time}-{self.end_time}, status='{self.status}')>"
        )
