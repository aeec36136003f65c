"""
Group activity model: a class or workshop with a soft participant cap.

Each occurrence of a recurring activity is its own row; occurrences of one
series share recurrence_series_id. Every occurrence reserves a block of the
professional's time through an Appointment row (appointment_id).
"""

from datetime import date as date_type, datetime, time
from typing import Optional
from sqlalchemy import String, Text, Date, Time, Boolean, ForeignKey, Index, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class GroupActivity(Base):
    """One dated occurrence of a group activity."""

    __tablename__ = "group_activities"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    professional_id: Mapped[int] = mapped_column(ForeignKey("professionals.id"), index=True)
    """Professional leading the activity."""

    appointment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("appointments.id"), nullable=True)
    """Time block reserved in the professional's calendar."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    date: Mapped[date_type] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    max_participants: Mapped[int] = mapped_column()
    """Number of confirmed places; further enrollments go to the waiting list."""

    status: Mapped[str] = mapped_column(String(50), default="active")
    """One of 'active', 'completed', 'cancelled'."""

    recurrence_series_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    """UUID shared by all occurrences created from one recurrence rule."""

    google_calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    synced_with_google: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_google_sync: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    professional = relationship("Professional")
    appointment = relationship("Appointment", back_populates="group_activity")
    participants = relationship(
        "GroupActivityParticipant",
        back_populates="group_activity",
        cascade="all, delete-orphan",
        order_by="GroupActivityParticipant.enrolled_at",
    )

    __table_args__ = (
        CheckConstraint('max_participants >= 1', name='ck_group_activities_capacity_positive'),
        CheckConstraint('start_time < end_time', name='ck_group_activities_time_order'),
        Index('idx_group_activities_professional_date', 'professional_id', 'date'),
    )

    def __repr__(self) -> str:
        return f"<GroupActivity(id={self.id}, name='{self.name}', {self.date} {self.start_time}-{self.end_time})>"
