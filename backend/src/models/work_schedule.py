"""
Work schedule model for a professional's working intervals.

A row is either part of the weekly pattern (day_of_week set) or an exception
for one calendar date (specific_date set). When any exception row exists for a
date, it replaces the weekly pattern for that date entirely. An exception date
whose rows are all inactive is a closed day.

Multiple rows per day are allowed for split shifts (e.g., 09:00-13:00 and
16:00-20:00); overlapping rows for the same day are rejected by
WorkScheduleService before they reach the table.
"""

from datetime import date, datetime, time
from typing import Optional
from sqlalchemy import Time, Date, Boolean, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class WorkSchedule(Base):
    """One working interval of a professional, weekly or date-specific."""

    __tablename__ = "work_schedules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the work interval."""

    professional_id: Mapped[int] = mapped_column(ForeignKey("professionals.id", ondelete="CASCADE"))
    """Reference to the professional this interval belongs to."""

    day_of_week: Mapped[Optional[int]] = mapped_column(nullable=True)
    """
    Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday) for weekly rows.
    NULL for date exceptions.
    """

    specific_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """Calendar date for exception rows. NULL for weekly rows."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of the working interval."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of the working interval (exclusive)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive rows produce no slots."""

    buffer_minutes: Mapped[int] = mapped_column(default=0, nullable=False)
    """Minimum gap kept between any slot of this interval and existing appointments."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    professional = relationship("Professional", back_populates="work_schedules")
    """Relationship to the Professional entity."""

    breaks = relationship(
        "WorkScheduleBreak",
        back_populates="work_schedule",
        cascade="all, delete-orphan",
        order_by="WorkScheduleBreak.sort_order",
    )
    """Break intervals inside this working interval."""

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_work_schedules_time_order'),
        CheckConstraint('buffer_minutes >= 0', name='ck_work_schedules_buffer_non_negative'),
        CheckConstraint(
            '(day_of_week IS NULL) <> (specific_date IS NULL)',
            name='ck_work_schedules_weekday_xor_date'
        ),
        CheckConstraint(
            'day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)',
            name='ck_work_schedules_day_of_week_range'
        ),
        Index('idx_work_schedules_professional_day', 'professional_id', 'day_of_week'),
        Index('idx_work_schedules_professional_date', 'professional_id', 'specific_date'),
    )

    @property
    def is_exception(self) -> bool:
        return self.specific_date is not None

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        days = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
        weekday = self.day_of_week if self.day_of_week is not None else self.specific_date.weekday()  # type: ignore[union-attr]
        return days[weekday]

    def __repr__(self) -> str:
        target = self.specific_date.isoformat() if self.specific_date else self.day_name
        return f"<WorkSchedule(professional_id={self.professional_id}, {target}, {self.start_time}-{self.end_time})>"
