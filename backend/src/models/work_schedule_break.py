"""
Break intervals inside a working interval (lunch, admin time, ...).
"""

from datetime import datetime, time
from typing import Optional
from sqlalchemy import String, Time, Boolean, TIMESTAMP, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class WorkScheduleBreak(Base):
    """
    A sub-interval of a work schedule during which no slot may be offered.

    Breaks of the same interval may overlap each other; availability treats
    them as the union of their windows.
    """

    __tablename__ = "work_schedule_breaks"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    work_schedule_id: Mapped[int] = mapped_column(ForeignKey("work_schedules.id", ondelete="CASCADE"), index=True)
    """Reference to the owning working interval."""

    name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Label shown in the schedule editor (e.g., "Lunch")."""

    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    work_schedule = relationship("WorkSchedule", back_populates="breaks")

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='ck_work_schedule_breaks_time_order'),
    )

    def __repr__(self) -> str:
        return f"<WorkScheduleBreak(work_schedule_id={self.work_schedule_id}, {self.start_time}-{self.end_time})>"
