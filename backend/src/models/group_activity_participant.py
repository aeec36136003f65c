"""
Enrollment of a client in a group activity occurrence.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_NOTES_LENGTH
from utils.datetime_utils import local_now


class GroupActivityParticipant(Base):
    """
    Participant row; at most one per (activity, client).

    A cancelled row is kept and reactivated if the client enrolls again.
    """

    __tablename__ = "group_activity_participants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    group_activity_id: Mapped[int] = mapped_column(ForeignKey("group_activities.id", ondelete="CASCADE"), index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), index=True)

    enrollment_status: Mapped[str] = mapped_column(String(50), default="confirmed")
    """One of 'confirmed', 'pending', 'waiting_list', 'cancelled'."""

    notes: Mapped[Optional[str]] = mapped_column(String(MAX_NOTES_LENGTH), nullable=True)

    enrolled_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=local_now, nullable=False)
    """When the client (re)joined; waiting list order follows this column."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    group_activity = relationship("GroupActivity", back_populates="participants")
    client = relationship("Client", back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint('group_activity_id', 'client_id', name='uq_group_activity_participants_activity_client'),
    )

    def __repr__(self) -> str:
        return (
            f"<GroupActivityParticipant(activity_id={self.group_activity_id}, "
            f"client_id={self.client_id}, status='{self.enrollment_status}')>"
        )
