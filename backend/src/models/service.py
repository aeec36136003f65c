"""
Service model representing a bookable treatment with a fixed duration.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, Boolean, ForeignKey, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Service(Base):
    """Service entity; its duration drives slot length for public bookings."""

    __tablename__ = "services"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), index=True)

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Name of the service (e.g., "Fisioterapia 60 min")."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    duration_minutes: Mapped[int] = mapped_column()
    """Length of one session in minutes."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    organization = relationship("Organization", back_populates="services")

    __table_args__ = (
        CheckConstraint('duration_minutes > 0', name='ck_services_duration_positive'),
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name='{self.name}', duration={self.duration_minutes})>"
