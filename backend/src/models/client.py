"""
Client model representing a person who books appointments or activities.

Clients are identified by their canonical phone number within an organization.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, ForeignKey, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Client(Base):
    """Client entity, unique per (organization_id, phone)."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the client."""

    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), index=True)
    """Reference to the organization the client belongs to."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Client's full name."""

    phone: Mapped[str] = mapped_column(String(32))
    """Canonical phone number as produced by normalize_phone_number."""

    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Optional email; used to invite the client to calendar events."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="clients")
    appointments = relationship("Appointment", back_populates="client")
    enrollments = relationship("GroupActivityParticipant", back_populates="client")

    __table_args__ = (
        UniqueConstraint('organization_id', 'phone', name='uq_clients_organization_phone'),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', phone='{self.phone}')>"
