"""
Organization model representing a clinic or practice.

Organizations own professionals, clients and services. Scheduling never
crosses organization boundaries: clients are unique per organization.
"""

from datetime import datetime
from sqlalchemy import String, Boolean, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Organization(Base):
    """Organization entity owning the scheduling data of one clinic."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the organization."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Display name of the organization."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive organizations keep their data but accept no bookings."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    professionals = relationship("Professional", back_populates="organization")
    clients = relationship("Client", back_populates="organization")
    services = relationship("Service", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name='{self.name}')>"
