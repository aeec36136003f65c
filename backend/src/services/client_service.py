"""
Client service for phone-based client lookup and creation.

Bookings and group activity sign-ups identify clients by phone number. This
module resolves a typed number to an existing client of the organization, or
creates one, without committing so that callers can keep the lookup inside
their own transaction.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from models import Client
from utils.phone_validator import (
    get_phone_search_variations, validate_phone_number
)

logger = logging.getLogger(__name__)


class ClientService:
    """
    Service class for client operations.

    Contains the lookup-or-create logic shared by the booking guard and the
    group activity sign-up path.
    """

    @staticmethod
    def find_by_phone(db: Session, organization_id: int, phone: str) -> Optional[Client]:
        """
        Find a client of the organization by phone number.

        Numbers stored before normalization was enforced may carry an
        international prefix, so every search variation is tried.
        """
        variations = get_phone_search_variations(phone)
        if not variations or not variations[0]:
            return None

        return db.query(Client).filter(
            Client.organization_id == organization_id,
            Client.phone.in_(variations),
        ).order_by(Client.id).first()

    @staticmethod
    def find_or_create_by_phone(
        db: Session,
        organization_id: int,
        phone: str,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> Client:
        """
        Resolve a client by phone, creating it when missing.

        The new row is flushed, not committed. A concurrent insert of the same
        number is absorbed by re-reading the row after the unique violation.

        Raises:
            ValidationError: If the phone number is invalid or a new client has no name
        """
        try:
            canonical_phone = validate_phone_number(phone)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        client = ClientService.find_by_phone(db, organization_id, canonical_phone)
        if client:
            if email and not client.email:
                client.email = email
            return client

        if not name or not name.strip():
            raise ValidationError("Client name is required for new clients")

        client = Client(
            organization_id=organization_id,
            name=name.strip(),
            phone=canonical_phone,
            email=email,
        )
        try:
            with db.begin_nested():
                db.add(client)
        except IntegrityError:
            logger.info(f"Client with phone {canonical_phone} created concurrently; reusing it")
            existing = ClientService.find_by_phone(db, organization_id, canonical_phone)
            if existing is None:
                raise
            return existing

        logger.info(f"Created client {client.id} for organization {organization_id}")
        return client

