"""
Test configuration and shared fixtures for the clinic scheduling test suite.

Every test gets its own SQLite database file with the schema created from the
models. The engine is built with create_db_engine, so the same BEGIN IMMEDIATE
locking that serialises bookings in development also applies under test.
"""

import os
import tempfile

# Point the application at a throwaway database before anything imports core.config
_IMPORT_DB_DIR = tempfile.mkdtemp(prefix="clinic-scheduling-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_IMPORT_DB_DIR, 'import.db')}"

import pytest
from datetime import date, time
from typing import Any, Dict, Generator, Iterable, List, Optional
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

import core.database
from core.database import Base, create_db_engine, get_db
from models import Appointment, Client, Organization, Professional, Service
from services import WorkScheduleService
from services.encryption_service import EncryptionService


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """
    Create a database engine backed by a fresh SQLite file.

    Uses a file rather than :memory: so that concurrent sessions from
    different threads see the same database.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine, monkeypatch):
    """
    Session factory bound to the test engine.

    Also replaces core.database.SessionLocal so that get_db and get_db_context
    (used by background calendar sync) open sessions on the test database.
    """
    factory = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=db_engine,
        expire_on_commit=False,
    )
    monkeypatch.setattr(core.database, "SessionLocal", factory)
    return factory


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session) -> Generator[TestClient, None, None]:
    """TestClient whose requests share the test's database session."""
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def encryption_service(monkeypatch) -> EncryptionService:
    """Install an encryption service with a random key."""
    service = EncryptionService(Fernet.generate_key().decode())
    monkeypatch.setattr("services.encryption_service._encryption_service", service)
    return service


# Model factories

@pytest.fixture
def organization(db_session) -> Organization:
    org = Organization(name="Clínica Norte", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def professional(db_session, organization) -> Professional:
    prof = Professional(
        organization_id=organization.id,
        name="Dra. Laura Gómez",
        email="laura@example.com",
        is_active=True,
    )
    db_session.add(prof)
    db_session.commit()
    return prof


@pytest.fixture
def other_professional(db_session, organization) -> Professional:
    prof = Professional(
        organization_id=organization.id,
        name="Dr. Pablo Ruiz",
        email="pablo@example.com",
        is_active=True,
    )
    db_session.add(prof)
    db_session.commit()
    return prof


@pytest.fixture
def service(db_session, organization) -> Service:
    svc = Service(organization_id=organization.id, name="Fisioterapia", duration_minutes=30)
    db_session.add(svc)
    db_session.commit()
    return svc


@pytest.fixture
def client_record(db_session, organization) -> Client:
    record = Client(
        organization_id=organization.id,
        name="Ana Martín",
        phone="612345678",
        email="ana@example.com",
    )
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def weekday_schedule(db_session, professional):
    """Monday to Friday 09:00-17:00 with a 13:00-14:00 lunch break."""
    return set_weekly_schedule(
        db_session,
        professional.id,
        days=range(5),
        start_time="09:00",
        end_time="17:00",
        breaks=[{"name": "Lunch", "start_time": "13:00", "end_time": "14:00"}],
    )


# Helpers shared by test modules

# A Monday far enough ahead that "future only" filters always include it
MONDAY = date(2030, 1, 7)


def set_weekly_schedule(
    db: Session,
    professional_id: int,
    days: Iterable[int],
    start_time: str = "09:00",
    end_time: str = "17:00",
    buffer_minutes: int = 0,
    breaks: Optional[List[Dict[str, Any]]] = None,
):
    """Give a professional the same single interval on each of the given weekdays."""
    interval = {
        "start_time": start_time,
        "end_time": end_time,
        "buffer_minutes": buffer_minutes,
        "breaks": breaks or [],
    }
    return WorkScheduleService.replace_weekly_schedule(
        db, professional_id, {day: [dict(interval)] for day in days}
    )


def create_appointment(
    db: Session,
    professional: Professional,
    client: Optional[Client],
    day: date,
    start: time,
    end: time,
    status: str = "confirmed",
    **kwargs: Any,
) -> Appointment:
    """Insert an appointment directly, bypassing the booking guard."""
    appointment = Appointment(
        organization_id=professional.organization_id,
        professional_id=professional.id,
        client_id=client.id if client else None,
        date=day,
        start_time=start,
        end_time=end,
        duration=(end.hour * 60 + end.minute) - (start.hour * 60 + start.minute),
        status=status,
        **kwargs,
    )
    db.add(appointment)
    db.commit()
    return appointment


def create_client(db: Session, organization: Organization, name: str, phone: str, email: Optional[str] = None) -> Client:
    record = Client(organization_id=organization.id, name=name, phone=phone, email=email)
    db.add(record)
    db.commit()
    return record
