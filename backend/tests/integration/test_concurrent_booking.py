"""
Concurrency tests for the booking guard.

Each thread books through its own session, the way two simultaneous API
requests would.
"""

import threading

import pytest

from core.exceptions import SlotConflictError
from models import Appointment
from services import AppointmentService
from tests.conftest import MONDAY


def _book_in_thread(session_factory, barrier, results, organization_id, professional_id, phone, name, start, end):
    session = session_factory()
    try:
        barrier.wait(timeout=10)
        appointment = AppointmentService.book_appointment(
            session, organization_id, professional_id, phone, name, MONDAY, start, end
        )
        results.append(("booked", appointment.id))
    except SlotConflictError as e:
        results.append(("conflict", e.conflicting_ids))
    except Exception as e:
        results.append(("error", repr(e)))
    finally:
        session.close()


def _run_concurrently(session_factory, requests):
    barrier = threading.Barrier(len(requests))
    results = []
    threads = [
        threading.Thread(target=_book_in_thread, args=(session_factory, barrier, results, *request))
        for request in requests
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


@pytest.mark.slow
class TestConcurrentBooking:

    def test_same_slot_only_one_succeeds(self, db_session, session_factory, professional):
        organization_id, professional_id = professional.organization_id, professional.id
        # Release the fixture session's write lock before other sessions start
        db_session.commit()

        results = _run_concurrently(session_factory, [
            (organization_id, professional_id, "612345678", "Ana Martín", "10:00", "10:30"),
            (organization_id, professional_id, "698765432", "Luis Pérez", "10:00", "10:30"),
        ])

        outcomes = sorted(outcome for outcome, _ in results)
        assert outcomes == ["booked", "conflict"]
        booked_id = next(value for outcome, value in results if outcome == "booked")
        conflicting_ids = next(value for outcome, value in results if outcome == "conflict")
        assert conflicting_ids == [booked_id]

        db_session.expire_all()
        assert db_session.query(Appointment).filter(Appointment.status != "cancelled").count() == 1

    def test_overlapping_ranges_only_one_succeeds(self, db_session, session_factory, professional):
        organization_id, professional_id = professional.organization_id, professional.id
        db_session.commit()

        results = _run_concurrently(session_factory, [
            (organization_id, professional_id, "612345678", "Ana Martín", "10:00", "11:00"),
            (organization_id, professional_id, "698765432", "Luis Pérez", "10:30", "11:30"),
            (organization_id, professional_id, "677111222", "Marta Ruiz", "10:45", "11:15"),
        ])

        assert sorted(outcome for outcome, _ in results) == ["booked", "conflict", "conflict"]

    def test_disjoint_ranges_all_succeed(self, db_session, session_factory, professional):
        organization_id, professional_id = professional.organization_id, professional.id
        db_session.commit()

        results = _run_concurrently(session_factory, [
            (organization_id, professional_id, "612345678", "Ana Martín", "09:00", "09:30"),
            (organization_id, professional_id, "698765432", "Luis Pérez", "09:30", "10:00"),
            (organization_id, professional_id, "677111222", "Marta Ruiz", "10:00", "10:30"),
        ])

        assert [outcome for outcome, _ in results] == ["booked"] * 3
        db_session.expire_all()
        assert db_session.query(Appointment).count() == 3
