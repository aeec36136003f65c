"""
API tests for appointment booking.
"""

import pytest
from unittest.mock import patch

from services import AppointmentService
from services.calendar_sync_service import SYNC_KIND_APPOINTMENT, SYNC_KIND_DELETE_APPOINTMENT
from tests.conftest import MONDAY


@pytest.fixture
def mock_sync():
    with patch("api.appointments.run_sync_in_background") as mock:
        yield mock


def booking(professional, **overrides):
    payload = {
        "professional_id": professional.id,
        "date": MONDAY.isoformat(),
        "start_time": "10:00",
        "end_time": "10:30",
        "client_phone": "612345678",
        "client_name": "Ana Martín",
    }
    payload.update(overrides)
    return payload


class TestCreateAppointment:

    def test_book_appointment(self, client, professional, mock_sync):
        response = client.post("/api/appointments", json=booking(professional, notes="First visit"))

        assert response.status_code == 201
        data = response.json()
        assert data["professional_id"] == professional.id
        assert data["client_name"] == "Ana Martín"
        assert data["date"] == MONDAY.isoformat()
        assert (data["start_time"], data["end_time"], data["duration"]) == ("10:00", "10:30", 30)
        assert data["status"] == "confirmed"
        assert data["synced_with_google"] is False
        mock_sync.assert_called_once_with(SYNC_KIND_APPOINTMENT, data["id"])

    def test_conflict_returns_409_with_ids(self, client, professional, mock_sync):
        first = client.post("/api/appointments", json=booking(professional)).json()

        response = client.post(
            "/api/appointments",
            json=booking(professional, start_time="10:15", end_time="10:45",
                         client_phone="698765432", client_name="Luis Pérez"),
        )

        assert response.status_code == 409
        assert response.json()["type"] == "slot_conflict"
        assert response.json()["conflicting_appointment_ids"] == [first["id"]]
        assert mock_sync.call_count == 1

    def test_end_time_from_service(self, client, professional, service, mock_sync):
        response = client.post(
            "/api/appointments",
            json=booking(professional, end_time=None, service_id=service.id),
        )

        assert response.status_code == 201
        assert response.json()["end_time"] == "10:30"
        assert response.json()["service_id"] == service.id

    def test_new_client_without_name(self, client, professional, mock_sync):
        response = client.post(
            "/api/appointments",
            json=booking(professional, client_phone="698765432", client_name="   "),
        )

        assert response.status_code == 400
        mock_sync.assert_not_called()

    def test_invalid_time_format(self, client, professional, mock_sync):
        response = client.post("/api/appointments", json=booking(professional, start_time="25:00"))

        assert response.status_code == 422

    def test_unknown_professional(self, client, organization, mock_sync):
        response = client.post("/api/appointments", json={
            "professional_id": 999,
            "date": MONDAY.isoformat(),
            "start_time": "10:00",
            "end_time": "10:30",
            "client_phone": "612345678",
            "client_name": "Ana Martín",
        })

        assert response.status_code == 404


class TestAppointmentLifecycle:

    def test_get_appointment(self, client, professional, mock_sync):
        created = client.post("/api/appointments", json=booking(professional)).json()

        response = client.get(f"/api/appointments/{created['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_unknown_appointment(self, client):
        assert client.get("/api/appointments/999").status_code == 404

    def test_cancel_frees_slot(self, client, professional, mock_sync):
        created = client.post("/api/appointments", json=booking(professional)).json()

        cancelled = client.post(f"/api/appointments/{created['id']}/cancel")
        rebooked = client.post(
            "/api/appointments",
            json=booking(professional, client_phone="698765432", client_name="Luis Pérez"),
        )

        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancelled_at"] is not None
        assert rebooked.status_code == 201
        mock_sync.assert_any_call(SYNC_KIND_DELETE_APPOINTMENT, created["id"])

    def test_update_status(self, client, professional, mock_sync):
        created = client.post("/api/appointments", json=booking(professional)).json()

        response = client.patch(f"/api/appointments/{created['id']}/status", json={"status": "completed"})

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_update_status_unknown_value(self, client, professional, mock_sync):
        created = client.post("/api/appointments", json=booking(professional)).json()

        response = client.patch(f"/api/appointments/{created['id']}/status", json={"status": "moved"})

        assert response.status_code == 400

    def test_revive_into_taken_slot(self, client, professional, mock_sync):
        created = client.post("/api/appointments", json=booking(professional)).json()
        client.post(f"/api/appointments/{created['id']}/cancel")
        replacement = client.post(
            "/api/appointments",
            json=booking(professional, client_phone="698765432", client_name="Luis Pérez"),
        ).json()

        response = client.patch(f"/api/appointments/{created['id']}/status", json={"status": "confirmed"})

        assert response.status_code == 409
        assert response.json()["conflicting_appointment_ids"] == [replacement["id"]]

    def test_group_block_cannot_be_cancelled_directly(self, client, db_session, professional, mock_sync):
        block = AppointmentService.reserve_time_block(
            db_session, professional.organization_id, professional.id, MONDAY, "10:00", "11:00"
        )

        cancelled = client.post(f"/api/appointments/{block.id}/cancel")
        changed = client.patch(f"/api/appointments/{block.id}/status", json={"status": "cancelled"})
        booked = client.post("/api/appointments", json=booking(professional))

        assert cancelled.status_code == 400
        assert cancelled.json()["type"] == "validation_error"
        assert changed.status_code == 400
        assert booked.status_code == 409
        assert booked.json()["conflicting_appointment_ids"] == [block.id]
        mock_sync.assert_not_called()


class TestRecurrencePreview:

    def test_preview_dates(self, client):
        response = client.post("/api/recurrence/preview", json={
            "start_date": "2024-01-01",
            "rule": {"type": "weekly", "interval": 2, "count": 3},
        })

        assert response.status_code == 200
        assert response.json() == {
            "description": "Every 2 weeks, 3 times",
            "dates": ["2024-01-01", "2024-01-15", "2024-01-29"],
        }

    def test_preview_requires_one_termination(self, client):
        response = client.post("/api/recurrence/preview", json={
            "start_date": "2024-01-01",
            "rule": {"type": "monthly", "count": 3, "end_date": "2024-06-01"},
        })

        assert response.status_code == 400

    def test_preview_unknown_type(self, client):
        response = client.post("/api/recurrence/preview", json={
            "start_date": "2024-01-01",
            "rule": {"type": "daily", "count": 3},
        })

        assert response.status_code == 422
