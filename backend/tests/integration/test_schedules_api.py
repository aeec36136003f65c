"""
API tests for schedule management and available slots.
"""

from datetime import timedelta

from tests.conftest import MONDAY


WEEKDAY = {"start_time": "09:00", "end_time": "17:00", "buffer_minutes": 10,
           "breaks": [{"name": "Lunch", "start_time": "13:00", "end_time": "14:00"}]}


class TestScheduleEndpoints:

    def test_replace_and_get_weekly_schedule(self, client, professional):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule",
            json={"monday": [WEEKDAY], "wednesday": [WEEKDAY]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["professional_id"] == professional.id
        assert data["weekly"]["0"][0]["start_time"] == "09:00"
        assert data["weekly"]["0"][0]["breaks"][0]["name"] == "Lunch"
        assert data["weekly"]["1"] == []

        fetched = client.get(f"/api/professionals/{professional.id}/schedule")
        assert fetched.json() == data

    def test_times_are_normalized(self, client, professional):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule",
            json={"monday": [{"start_time": "9:00:00", "end_time": "12:00"}]},
        )

        assert response.status_code == 200
        assert response.json()["weekly"]["0"][0]["start_time"] == "09:00"

    def test_overlapping_intervals_rejected(self, client, professional):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule",
            json={"monday": [
                {"start_time": "09:00", "end_time": "13:00"},
                {"start_time": "12:00", "end_time": "15:00"},
            ]},
        )

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"
        assert "Overlapping" in response.json()["detail"]

    def test_malformed_time_is_unprocessable(self, client, professional):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule",
            json={"monday": [{"start_time": "nine", "end_time": "12:00"}]},
        )

        assert response.status_code == 422

    def test_unknown_professional(self, client):
        response = client.get("/api/professionals/999/schedule")

        assert response.status_code == 404
        assert response.json()["type"] == "not_found"

    def test_close_and_reopen_date(self, client, professional, weekday_schedule):
        url = f"/api/professionals/{professional.id}/schedule/exceptions/{MONDAY.isoformat()}"

        closed = client.put(url, json={"intervals": []})
        assert closed.status_code == 200
        assert closed.json()[0]["is_active"] is False

        slots = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 30},
        )
        assert slots.json()["available_slots"] == []

        assert client.delete(url).status_code == 204
        slots = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 30},
        )
        assert len(slots.json()["available_slots"]) == 14

    def test_exception_with_intervals(self, client, professional, weekday_schedule):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule/exceptions/{MONDAY.isoformat()}",
            json={"intervals": [{"start_time": "10:00", "end_time": "11:00"}]},
        )

        assert response.status_code == 200
        assert [row["start_time"] for row in response.json()] == ["10:00"]

    def test_invalid_exception_date(self, client, professional):
        response = client.put(
            f"/api/professionals/{professional.id}/schedule/exceptions/07-01-2030",
            json={"intervals": []},
        )

        assert response.status_code == 400

    def test_add_break(self, client, weekday_schedule):
        response = client.post(
            f"/api/schedules/{weekday_schedule[0].id}/breaks",
            json={"start_time": "10:00", "end_time": "10:15", "name": "Coffee"},
        )

        assert response.status_code == 201
        assert response.json()["name"] == "Coffee"
        assert response.json()["start_time"] == "10:00"

    def test_add_break_outside_interval(self, client, weekday_schedule):
        response = client.post(
            f"/api/schedules/{weekday_schedule[0].id}/breaks",
            json={"start_time": "17:00", "end_time": "17:30"},
        )

        assert response.status_code == 400


class TestAvailableSlotsEndpoints:

    def test_slots_by_duration(self, client, professional, weekday_schedule):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 30},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == MONDAY.isoformat()
        assert data["duration_minutes"] == 30
        assert data["available_slots"][0] == {"start_time": "09:00", "end_time": "09:30"}
        assert "13:00" not in [slot["start_time"] for slot in data["available_slots"]]

    def test_slots_by_service(self, client, professional, service, weekday_schedule):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "service_id": service.id},
        )

        assert response.status_code == 200
        assert response.json()["duration_minutes"] == 30

    def test_duration_and_service_are_exclusive(self, client, professional, service):
        both = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 30, "service_id": service.id},
        )
        neither = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat()},
        )

        assert both.status_code == 400
        assert neither.status_code == 400

    def test_invalid_date(self, client, professional):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": "not-a-date", "duration": 30},
        )

        assert response.status_code == 400

    def test_non_positive_duration(self, client, professional):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 0},
        )

        assert response.status_code == 422

    def test_unknown_professional(self, client):
        response = client.get(
            "/api/professionals/999/available-slots",
            params={"date": MONDAY.isoformat(), "duration": 30},
        )

        assert response.status_code == 404

    def test_range(self, client, professional, weekday_schedule):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots/range",
            params={
                "start_date": MONDAY.isoformat(),
                "end_date": (MONDAY + timedelta(days=6)).isoformat(),
                "duration": 60,
                "max_slots_per_day": 3,
            },
        )

        assert response.status_code == 200
        days = response.json()["days"]
        assert len(days) == 7
        assert [slot["start_time"] for slot in days[MONDAY.isoformat()]] == ["09:00", "10:00", "11:00"]
        assert days[(MONDAY + timedelta(days=6)).isoformat()] == []

    def test_range_too_long(self, client, professional):
        response = client.get(
            f"/api/professionals/{professional.id}/available-slots/range",
            params={
                "start_date": MONDAY.isoformat(),
                "end_date": (MONDAY + timedelta(days=40)).isoformat(),
                "duration": 60,
            },
        )

        assert response.status_code == 400
