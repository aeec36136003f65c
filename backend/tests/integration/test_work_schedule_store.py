"""
Integration tests for the work schedule store.

Covers the weekly pattern, per-date exceptions (including closed days),
breaks, and write-time validation.
"""

import pytest
from datetime import timedelta

from core.exceptions import NotFoundError, ValidationError
from models import WorkSchedule, WorkScheduleBreak
from services import WorkScheduleService
from tests.conftest import MONDAY, set_weekly_schedule


class TestWeeklySchedule:
    """Test replacing and resolving the weekly pattern."""

    def test_intervals_for_weekday(self, db_session, professional, weekday_schedule):
        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)

        assert len(intervals) == 1
        assert intervals[0].start_minutes == 9 * 60
        assert intervals[0].end_minutes == 17 * 60
        assert [(b.start_minutes, b.end_minutes) for b in intervals[0].breaks] == [(13 * 60, 14 * 60)]
        assert intervals[0].is_exception is False

    def test_day_without_schedule(self, db_session, professional, weekday_schedule):
        saturday = MONDAY + timedelta(days=5)

        assert WorkScheduleService.get_intervals_for_date(db_session, professional.id, saturday) == []

    def test_split_shift_ordered_by_start(self, db_session, professional):
        WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
            0: [
                {"start_time": "16:00", "end_time": "20:00"},
                {"start_time": "09:00", "end_time": "13:00"},
            ]
        })

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)

        assert [(i.start_minutes, i.end_minutes) for i in intervals] == [(540, 780), (960, 1200)]

    def test_replace_removes_previous_pattern(self, db_session, professional, weekday_schedule):
        set_weekly_schedule(db_session, professional.id, days=[2], start_time="10:00", end_time="12:00")

        assert WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY) == []
        wednesday = MONDAY + timedelta(days=2)
        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, wednesday)
        assert [(i.start_minutes, i.end_minutes) for i in intervals] == [(600, 720)]
        assert db_session.query(WorkSchedule).count() == 1
        # Breaks of the replaced rows are deleted with them
        assert db_session.query(WorkScheduleBreak).count() == 0

    def test_inactive_intervals_and_breaks_are_skipped(self, db_session, professional):
        WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
            0: [
                {
                    "start_time": "09:00", "end_time": "13:00",
                    "breaks": [
                        {"start_time": "10:00", "end_time": "10:30", "is_active": False},
                        {"start_time": "11:00", "end_time": "11:15"},
                    ],
                },
                {"start_time": "15:00", "end_time": "18:00", "is_active": False},
            ]
        })

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)

        assert len(intervals) == 1
        assert [(b.start_minutes, b.end_minutes) for b in intervals[0].breaks] == [(660, 675)]

    def test_get_schedule(self, db_session, professional, weekday_schedule):
        schedule = WorkScheduleService.get_schedule(db_session, professional.id)

        assert schedule["professional_id"] == professional.id
        assert len(schedule["weekly"][0]) == 1
        assert schedule["weekly"][0][0]["start_time"] == "09:00"
        assert schedule["weekly"][0][0]["breaks"][0]["name"] == "Lunch"
        assert schedule["weekly"][6] == []
        assert schedule["exceptions"] == {}

    def test_unknown_professional(self, db_session):
        with pytest.raises(NotFoundError):
            WorkScheduleService.replace_weekly_schedule(db_session, 999, {0: []})


class TestScheduleValidation:
    """Invalid schedules never reach the table."""

    def test_rejects_overlapping_intervals(self, db_session, professional):
        with pytest.raises(ValidationError, match="Overlapping work intervals on Monday"):
            WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
                0: [
                    {"start_time": "09:00", "end_time": "13:00"},
                    {"start_time": "12:00", "end_time": "16:00"},
                ]
            })

        assert db_session.query(WorkSchedule).count() == 0

    def test_back_to_back_intervals_are_allowed(self, db_session, professional):
        WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
            0: [
                {"start_time": "09:00", "end_time": "13:00"},
                {"start_time": "13:00", "end_time": "16:00"},
            ]
        })

        assert len(WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)) == 2

    def test_inactive_interval_may_overlap(self, db_session, professional):
        WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
            0: [
                {"start_time": "09:00", "end_time": "13:00"},
                {"start_time": "12:00", "end_time": "16:00", "is_active": False},
            ]
        })

        assert db_session.query(WorkSchedule).count() == 2

    def test_overlapping_breaks_are_accepted(self, db_session, professional):
        WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {
            0: [{
                "start_time": "09:00", "end_time": "17:00",
                "breaks": [
                    {"start_time": "12:00", "end_time": "13:00"},
                    {"start_time": "12:30", "end_time": "13:30"},
                ],
            }]
        })

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)
        assert len(intervals[0].breaks) == 2

    @pytest.mark.parametrize("interval,message", [
        ({"start_time": "13:00", "end_time": "09:00"}, "must be before"),
        ({"start_time": "09:00", "end_time": "09:00"}, "must be before"),
        ({"start_time": "9am", "end_time": "10:00"}, "Invalid interval time"),
        ({"start_time": "09:00", "end_time": "10:00", "buffer_minutes": -5}, "buffer_minutes"),
        (
            {"start_time": "09:00", "end_time": "12:00", "breaks": [{"start_time": "11:30", "end_time": "12:30"}]},
            "must lie within",
        ),
        ({"start_time": "18:00", "end_time": "24:00"}, "must end by 23:59"),
    ])
    def test_rejects_invalid_interval(self, db_session, professional, interval, message):
        with pytest.raises(ValidationError, match=message):
            WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {0: [interval]})

    def test_rejects_invalid_weekday(self, db_session, professional):
        with pytest.raises(ValidationError, match="day_of_week"):
            WorkScheduleService.replace_weekly_schedule(db_session, professional.id, {7: []})


class TestDateExceptions:
    """Exceptions replace, never merge with, the weekly pattern."""

    def test_exception_replaces_weekly_intervals(self, db_session, professional, weekday_schedule):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [
            {"start_time": "10:00", "end_time": "12:00"},
        ])

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)

        assert [(i.start_minutes, i.end_minutes) for i in intervals] == [(600, 720)]
        assert intervals[0].is_exception
        assert intervals[0].breaks == []

    def test_exception_only_affects_its_date(self, db_session, professional, weekday_schedule):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [])

        next_monday = MONDAY + timedelta(days=7)
        assert len(WorkScheduleService.get_intervals_for_date(db_session, professional.id, next_monday)) == 1

    def test_closed_day(self, db_session, professional, weekday_schedule):
        rows = WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [])

        assert len(rows) == 1
        assert rows[0].is_active is False
        assert WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY) == []

    def test_exception_on_non_working_day(self, db_session, professional, weekday_schedule):
        sunday = MONDAY + timedelta(days=6)
        WorkScheduleService.set_date_exception(db_session, professional.id, sunday, [
            {"start_time": "10:00", "end_time": "14:00", "buffer_minutes": 5},
        ])

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, sunday)

        assert len(intervals) == 1
        assert intervals[0].buffer_minutes == 5

    def test_setting_again_replaces_previous_exception(self, db_session, professional):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [
            {"start_time": "10:00", "end_time": "12:00"},
        ])
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [
            {"start_time": "15:00", "end_time": "16:00"},
        ])

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)
        assert [(i.start_minutes, i.end_minutes) for i in intervals] == [(900, 960)]

    def test_clear_restores_weekly_pattern(self, db_session, professional, weekday_schedule):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [])

        deleted = WorkScheduleService.clear_date_exception(db_session, professional.id, MONDAY)

        assert deleted == 1
        assert len(WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)) == 1

    def test_schedule_lists_closed_days(self, db_session, professional, weekday_schedule):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [])

        schedule = WorkScheduleService.get_schedule(db_session, professional.id)

        assert schedule["exceptions"][MONDAY.isoformat()][0]["is_active"] is False

    def test_weekly_replace_keeps_exceptions(self, db_session, professional, weekday_schedule):
        WorkScheduleService.set_date_exception(db_session, professional.id, MONDAY, [
            {"start_time": "10:00", "end_time": "11:00"},
        ])

        set_weekly_schedule(db_session, professional.id, days=range(7))

        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)
        assert [(i.start_minutes, i.end_minutes) for i in intervals] == [(600, 660)]


class TestAddBreak:

    def test_add_break_within_interval(self, db_session, professional, weekday_schedule):
        monday_row = next(row for row in weekday_schedule if row.day_of_week == 0)

        work_break = WorkScheduleService.add_break(db_session, monday_row.id, "10:00", "10:15", name="Coffee")

        assert work_break.sort_order == 1
        intervals = WorkScheduleService.get_intervals_for_date(db_session, professional.id, MONDAY)
        assert (600, 615) in [(b.start_minutes, b.end_minutes) for b in intervals[0].breaks]

    def test_break_outside_interval(self, db_session, weekday_schedule):
        with pytest.raises(ValidationError, match="must lie within"):
            WorkScheduleService.add_break(db_session, weekday_schedule[0].id, "08:30", "09:30")

    def test_break_cannot_end_at_midnight(self, db_session, professional):
        row = WorkScheduleService.replace_weekly_schedule(
            db_session, professional.id, {0: [{"start_time": "18:00", "end_time": "23:59"}]}
        )[0]

        with pytest.raises(ValidationError, match="must end by 23:59"):
            WorkScheduleService.add_break(db_session, row.id, "23:00", "24:00")

    def test_unknown_work_schedule(self, db_session):
        with pytest.raises(NotFoundError):
            WorkScheduleService.add_break(db_session, 999, "10:00", "10:15")
