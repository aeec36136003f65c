"""
Unit tests for the slot calculation algorithm.

These exercise AvailabilityService.calculate_slots directly with plain
interval data, without a database:
- Grid generation and interval boundaries
- Break exclusion, including overlapping breaks
- Buffer padding around existing appointments
- Multiple intervals and de-duplication
"""

import pytest

from core.exceptions import ValidationError
from services.availability_service import AvailabilityService
from shared_types.availability import BreakData, BusyInterval, WorkIntervalData
from utils.time_utils import time_to_minutes


def interval(start: str, end: str, buffer_minutes: int = 0, breaks=None) -> WorkIntervalData:
    return WorkIntervalData(
        start_minutes=time_to_minutes(start),
        end_minutes=time_to_minutes(end),
        buffer_minutes=buffer_minutes,
        breaks=[
            BreakData(start_minutes=time_to_minutes(b_start), end_minutes=time_to_minutes(b_end))
            for b_start, b_end in (breaks or [])
        ],
    )


def busy(start: str, end: str, appointment_id: int = 1) -> BusyInterval:
    return BusyInterval(
        start_minutes=time_to_minutes(start),
        end_minutes=time_to_minutes(end),
        appointment_id=appointment_id,
    )


def starts(slots) -> list[str]:
    return [slot.start_time for slot in slots]


class TestSlotGrid:
    """Test basic slot generation."""

    def test_full_interval_without_appointments(self):
        slots = AvailabilityService.calculate_slots([interval("09:00", "11:00")], [], 30)

        assert starts(slots) == ["09:00", "09:30", "10:00", "10:30"]
        assert slots[-1].end_time == "11:00"

    def test_last_slot_must_fit_inside_interval(self):
        slots = AvailabilityService.calculate_slots([interval("09:00", "10:40")], [], 30)

        assert starts(slots) == ["09:00", "09:30", "10:00"]

    def test_duration_longer_than_interval(self):
        assert AvailabilityService.calculate_slots([interval("09:00", "09:45")], [], 60) == []

    def test_grid_starts_at_interval_start(self):
        slots = AvailabilityService.calculate_slots([interval("09:10", "10:30")], [], 20)

        assert starts(slots) == ["09:10", "09:30", "09:50", "10:10"]

    def test_professional_id_copied_to_slots(self):
        slots = AvailabilityService.calculate_slots([interval("09:00", "10:00")], [], 60, professional_id=7)

        assert slots[0].to_dict() == {"start_time": "09:00", "end_time": "10:00", "professional_id": 7}

    def test_no_intervals(self):
        assert AvailabilityService.calculate_slots([], [], 30) == []

    @pytest.mark.parametrize("duration", [0, -15])
    def test_rejects_non_positive_duration(self, duration):
        with pytest.raises(ValidationError):
            AvailabilityService.calculate_slots([interval("09:00", "10:00")], [], duration)


class TestBreaks:
    """Test break exclusion."""

    def test_working_day_with_lunch_break(self):
        """09:00-17:00, break 13:00-14:00, 30 minute slots, empty day."""
        day = interval("09:00", "17:00", buffer_minutes=10, breaks=[("13:00", "14:00")])

        slots = AvailabilityService.calculate_slots([day], [], 30)

        assert starts(slots) == [
            "09:00", "09:30", "10:00", "10:30", "11:00", "11:30", "12:00", "12:30",
            "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
        ]

    def test_slot_ending_when_break_starts_is_available(self):
        day = interval("09:00", "17:00", breaks=[("13:00", "14:00")])

        slots = AvailabilityService.calculate_slots([day], [], 30)

        assert "12:30" in starts(slots)
        assert next(s for s in slots if s.start_time == "12:30").end_time == "13:00"

    def test_slot_starting_when_break_ends_is_available(self):
        day = interval("09:00", "17:00", breaks=[("13:00", "14:00")])

        assert "14:00" in starts(AvailabilityService.calculate_slots([day], [], 30))

    def test_slot_partially_overlapping_break_is_excluded(self):
        day = interval("09:00", "12:00", breaks=[("10:15", "10:45")])

        slots = AvailabilityService.calculate_slots([day], [], 30)

        assert starts(slots) == ["09:00", "09:30", "11:00", "11:30"]

    def test_overlapping_breaks_act_as_their_union(self):
        day = interval("09:00", "13:00", breaks=[("10:00", "11:00"), ("10:30", "11:30")])

        slots = AvailabilityService.calculate_slots([day], [], 30)

        assert starts(slots) == ["09:00", "09:30", "11:30", "12:00", "12:30"]

    def test_no_slot_overlaps_any_break(self):
        breaks = [("10:00", "10:20"), ("12:05", "12:50"), ("15:00", "16:00")]
        day = interval("08:00", "18:00", breaks=breaks)

        slots = AvailabilityService.calculate_slots([day], [], 25)

        for slot in slots:
            slot_start, slot_end = time_to_minutes(slot.start_time), time_to_minutes(slot.end_time)
            for b in day.breaks:
                assert not (slot_start < b.end_minutes and b.start_minutes < slot_end)


class TestBufferAndAppointments:
    """Test exclusion of slots near existing appointments."""

    def test_buffer_excludes_adjacent_slots(self):
        """Appointment 10:00-10:30 with a 10 minute buffer."""
        day = interval("09:00", "12:00", buffer_minutes=10)

        slots = AvailabilityService.calculate_slots([day], [busy("10:00", "10:30")], 30)

        assert "09:00" in starts(slots)
        assert "11:00" in starts(slots)
        assert "09:30" not in starts(slots)
        assert "10:00" not in starts(slots)
        assert "10:30" not in starts(slots)

    def test_without_buffer_back_to_back_is_allowed(self):
        day = interval("09:00", "12:00")

        slots = AvailabilityService.calculate_slots([day], [busy("10:00", "10:30")], 30)

        assert starts(slots) == ["09:00", "09:30", "10:30", "11:00", "11:30"]

    def test_buffer_gap_is_respected_for_every_slot(self):
        day = interval("08:00", "14:00", buffer_minutes=15)
        appointments = [busy("09:10", "09:40", 1), busy("11:00", "12:00", 2)]

        slots = AvailabilityService.calculate_slots([day], appointments, 20)

        assert slots
        for slot in slots:
            slot_start, slot_end = time_to_minutes(slot.start_time), time_to_minutes(slot.end_time)
            for appointment in appointments:
                gap_after = slot_start - appointment.end_minutes
                gap_before = appointment.start_minutes - slot_end
                assert gap_after >= 15 or gap_before >= 15

    def test_appointment_outside_interval_has_no_effect(self):
        day = interval("09:00", "10:00", buffer_minutes=5)

        slots = AvailabilityService.calculate_slots([day], [busy("15:00", "16:00")], 30)

        assert starts(slots) == ["09:00", "09:30"]

    def test_fully_booked_day(self):
        day = interval("09:00", "10:00")

        assert AvailabilityService.calculate_slots([day], [busy("09:00", "10:00")], 30) == []


class TestMultipleIntervals:
    """Test split shifts."""

    def test_slots_in_interval_order(self):
        morning = interval("09:00", "10:00")
        afternoon = interval("16:00", "17:00")

        slots = AvailabilityService.calculate_slots([morning, afternoon], [], 30)

        assert starts(slots) == ["09:00", "09:30", "16:00", "16:30"]

    def test_each_interval_uses_its_own_buffer(self):
        morning = interval("09:00", "11:00", buffer_minutes=0)
        afternoon = interval("11:00", "13:00", buffer_minutes=30)
        appointments = [busy("10:00", "10:30", 1), busy("12:00", "12:30", 2)]

        slots = AvailabilityService.calculate_slots([morning, afternoon], appointments, 30)

        assert starts(slots) == ["09:00", "09:30", "10:30", "11:00"]

    def test_duplicate_start_times_are_emitted_once(self):
        first = interval("09:00", "10:00")
        overlapping = interval("09:00", "11:00")

        slots = AvailabilityService.calculate_slots([first, overlapping], [], 30)

        assert starts(slots) == ["09:00", "09:30", "10:00", "10:30"]
