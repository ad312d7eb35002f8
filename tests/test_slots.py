from datetime import date

import pytest

from src.routeplanner.models.domain import Appointment
from src.routeplanner.services.planning.models import Day, DayState, PlacedAppointment
from src.routeplanner.services.planning.slots import find_available_slots


def _appointment(appointment_id: str) -> Appointment:
    return Appointment(
        appointment_id=appointment_id,
        customer_name=f"Customer {appointment_id}",
        address="Hauptstraße 1, 30159 Hannover",
        latitude=52.3759,
        longitude=9.7320,
    )


def _day(*windows: tuple[float, float]) -> Day:
    day = Day(weekday="Tuesday", day_date=date(2024, 3, 5), start_hour=8.0, end_hour=17.0, capacity_hours=8.0)
    for index, (start, end) in enumerate(windows):
        day = day.with_appointment(PlacedAppointment(_appointment(f"A{index}"), start, end))
    return day


def _bounds(slots):
    return [(slot.start_hour, slot.end_hour) for slot in slots]


def test_empty_day_is_one_slot():
    assert _bounds(find_available_slots(_day(), buffer_hours=0.5)) == [(8.0, 17.0)]


def test_slots_around_a_single_appointment():
    slots = find_available_slots(_day((10.0, 13.0)), buffer_hours=0.5)

    assert _bounds(slots) == [(8.0, 9.5), (13.5, 17.0)]
    assert slots[0].following.appointment_id == "A0"
    assert slots[1].previous.appointment_id == "A0"


def test_no_slot_before_an_early_first_appointment():
    assert _bounds(find_available_slots(_day((8.5, 11.5)), buffer_hours=0.5)) == [(12.0, 17.0)]


def test_gap_must_exceed_both_buffers():
    assert _bounds(find_available_slots(_day((8.0, 11.0), (12.0, 15.0)), buffer_hours=0.5)) == [(15.5, 17.0)]
    assert _bounds(find_available_slots(_day((8.0, 11.0), (13.0, 16.0)), buffer_hours=0.5)) == [
        (11.5, 12.5),
        (16.5, 17.0),
    ]


def test_slot_bounds_snap_to_the_grid():
    slots = find_available_slots(_day((9.25, 12.25)), buffer_hours=0.5, grid_hours=0.5)

    assert _bounds(slots) == [(8.0, 8.5), (13.0, 17.0)]


def test_full_day_has_no_slots():
    assert find_available_slots(_day((8.0, 17.0)), buffer_hours=0.5) == []


def test_day_tracks_work_hours_and_state():
    day = _day((8.0, 11.0), (12.0, 15.0))

    assert day.work_hours == pytest.approx(6.0)
    assert day.state is DayState.PARTIAL
    assert _day().state is DayState.EMPTY
    assert _day((8.0, 16.0)).state is DayState.FULL


def test_overlapping_placement_is_rejected():
    day = _day((9.0, 12.0))

    with pytest.raises(ValueError):
        day.with_appointment(PlacedAppointment(_appointment("B"), 11.0, 14.0))
