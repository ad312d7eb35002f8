from datetime import date

import pytest

from src.routeplanner.models.domain import Appointment, HomeBase
from src.routeplanner.services.planning.alternatives import (
    find_alternative_slots,
    slot_time_quality,
    slot_travel_efficiency,
)
from src.routeplanner.services.planning.engine import PlanningEngine
from src.routeplanner.services.planning.models import Day, PlacedAppointment
from src.routeplanner.services.planning.slots import TimeSlot

HOME = HomeBase(name="Hannover", latitude=52.3759, longitude=9.7320)
WEEK = date(2024, 3, 4)


def _appointment(appointment_id: str, duration: float = 3.0) -> Appointment:
    return Appointment(
        appointment_id=appointment_id,
        customer_name=f"Customer {appointment_id}",
        address="Hauptstraße 1, 30159 Hannover",
        duration_hours=duration,
        latitude=52.3759,
        longitude=9.7320,
    )


@pytest.fixture
def plan():
    return PlanningEngine(home_base=HOME).optimize_week([_appointment("A1")], WEEK)


def test_time_quality_scores():
    assert slot_time_quality(TimeSlot(9.0, 15.0), 2) == 1.0
    assert slot_time_quality(TimeSlot(13.5, 17.0), 0) == pytest.approx(0.7)
    assert slot_time_quality(TimeSlot(8.0, 10.0), 4) == pytest.approx(0.5)


def test_travel_efficiency_rewards_nearby_appointments():
    day = Day(weekday="Monday", day_date=WEEK, start_hour=9.0, end_hour=17.0, capacity_hours=8.0)
    day = day.with_appointment(PlacedAppointment(_appointment("A1"), 9.0, 12.0))
    candidate = _appointment("B1")

    assert slot_travel_efficiency(day, 12.5, candidate) == pytest.approx(0.8)
    assert slot_travel_efficiency(day, 13.0, candidate) == pytest.approx(0.7)
    assert slot_travel_efficiency(day, 16.5, candidate) == pytest.approx(0.3)


def test_alternatives_are_ranked_by_score(plan):
    suggestions = find_alternative_slots(_appointment("B1"), plan)

    assert suggestions.can_reschedule
    assert len(suggestions.alternatives) == 5
    scores = [round(item.score, 6) for item in suggestions.alternatives]
    assert scores == sorted(scores, reverse=True)
    best = suggestions.alternatives[0]
    assert best.weekday == "Monday"
    assert best.start_hour == 12.5
    assert best.end_hour == 15.5
    assert suggestions.reasoning[0] == "Best alternative: Monday 12:30-15:30"
    assert "Excellent travel efficiency thanks to nearby appointments" in suggestions.reasoning


def test_ties_prefer_earlier_days(plan):
    suggestions = find_alternative_slots(_appointment("B1"), plan)

    weekdays = [item.weekday for item in suggestions.alternatives]
    assert weekdays == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


def test_limit_is_respected(plan):
    assert len(find_alternative_slots(_appointment("B1"), plan, limit=2).alternatives) == 2


def test_no_alternative_for_oversized_appointment(plan):
    suggestions = find_alternative_slots(_appointment("L1", duration=10.0), plan)

    assert not suggestions.can_reschedule
    assert suggestions.reasoning == ["No suitable alternative slot in this week"]
