from datetime import date, datetime, timezone

import pytest

from src.routeplanner.models.domain import Appointment, AppointmentStatus, HomeBase
from src.routeplanner.persistence.stores import InMemoryCacheStore, InMemoryPlanStore
from src.routeplanner.services.errors import PlanningError
from src.routeplanner.services.geocoding.service import Geocoder
from src.routeplanner.services.geospatial import distance_between
from src.routeplanner.services.maps.budget import BudgetController
from src.routeplanner.services.maps.client import MatrixElement
from src.routeplanner.services.outputs.formatter import payload_to_plan, plan_to_payload
from src.routeplanner.services.planning.engine import PlanningEngine, monday_of
from src.routeplanner.services.planning.models import SegmentKind
from src.routeplanner.services.travel.estimator import TravelEstimator

HOME = HomeBase(name="Hannover", latitude=52.3759, longitude=9.7320)
WEEK = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
NEXT_WEEK = date(2024, 3, 11)


def _appointment(
    appointment_id: str,
    lat: float | None = 52.3759,
    lon: float | None = 9.7320,
    *,
    address: str | None = None,
    duration: float = 3.0,
    fixed_date: date | None = None,
    fixed_time: str | None = None,
    on_hold: bool = False,
    status: AppointmentStatus = AppointmentStatus.PROPOSED,
) -> Appointment:
    return Appointment(
        appointment_id=appointment_id,
        customer_name=f"Customer {appointment_id}",
        address=address or f"Hauptstraße {appointment_id}, 30159 Hannover",
        status=status,
        duration_hours=duration,
        latitude=lat,
        longitude=lon,
        is_fixed=fixed_date is not None,
        fixed_date=fixed_date,
        fixed_time=fixed_time,
        on_hold=on_hold,
    )


def _engine(**kwargs) -> PlanningEngine:
    kwargs.setdefault("home_base", HOME)
    kwargs.setdefault("clock", lambda: datetime(2024, 3, 1, 12, tzinfo=timezone.utc))
    return PlanningEngine(**kwargs)


def _scheduled_ids(plan) -> list[str]:
    return [placed.appointment_id for day in plan.days for placed in day.appointments]


def test_monday_of():
    assert monday_of(date(2024, 3, 6)) == WEEK
    assert monday_of(WEEK) == WEEK


def test_empty_input_raises_with_zero_plan():
    with pytest.raises(PlanningError) as excinfo:
        _engine().optimize_week([], WEEK)

    plan = excinfo.value.plan
    assert len(plan.days) == 5
    assert plan.stats.scheduled == 0
    assert plan.stats.total_work_hours == 0


def test_appointments_on_hold_or_cancelled_are_not_planned():
    appointments = [
        _appointment("H1", on_hold=True),
        _appointment("X1", status=AppointmentStatus.CANCELLED),
    ]

    with pytest.raises(PlanningError):
        _engine().optimize_week(appointments, WEEK)


def test_week_start_is_normalised_to_monday():
    plan = _engine().optimize_week([_appointment("A1")], date(2024, 3, 6))

    assert plan.week_start == WEEK
    assert [day.weekday for day in plan.days] == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]


def test_overlapping_fixed_appointments_place_only_the_first():
    appointments = [
        _appointment("F1", fixed_date=WEEK, fixed_time="09:00"),
        _appointment("F2", fixed_date=WEEK, fixed_time="10:00"),
        _appointment("P1"),
    ]

    plan = _engine().optimize_week(appointments, WEEK)

    monday = plan.days[0]
    assert monday.appointments[0].appointment_id == "F1"
    assert "F2" not in _scheduled_ids(plan)
    assert "P1" in _scheduled_ids(plan)
    assert len(plan.diagnostics.conflicts) == 1
    assert plan.diagnostics.conflicts[0].appointment_id == "F2"
    assert plan.stats.unscheduled == 1


def test_unresolvable_address_is_reported_and_others_planned():
    appointments = [
        _appointment("A1"),
        _appointment("K1", None, None, address="Rathausplatz 1, Köln"),
        _appointment("X1", None, None, address="Unbekannte Straße 5"),
    ]
    engine = _engine(geocoder=Geocoder(sleep=lambda seconds: None))

    plan = engine.optimize_week(appointments, WEEK)

    assert [failure.appointment_id for failure in plan.diagnostics.failures] == ["X1"]
    assert sorted(_scheduled_ids(plan)) == ["A1", "K1"]


def test_missing_coordinates_without_geocoder_are_failures():
    plan = _engine().optimize_week([_appointment("A1"), _appointment("N1", None, None)], WEEK)

    assert plan.diagnostics.failures[0].reason == "no coordinates"
    assert _scheduled_ids(plan) == ["A1"]


def test_fixed_appointment_outside_week_is_skipped():
    appointments = [
        _appointment("A1"),
        _appointment("F9", fixed_date=NEXT_WEEK, fixed_time="09:00"),
    ]

    plan = _engine().optimize_week(appointments, WEEK)

    assert [(item.appointment_id, item.reason) for item in plan.diagnostics.skipped] == [("F9", "outside_week")]


def test_appointments_in_other_active_plans_are_skipped():
    store = InMemoryPlanStore()
    engine = _engine(plan_store=store)
    first = engine.optimize_week([_appointment("A1"), _appointment("A2")], WEEK)
    store.save(first)

    second = engine.optimize_week([_appointment("A1"), _appointment("A2"), _appointment("B1")], NEXT_WEEK)

    assert _scheduled_ids(second) == ["B1"]
    assert {item.appointment_id for item in second.diagnostics.skipped} == {"A1", "A2"}
    assert all(item.reason == "already_planned" for item in second.diagnostics.skipped)

    store.deactivate_others(WEEK)
    third = engine.optimize_week([_appointment("A1"), _appointment("B1")], NEXT_WEEK)
    assert sorted(_scheduled_ids(third)) == ["A1", "B1"]


def test_replanning_the_same_week_ignores_its_own_plan():
    store = InMemoryPlanStore()
    engine = _engine(plan_store=store)
    store.save(engine.optimize_week([_appointment("A1")], WEEK))

    plan = engine.optimize_week([_appointment("A1")], WEEK)

    assert _scheduled_ids(plan) == ["A1"]


def test_nothing_placeable_raises():
    with pytest.raises(PlanningError) as excinfo:
        _engine().optimize_week([_appointment("L1", duration=12.0)], WEEK)

    assert [item.appointment_id for item in excinfo.value.plan.diagnostics.unscheduled] == ["L1"]


def test_flexible_first_appointment_leaves_home_after_the_day_opens():
    kassel = _appointment("K1", 51.3127, 9.4797, address="Obere Königsstraße 8, 34117 Kassel")

    plan = _engine().optimize_week([kassel], WEEK)

    monday = plan.days[0]
    departure = monday.travel_segments[0]
    assert departure.origin == "Hannover"
    assert departure.start_hour >= monday.start_hour
    assert monday.appointments[0].start_time == "11:30"
    assert monday.prior_overnight is None


def test_flexible_appointment_out_of_reach_from_home_is_unscheduled():
    with pytest.raises(PlanningError) as excinfo:
        _engine().optimize_week([_appointment("M1", 48.1351, 11.5820)], WEEK)

    assert [item.appointment_id for item in excinfo.value.plan.diagnostics.unscheduled] == ["M1"]


def test_far_away_days_get_overnight_stays():
    appointments = [
        _appointment(
            "S1", 48.1351, 11.5820, address="Marienplatz 1, 80331 München", fixed_date=WEEK, fixed_time="09:00"
        ),
        _appointment(
            "S2", 48.3705, 10.8978, address="Rathausplatz 1, 86150 Augsburg", fixed_date=WEEK, fixed_time="13:00"
        ),
        _appointment(
            "S3",
            48.3800,
            10.9000,
            address="Maximilianstraße 5, 86150 Augsburg",
            fixed_date=TUESDAY,
            fixed_time="09:00",
        ),
    ]

    plan = _engine().optimize_week(appointments, WEEK)

    monday, tuesday = plan.days[0], plan.days[1]
    assert monday.prior_overnight.city == "München"
    assert monday.overnight.city == "Augsburg"
    assert monday.overnight.optimized
    assert monday.overnight.distance_to_home_km > 200
    assert [segment.kind for segment in monday.travel_segments] == [SegmentKind.DEPARTURE, SegmentKind.TRAVEL]
    assert monday.travel_segments[0].origin == "München"
    assert monday.travel_segments[0].start_hour >= monday.start_hour
    assert monday.travel_segments[1].origin == "München"
    assert tuesday.prior_overnight is None
    assert tuesday.travel_segments[0].origin == "Augsburg"
    assert plan.days[4].overnight is None
    assert plan.stats.overnight_stays == 3
    assert not any("departure" in warning for warning in plan.diagnostics.warnings)


def test_early_fixed_start_books_a_hotel_the_night_before():
    appointments = [
        _appointment("A1"),
        _appointment(
            "F1", 48.1351, 11.5820, address="Marienplatz 1, 80331 München", fixed_date=TUESDAY, fixed_time="10:00"
        ),
    ]

    plan = _engine().optimize_week(appointments, WEEK)

    monday, tuesday = plan.days[0], plan.days[1]
    assert monday.overnight is None
    assert monday.travel_segments[-1].kind is SegmentKind.RETURN
    stay = tuesday.prior_overnight
    assert stay.city == "München"
    assert stay.optimized
    assert "Hannover at 01:48" in stay.reason
    departure = tuesday.travel_segments[0]
    assert departure.kind is SegmentKind.DEPARTURE
    assert departure.origin == "München"
    assert departure.start_hour >= tuesday.start_hour

    restored = payload_to_plan(plan_to_payload(plan))
    assert restored.days[1].prior_overnight.city == "München"


class CountingMaps:
    def __init__(self):
        self.requests = []

    def distance_matrix(self, origins, destinations):
        self.requests.append(len(origins) * len(destinations))
        return [
            [
                MatrixElement(distance_between(origin, destination) * 1.3, distance_between(origin, destination) / 60)
                for destination in destinations
            ]
            for origin in origins
        ]


def test_travel_times_are_prefetched_in_matrix_chunks():
    maps = CountingMaps()
    estimator = TravelEstimator(
        cache=InMemoryCacheStore(),
        client=maps,
        budget=BudgetController(daily_budget=10.0),
        sleep=lambda seconds: None,
    )
    appointments = [
        _appointment(f"P{index:02d}", 52.3759 + index * 0.02, 9.7320 + index * 0.02) for index in range(1, 13)
    ]

    plan = _engine(estimator=estimator).optimize_week(appointments, WEEK)

    assert plan.stats.scheduled > 0
    assert sorted(maps.requests) == [78, 91]


def test_day_near_home_returns_home():
    plan = _engine().optimize_week([_appointment("A1")], WEEK)

    monday = plan.days[0]
    assert monday.overnight is None
    assert [segment.kind for segment in monday.travel_segments] == [SegmentKind.DEPARTURE, SegmentKind.RETURN]
    assert monday.travel_segments[-1].destination == "Hannover"


def test_stats_match_day_totals():
    appointments = [_appointment(f"A{index}", 52.3759 + index * 0.05, 9.7320) for index in range(6)]

    plan = _engine().optimize_week(appointments, WEEK)

    for day in plan.days:
        assert day.work_hours == pytest.approx(sum(placed.duration_hours for placed in day.appointments))
        assert day.travel_hours == pytest.approx(sum(segment.duration_hours for segment in day.travel_segments))
    assert plan.stats.scheduled == 6
    assert plan.stats.flexible_scheduled == 6
    assert plan.stats.total_work_hours == pytest.approx(18.0)
    assert plan.stats.by_status == {"proposed": 6}
    assert plan.stats.week_utilization == pytest.approx(18.0 / 40.0)
