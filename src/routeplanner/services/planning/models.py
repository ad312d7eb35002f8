"""Weekly plan domain models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from ...models.domain import Appointment, Coordinate
from .timeutils import hours_to_time, overlaps

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")


class DayState(str, Enum):
    EMPTY = "empty"
    PARTIAL = "partial"
    FULL = "full"


class SegmentKind(str, Enum):
    DEPARTURE = "departure"
    TRAVEL = "travel"
    RETURN = "return"


@dataclass(frozen=True, slots=True)
class PlacedAppointment:
    appointment: Appointment
    start_hour: float
    end_hour: float

    @property
    def appointment_id(self) -> str:
        return self.appointment.appointment_id

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour

    @property
    def start_time(self) -> str:
        return hours_to_time(self.start_hour)

    @property
    def end_time(self) -> str:
        return hours_to_time(self.end_hour)

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return self.appointment.coordinate


@dataclass(frozen=True, slots=True)
class TravelSegment:
    kind: SegmentKind
    origin: str
    destination: str
    distance_km: float
    duration_hours: float
    start_hour: float
    end_hour: float
    approximated: bool = False

    @property
    def start_time(self) -> str:
        return hours_to_time(self.start_hour)

    @property
    def end_time(self) -> str:
        return hours_to_time(self.end_hour)


@dataclass(frozen=True, slots=True)
class OvernightStay:
    city: str
    latitude: float
    longitude: float
    distance_to_home_km: float
    reason: str
    optimized: bool = False

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Day:
    """Immutable snapshot of one working day.

    Transitions return a new ``Day``; ``work_hours`` always equals the summed
    durations of ``appointments``.
    """

    weekday: str
    day_date: date
    start_hour: float
    end_hour: float
    capacity_hours: float
    appointments: tuple[PlacedAppointment, ...] = ()
    travel_segments: tuple[TravelSegment, ...] = ()
    work_hours: float = 0.0
    travel_hours: float = 0.0
    distance_km: float = 0.0
    overnight: Optional[OvernightStay] = None
    prior_overnight: Optional[OvernightStay] = None

    @property
    def state(self) -> DayState:
        if not self.appointments:
            return DayState.EMPTY
        if self.work_hours >= self.capacity_hours:
            return DayState.FULL
        return DayState.PARTIAL

    def find_overlap(self, start_hour: float, end_hour: float) -> Optional[PlacedAppointment]:
        for placed in self.appointments:
            if overlaps(start_hour, end_hour, placed.start_hour, placed.end_hour):
                return placed
        return None

    def with_appointment(self, placed: PlacedAppointment) -> "Day":
        clash = self.find_overlap(placed.start_hour, placed.end_hour)
        if clash is not None:
            raise ValueError(
                f"{placed.appointment_id} ({placed.start_time}-{placed.end_time}) overlaps "
                f"{clash.appointment_id} on {self.day_date.isoformat()}"
            )
        appointments = tuple(sorted((*self.appointments, placed), key=lambda item: item.start_hour))
        return replace(
            self,
            appointments=appointments,
            work_hours=round(self.work_hours + placed.duration_hours, 6),
        )

    def with_segments(self, segments: tuple[TravelSegment, ...]) -> "Day":
        return replace(
            self,
            travel_segments=segments,
            travel_hours=round(sum(segment.duration_hours for segment in segments), 6),
            distance_km=round(sum(segment.distance_km for segment in segments), 3),
        )

    def with_overnight(self, stay: Optional[OvernightStay]) -> "Day":
        return replace(self, overnight=stay)

    def with_prior_overnight(self, stay: Optional[OvernightStay]) -> "Day":
        return replace(self, prior_overnight=stay)


@dataclass(slots=True)
class Conflict:
    appointment_id: str
    conflicting_with: str
    day_date: date
    start_time: str
    end_time: str
    message: str


@dataclass(slots=True)
class UnscheduledAppointment:
    appointment_id: str
    customer_name: str
    reason: str


@dataclass(slots=True)
class GeocodeFailure:
    appointment_id: str
    address: str
    reason: str


@dataclass(slots=True)
class PlanStats:
    total_appointments: int = 0
    scheduled: int = 0
    fixed_scheduled: int = 0
    flexible_scheduled: int = 0
    unscheduled: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    total_work_hours: float = 0.0
    total_travel_hours: float = 0.0
    total_distance_km: float = 0.0
    work_days: int = 0
    overnight_stays: int = 0
    travel_efficiency: float = 0.0
    week_utilization: float = 0.0


@dataclass(slots=True)
class PlanDiagnostics:
    conflicts: List[Conflict] = field(default_factory=list)
    unscheduled: List[UnscheduledAppointment] = field(default_factory=list)
    failures: List[GeocodeFailure] = field(default_factory=list)
    skipped: List[UnscheduledAppointment] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(slots=True)
class WeeklyPlan:
    week_start: date
    driver_id: str
    days: tuple[Day, ...]
    stats: PlanStats
    diagnostics: PlanDiagnostics
    generated_at: datetime
    plan_id: Optional[str] = None

    def appointment_ids(self) -> set[str]:
        return {placed.appointment_id for day in self.days for placed in day.appointments}

    def day_for(self, day_date: date) -> Optional[Day]:
        for day in self.days:
            if day.day_date == day_date:
                return day
        return None
