"""Greedy placement of fixed and flexible appointments into a five-day week."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Appointment, Coordinate, HomeBase
from ..errors import ConflictError
from ..travel.estimator import TravelEstimator
from .models import WEEKDAY_NAMES, Conflict, Day, PlacedAppointment, UnscheduledAppointment
from .slots import find_available_slots
from .timeutils import ceil_to_grid, time_to_hours

logger = logging.getLogger(__name__)

_EPSILON = 1e-6


@dataclass(slots=True)
class ScheduleOutcome:
    days: tuple[Day, ...]
    conflicts: list[Conflict] = field(default_factory=list)
    unscheduled: list[UnscheduledAppointment] = field(default_factory=list)


def flexible_sort_key(appointment: Appointment, region_rank: int = 0) -> tuple:
    """Confirmed first, then oldest pipeline age, then highest priority."""

    return (
        0 if appointment.is_confirmed else 1,
        -appointment.pipeline_days,
        -appointment.priority.rank,
        region_rank,
        appointment.appointment_id,
    )


class WeeklyScheduler:
    def __init__(
        self,
        estimator: TravelEstimator,
        home_base: HomeBase,
        *,
        work_start_hour: float | None = None,
        work_end_hour: float | None = None,
        first_day_start_hour: float | None = None,
        last_day_end_hour: float | None = None,
        max_hours_per_day: float | None = None,
        flex_hours_per_day: float | None = None,
        grid_hours: float | None = None,
    ) -> None:
        self.estimator = estimator
        self.home_base = home_base
        self.work_start_hour = work_start_hour if work_start_hour is not None else settings.work_start_hour
        self.work_end_hour = work_end_hour if work_end_hour is not None else settings.work_end_hour
        self.first_day_start_hour = (
            first_day_start_hour if first_day_start_hour is not None else settings.first_day_start_hour
        )
        self.last_day_end_hour = last_day_end_hour if last_day_end_hour is not None else settings.last_day_end_hour
        self.max_hours_per_day = max_hours_per_day if max_hours_per_day is not None else settings.max_work_hours_per_day
        self.flex_hours_per_day = (
            flex_hours_per_day if flex_hours_per_day is not None else settings.flex_work_hours_per_day
        )
        self.grid_hours = grid_hours if grid_hours is not None else settings.slot_grid_hours

    def build_days(self, week_start: date) -> list[Day]:
        days = []
        for index, weekday in enumerate(WEEKDAY_NAMES):
            days.append(
                Day(
                    weekday=weekday,
                    day_date=week_start + timedelta(days=index),
                    start_hour=self.first_day_start_hour if index == 0 else self.work_start_hour,
                    end_hour=self.last_day_end_hour if index == len(WEEKDAY_NAMES) - 1 else self.work_end_hour,
                    capacity_hours=self.max_hours_per_day,
                )
            )
        return days

    def schedule(
        self,
        week_start: date,
        fixed: Sequence[Appointment],
        flexible: Sequence[Appointment],
        region_ranks: Optional[dict[str, int]] = None,
    ) -> ScheduleOutcome:
        """Place fixed appointments, then flexible ones in policy order.

        ``region_ranks`` maps appointment ids to the rank of their region; it only breaks
        ties left by the flexible ordering policy.
        """
        days = self.build_days(week_start)
        outcome = ScheduleOutcome(days=())
        self._place_fixed(days, week_start, fixed, outcome)
        self._place_flexible(days, flexible, region_ranks or {}, outcome)
        outcome.days = tuple(days)
        return outcome

    def _place_fixed(
        self,
        days: list[Day],
        week_start: date,
        fixed: Sequence[Appointment],
        outcome: ScheduleOutcome,
    ) -> None:
        ordered = sorted(fixed, key=lambda item: (item.fixed_date, time_to_hours(item.fixed_time)))
        for appointment in ordered:
            index = (appointment.fixed_date - week_start).days
            if not 0 <= index < len(days):
                raise ValueError(f"Fixed appointment '{appointment.appointment_id}' is outside the planned week")
            day = days[index]
            start = time_to_hours(appointment.fixed_time)
            end = start + appointment.duration_hours
            clash = day.find_overlap(start, end)
            if clash is not None:
                error = ConflictError(
                    appointment.appointment_id,
                    clash.appointment_id,
                    day.day_date,
                    appointment.fixed_time,
                    PlacedAppointment(appointment, start, end).end_time,
                )
                logger.warning("%s", error)
                outcome.conflicts.append(
                    Conflict(
                        appointment_id=error.appointment_id,
                        conflicting_with=error.conflicting_with,
                        day_date=error.day,
                        start_time=error.start,
                        end_time=error.end,
                        message=str(error),
                    )
                )
                continue
            days[index] = day.with_appointment(PlacedAppointment(appointment, start, end))

    def _place_flexible(
        self,
        days: list[Day],
        flexible: Sequence[Appointment],
        region_ranks: dict[str, int],
        outcome: ScheduleOutcome,
    ) -> None:
        fallback_rank = len(set(region_ranks.values()))
        ordered = sorted(
            flexible,
            key=lambda item: flexible_sort_key(item, region_ranks.get(item.appointment_id, fallback_rank)),
        )
        for appointment in ordered:
            placed = False
            for index, day in enumerate(days):
                candidate = self.try_place(day, appointment, is_last_day=index == len(days) - 1)
                if candidate is None:
                    continue
                days[index] = day.with_appointment(candidate)
                placed = True
                break
            if not placed:
                logger.warning("No slot found for appointment %s", appointment.appointment_id)
                outcome.unscheduled.append(
                    UnscheduledAppointment(
                        appointment_id=appointment.appointment_id,
                        customer_name=appointment.customer_name,
                        reason="no free slot within the work-hour limits of this week",
                    )
                )

    def ceiling_for(self, appointment: Appointment) -> float:
        return self.flex_hours_per_day if appointment.is_confirmed else self.max_hours_per_day

    def try_place(self, day: Day, appointment: Appointment, *, is_last_day: bool = False) -> Optional[PlacedAppointment]:
        """First slot of ``day`` that fits the appointment plus its travel, or ``None``."""

        duration = appointment.duration_hours
        if day.work_hours + duration > self.ceiling_for(appointment) + _EPSILON:
            return None

        coordinate = appointment.coordinate
        for slot in find_available_slots(day, grid_hours=self.grid_hours):
            if slot.duration_hours + _EPSILON < duration:
                continue

            # Overnight stops are chosen after placement, so a day's first stop is reached from home.
            if slot.previous is not None:
                arrival = slot.previous.end_hour + self._travel_hours(slot.previous.coordinate, coordinate)
            else:
                arrival = day.start_hour + self._travel_hours(self.home_base.coordinate, coordinate)
            earliest = max(slot.start_hour, arrival)
            start = ceil_to_grid(earliest, self.grid_hours)
            end = start + duration
            if end > slot.end_hour + _EPSILON:
                continue

            if slot.following is not None:
                travel_out = self._travel_hours(coordinate, slot.following.coordinate)
                if end + travel_out > slot.following.start_hour + _EPSILON:
                    continue
            elif is_last_day:
                travel_home = self._travel_hours(coordinate, self.home_base.coordinate)
                if end + travel_home > day.end_hour + _EPSILON:
                    continue

            return PlacedAppointment(appointment, start, end)
        return None

    def _travel_hours(self, origin: Optional[Coordinate], destination: Optional[Coordinate]) -> float:
        if origin is None or destination is None:
            return 0.0
        return self.estimator.estimate(origin, destination).duration_hours
