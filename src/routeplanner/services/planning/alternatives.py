"""Replacement slot suggestions for a rejected appointment."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ...config import settings
from ...models.domain import Appointment
from ..geospatial import distance_between
from .models import Day, WeeklyPlan
from .slots import TimeSlot, find_available_slots
from .timeutils import hours_to_time

TRAVEL_WEIGHT = 0.6
QUALITY_WEIGHT = 0.4
MAX_ALTERNATIVES = 5


@dataclass(frozen=True, slots=True)
class AlternativeSlot:
    weekday: str
    day_date: date
    day_index: int
    start_hour: float
    end_hour: float
    available_hours: float
    travel_efficiency: float
    time_quality: float

    @property
    def score(self) -> float:
        return TRAVEL_WEIGHT * self.travel_efficiency + QUALITY_WEIGHT * self.time_quality


@dataclass(slots=True)
class AlternativeSuggestions:
    appointment_id: str
    customer_name: str
    alternatives: list[AlternativeSlot] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)

    @property
    def can_reschedule(self) -> bool:
        return bool(self.alternatives)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def slot_travel_efficiency(day: Day, start_hour: float, appointment: Appointment) -> float:
    """Proximity of the slot to the day's other appointments, in space and time."""

    efficiency = 0.5
    coordinate = appointment.coordinate
    if coordinate is not None:
        for placed in day.appointments:
            if placed.coordinate is None:
                continue
            distance = distance_between(coordinate, placed.coordinate)
            hours_apart = abs(start_hour - placed.start_hour)
            if distance < 50 and hours_apart < 4:
                efficiency += 0.3
            elif distance < 100 and hours_apart < 6:
                efficiency += 0.2
    if start_hour < 8 or start_hour > 16:
        efficiency -= 0.2
    return _clamp(efficiency)


def slot_time_quality(slot: TimeSlot, day_index: int) -> float:
    quality = 0.5
    hour = slot.start_hour
    if 9 <= hour <= 11:
        quality += 0.3
    elif 13 <= hour <= 15:
        quality += 0.2
    elif 15 < hour <= 17:
        quality += 0.1
    if 1 <= day_index <= 3:
        quality += 0.1
    if slot.duration_hours > 5:
        quality += 0.2
    elif slot.duration_hours > 4:
        quality += 0.1
    return _clamp(quality)


def _reasoning(top: list[AlternativeSlot]) -> list[str]:
    if not top:
        return ["No suitable alternative slot in this week"]
    best = top[0]
    lines = [f"Best alternative: {best.weekday} {hours_to_time(best.start_hour)}-{hours_to_time(best.end_hour)}"]
    if best.travel_efficiency > 0.7:
        lines.append("Excellent travel efficiency thanks to nearby appointments")
    elif best.travel_efficiency > 0.5:
        lines.append("Good travel efficiency")
    if best.time_quality > 0.7:
        lines.append("Preferred time of day")
    if len(top) > 1:
        lines.append(f"{len(top) - 1} further alternative(s) available")
    return lines


def find_alternative_slots(
    appointment: Appointment,
    plan: WeeklyPlan,
    *,
    buffer_hours: float | None = None,
    limit: int = MAX_ALTERNATIVES,
) -> AlternativeSuggestions:
    """Score every free slot of ``plan`` that can host the appointment plus one buffer."""

    buffer_hours = buffer_hours if buffer_hours is not None else settings.slot_buffer_hours
    required = appointment.duration_hours + buffer_hours
    candidates: list[AlternativeSlot] = []
    for day_index, day in enumerate(plan.days):
        for slot in find_available_slots(day):
            if slot.duration_hours < required:
                continue
            candidates.append(
                AlternativeSlot(
                    weekday=day.weekday,
                    day_date=day.day_date,
                    day_index=day_index,
                    start_hour=slot.start_hour,
                    end_hour=slot.start_hour + appointment.duration_hours,
                    available_hours=slot.duration_hours,
                    travel_efficiency=slot_travel_efficiency(day, slot.start_hour, appointment),
                    time_quality=slot_time_quality(slot, day_index),
                )
            )

    candidates.sort(key=lambda item: (-round(item.score, 6), item.day_index, item.start_hour))
    top = candidates[:limit]
    return AlternativeSuggestions(
        appointment_id=appointment.appointment_id,
        customer_name=appointment.customer_name,
        alternatives=top,
        reasoning=_reasoning(top[:3]),
    )
