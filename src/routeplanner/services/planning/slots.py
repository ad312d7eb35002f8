"""Free time windows within a scheduled day."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...config import settings
from .models import Day, PlacedAppointment
from .timeutils import ceil_to_grid, floor_to_grid


@dataclass(frozen=True, slots=True)
class TimeSlot:
    start_hour: float
    end_hour: float
    previous: Optional[PlacedAppointment] = None
    following: Optional[PlacedAppointment] = None

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour


def find_available_slots(
    day: Day,
    *,
    buffer_hours: float | None = None,
    grid_hours: float | None = None,
) -> list[TimeSlot]:
    """Gaps of a day that could host another appointment.

    - before the first appointment, when it starts at least one hour after the day opens
    - between appointments, when the gap exceeds the buffer on both sides
    - after the last appointment, up to the end of the day

    Slot starts are rounded up and ends rounded down to the time grid.
    """
    buffer_hours = buffer_hours if buffer_hours is not None else settings.slot_buffer_hours
    grid_hours = grid_hours if grid_hours is not None else settings.slot_grid_hours
    appointments = day.appointments

    raw: list[TimeSlot] = []
    if not appointments:
        raw.append(TimeSlot(day.start_hour, day.end_hour))
    else:
        first = appointments[0]
        if first.start_hour >= day.start_hour + 1.0:
            raw.append(TimeSlot(day.start_hour, first.start_hour - buffer_hours, following=first))

        for current, upcoming in zip(appointments, appointments[1:]):
            if upcoming.start_hour - current.end_hour > 2 * buffer_hours:
                raw.append(
                    TimeSlot(
                        current.end_hour + buffer_hours,
                        upcoming.start_hour - buffer_hours,
                        previous=current,
                        following=upcoming,
                    )
                )

        last = appointments[-1]
        if last.end_hour + buffer_hours < day.end_hour:
            raw.append(TimeSlot(last.end_hour + buffer_hours, day.end_hour, previous=last))

    slots: list[TimeSlot] = []
    for slot in raw:
        start = ceil_to_grid(max(slot.start_hour, day.start_hour), grid_hours)
        end = floor_to_grid(min(slot.end_hour, day.end_hour), grid_hours)
        if end > start:
            slots.append(TimeSlot(start, end, slot.previous, slot.following))
    return slots
