"""Domain models for appointments and the driver's home base."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Optional


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class AppointmentStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    TO_RESCHEDULE = "to_reschedule"


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def rounded(self, precision: int) -> "Coordinate":
        return Coordinate(round(self.latitude, precision), round(self.longitude, precision))

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class Appointment:
    """A visit that requires travelling to the customer's address."""

    appointment_id: str
    customer_name: str
    address: str
    priority: Priority = Priority.MEDIUM
    status: AppointmentStatus = AppointmentStatus.PROPOSED
    duration_hours: float = 3.0
    pipeline_days: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_fixed: bool = False
    fixed_date: Optional[date] = None
    fixed_time: Optional[str] = None
    on_hold: bool = False
    raw: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.is_fixed and (self.fixed_date is None or not self.fixed_time):
            raise ValueError(
                f"Fixed appointment '{self.appointment_id}' requires both a fixed date and a fixed time."
            )

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(self.latitude, self.longitude)

    @property
    def is_confirmed(self) -> bool:
        return self.status is AppointmentStatus.CONFIRMED

    @property
    def is_plannable(self) -> bool:
        return not self.on_hold and self.status is not AppointmentStatus.CANCELLED

    def with_coordinate(self, coordinate: Coordinate) -> "Appointment":
        return replace(self, latitude=coordinate.latitude, longitude=coordinate.longitude)


@dataclass(frozen=True, slots=True)
class HomeBase:
    """Fixed origin and destination of every working day."""

    name: str
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)
