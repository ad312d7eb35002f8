"""Exception taxonomy shared by the planning engine."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .planning.models import WeeklyPlan


class RoutePlannerError(Exception):
    """Base class for engine errors."""


class ExternalServiceError(RoutePlannerError):
    """The mapping service timed out, was unreachable, or answered with a non-OK status."""

    def __init__(self, message: str, *, service: str = "maps", status: Optional[str] = None) -> None:
        super().__init__(message)
        self.service = service
        self.status = status


class GeocodeError(RoutePlannerError):
    """No geocoding strategy could resolve the address."""

    def __init__(self, address: str, reason: str = "no strategy could resolve the address") -> None:
        super().__init__(f"Unable to geocode '{address}': {reason}")
        self.address = address
        self.reason = reason


class ConflictError(RoutePlannerError):
    """A fixed appointment collides with one already placed on the same day."""

    def __init__(self, appointment_id: str, conflicting_with: str, day: date, start: str, end: str) -> None:
        super().__init__(
            f"Fixed appointment '{appointment_id}' ({day.isoformat()} {start}-{end}) "
            f"overlaps '{conflicting_with}'"
        )
        self.appointment_id = appointment_id
        self.conflicting_with = conflicting_with
        self.day = day
        self.start = start
        self.end = end


class PlanningError(RoutePlannerError):
    """A planning run could not produce a plan.

    ``plan`` always holds a zero-filled week so callers never handle a missing result.
    """

    def __init__(self, message: str, plan: "WeeklyPlan") -> None:
        super().__init__(message)
        self.plan = plan


class PlanValidationError(RoutePlannerError):
    """A stored plan payload does not match the versioned plan schema."""


class StoreError(RoutePlannerError):
    """A persistence collaborator failed to read or write."""
