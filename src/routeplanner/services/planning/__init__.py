"""Weekly planning engine."""

from .alternatives import find_alternative_slots
from .engine import PlanningEngine, monday_of

__all__ = ["PlanningEngine", "find_alternative_slots", "monday_of"]
