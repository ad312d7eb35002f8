"""High-level orchestration for planning requests."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ...schemas.planning import (
    AlternativeSlotsRequest,
    AlternativeSlotsResponse,
    OptimizeWeekRequest,
    OptimizeWeekResponse,
    WeeklyPlanModel,
)
from ..context import PlanningContext, get_context
from ..errors import GeocodeError
from ..outputs.formatter import appointment_from_model, plan_to_model, suggestions_to_response
from .alternatives import find_alternative_slots
from .engine import monday_of

logger = logging.getLogger(__name__)


def optimize_week(payload: OptimizeWeekRequest, context: PlanningContext | None = None) -> OptimizeWeekResponse:
    """Run a planning pass and optionally store the result as the week's active plan.

    :class:`~routeplanner.services.errors.PlanningError` propagates to the caller.
    """
    context = context or get_context()
    if payload.appointments is not None:
        appointments = [appointment_from_model(item) for item in payload.appointments]
    else:
        appointments = context.appointment_store.list_plannable()

    plan = context.engine.optimize_week(appointments, payload.week_start, payload.driver_id)

    saved = False
    if payload.persist:
        replaced = context.plan_store.deactivate_others(plan.week_start)
        context.plan_store.save(plan)
        saved = True
        if replaced:
            logger.info("Replaced %d active plan(s) for week %s", replaced, plan.week_start.isoformat())
    return OptimizeWeekResponse(plan=plan_to_model(plan), saved=saved)


def get_active_plan(week_start: date, context: PlanningContext | None = None) -> Optional[WeeklyPlanModel]:
    context = context or get_context()
    plan = context.plan_store.get_active_plan(monday_of(week_start))
    return plan_to_model(plan) if plan else None


def suggest_alternatives(
    payload: AlternativeSlotsRequest,
    context: PlanningContext | None = None,
) -> AlternativeSlotsResponse:
    context = context or get_context()
    week_start = monday_of(payload.week_start)
    plan = context.plan_store.get_active_plan(week_start)
    if plan is None:
        raise LookupError(f"No active plan for week {week_start.isoformat()}")

    appointment = appointment_from_model(payload.appointment)
    if appointment.coordinate is None and appointment.address:
        try:
            appointment = appointment.with_coordinate(context.geocoder.geocode(appointment.address).coordinate)
        except GeocodeError as exc:
            logger.warning("Scoring alternatives without location for %s: %s", appointment.appointment_id, exc)

    return suggestions_to_response(find_alternative_slots(appointment, plan))
