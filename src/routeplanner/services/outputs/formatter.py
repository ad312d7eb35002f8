"""Conversions between engine dataclasses and the versioned plan schema."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ...models.domain import Appointment, AppointmentStatus, Priority
from ...schemas.planning import (
    AlternativeSlotModel,
    AlternativeSlotsResponse,
    AppointmentModel,
    ConflictModel,
    DayModel,
    GeocodeFailureModel,
    OvernightStayModel,
    PlacedAppointmentModel,
    PlanDiagnosticsModel,
    PlanStatsModel,
    TravelSegmentModel,
    UnscheduledModel,
    WeeklyPlanModel,
)
from ..errors import PlanValidationError
from ..planning.alternatives import AlternativeSuggestions
from ..planning.models import (
    Conflict,
    Day,
    GeocodeFailure,
    OvernightStay,
    PlacedAppointment,
    PlanDiagnostics,
    PlanStats,
    SegmentKind,
    TravelSegment,
    UnscheduledAppointment,
    WeeklyPlan,
)
from ..planning.timeutils import hours_to_time, time_to_hours

_segment_adapter: TypeAdapter = TypeAdapter(TravelSegmentModel)


def appointment_from_model(model: AppointmentModel) -> Appointment:
    return Appointment(
        appointment_id=model.appointment_id,
        customer_name=model.customer_name,
        address=model.address,
        priority=Priority(model.priority),
        status=AppointmentStatus(model.status),
        duration_hours=model.duration_hours,
        pipeline_days=model.pipeline_days,
        latitude=model.latitude,
        longitude=model.longitude,
        is_fixed=model.is_fixed,
        fixed_date=model.fixed_date,
        fixed_time=model.fixed_time,
        on_hold=model.on_hold,
    )


def _appointment_fields(appointment: Appointment) -> dict[str, Any]:
    return {
        "appointment_id": appointment.appointment_id,
        "customer_name": appointment.customer_name,
        "address": appointment.address,
        "priority": appointment.priority.value,
        "status": appointment.status.value,
        "duration_hours": appointment.duration_hours,
        "pipeline_days": appointment.pipeline_days,
        "latitude": appointment.latitude,
        "longitude": appointment.longitude,
        "is_fixed": appointment.is_fixed,
        "fixed_date": appointment.fixed_date,
        "fixed_time": appointment.fixed_time,
        "on_hold": appointment.on_hold,
    }


def _segment_to_model(segment: TravelSegment):
    return _segment_adapter.validate_python(
        {
            "kind": segment.kind.value,
            "origin": segment.origin,
            "destination": segment.destination,
            "distance_km": round(segment.distance_km, 2),
            "duration_hours": round(segment.duration_hours, 2),
            "start_time": segment.start_time,
            "end_time": segment.end_time,
            "approximated": segment.approximated,
        }
    )


def _day_to_model(day: Day) -> DayModel:
    return DayModel(
        weekday=day.weekday,
        day_date=day.day_date,
        start_time=hours_to_time(day.start_hour),
        end_time=hours_to_time(day.end_hour),
        capacity_hours=day.capacity_hours,
        state=day.state.value,
        appointments=[
            PlacedAppointmentModel(
                **_appointment_fields(placed.appointment),
                start_time=placed.start_time,
                end_time=placed.end_time,
            )
            for placed in day.appointments
        ],
        travel_segments=[_segment_to_model(segment) for segment in day.travel_segments],
        work_hours=round(day.work_hours, 2),
        travel_hours=round(day.travel_hours, 2),
        distance_km=round(day.distance_km, 1),
        overnight=OvernightStayModel(**asdict(day.overnight)) if day.overnight else None,
        prior_overnight=OvernightStayModel(**asdict(day.prior_overnight)) if day.prior_overnight else None,
    )


def plan_to_model(plan: WeeklyPlan) -> WeeklyPlanModel:
    diagnostics = plan.diagnostics
    return WeeklyPlanModel(
        plan_id=plan.plan_id,
        week_start=plan.week_start,
        driver_id=plan.driver_id,
        generated_at=plan.generated_at,
        days=[_day_to_model(day) for day in plan.days],
        stats=PlanStatsModel(**asdict(plan.stats)),
        diagnostics=PlanDiagnosticsModel(
            conflicts=[ConflictModel(**asdict(item)) for item in diagnostics.conflicts],
            unscheduled=[UnscheduledModel(**asdict(item)) for item in diagnostics.unscheduled],
            failures=[GeocodeFailureModel(**asdict(item)) for item in diagnostics.failures],
            skipped=[UnscheduledModel(**asdict(item)) for item in diagnostics.skipped],
            warnings=list(diagnostics.warnings),
        ),
    )


def _day_from_model(model: DayModel) -> Day:
    appointments = tuple(
        PlacedAppointment(
            appointment=appointment_from_model(item),
            start_hour=time_to_hours(item.start_time),
            end_hour=time_to_hours(item.end_time),
        )
        for item in model.appointments
    )
    segments = tuple(
        TravelSegment(
            kind=SegmentKind(item.kind),
            origin=item.origin,
            destination=item.destination,
            distance_km=item.distance_km,
            duration_hours=item.duration_hours,
            start_hour=time_to_hours(item.start_time),
            end_hour=time_to_hours(item.end_time),
            approximated=item.approximated,
        )
        for item in model.travel_segments
    )
    return Day(
        weekday=model.weekday,
        day_date=model.day_date,
        start_hour=time_to_hours(model.start_time),
        end_hour=time_to_hours(model.end_time),
        capacity_hours=model.capacity_hours,
        appointments=tuple(sorted(appointments, key=lambda placed: placed.start_hour)),
        travel_segments=segments,
        work_hours=model.work_hours,
        travel_hours=model.travel_hours,
        distance_km=model.distance_km,
        overnight=OvernightStay(**model.overnight.model_dump()) if model.overnight else None,
        prior_overnight=(
            OvernightStay(**model.prior_overnight.model_dump()) if model.prior_overnight else None
        ),
    )


def model_to_plan(model: WeeklyPlanModel) -> WeeklyPlan:
    diagnostics = model.diagnostics
    return WeeklyPlan(
        week_start=model.week_start,
        driver_id=model.driver_id,
        days=tuple(_day_from_model(day) for day in model.days),
        stats=PlanStats(**model.stats.model_dump()),
        diagnostics=PlanDiagnostics(
            conflicts=[Conflict(**item.model_dump()) for item in diagnostics.conflicts],
            unscheduled=[UnscheduledAppointment(**item.model_dump()) for item in diagnostics.unscheduled],
            failures=[GeocodeFailure(**item.model_dump()) for item in diagnostics.failures],
            skipped=[UnscheduledAppointment(**item.model_dump()) for item in diagnostics.skipped],
            warnings=list(diagnostics.warnings),
        ),
        generated_at=model.generated_at,
        plan_id=model.plan_id,
    )


def plan_to_payload(plan: WeeklyPlan) -> dict:
    return plan_to_model(plan).model_dump(mode="json")


def payload_to_plan(payload: Any) -> WeeklyPlan:
    """Validate a stored payload against the plan schema and rebuild the plan."""

    try:
        model = WeeklyPlanModel.model_validate(payload)
    except ValidationError as exc:
        raise PlanValidationError(f"Stored plan does not match schema version 1: {exc}") from exc
    try:
        return model_to_plan(model)
    except ValueError as exc:
        raise PlanValidationError(f"Stored plan is inconsistent: {exc}") from exc


def suggestions_to_response(suggestions: AlternativeSuggestions) -> AlternativeSlotsResponse:
    return AlternativeSlotsResponse(
        appointment_id=suggestions.appointment_id,
        customer_name=suggestions.customer_name,
        can_reschedule=suggestions.can_reschedule,
        alternatives=[
            AlternativeSlotModel(
                weekday=slot.weekday,
                day_date=slot.day_date,
                start_time=hours_to_time(slot.start_hour),
                end_time=hours_to_time(slot.end_hour),
                available_hours=round(slot.available_hours, 2),
                travel_efficiency=round(slot.travel_efficiency, 3),
                time_quality=round(slot.time_quality, 3),
                score=round(slot.score, 3),
            )
            for slot in suggestions.alternatives
        ],
        reasoning=list(suggestions.reasoning),
    )
