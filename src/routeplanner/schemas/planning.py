"""Versioned weekly plan schema and planning request/response models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..services.planning.timeutils import time_to_hours

PLAN_SCHEMA_VERSION = 1


class AppointmentModel(BaseModel):
    appointment_id: str = Field(..., min_length=1)
    customer_name: str = ""
    address: str = ""
    priority: Literal["high", "medium", "low"] = "medium"
    status: Literal["proposed", "confirmed", "cancelled", "to_reschedule"] = "proposed"
    duration_hours: float = Field(default=3.0, gt=0, le=24)
    pipeline_days: int = Field(default=0, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    is_fixed: bool = False
    fixed_date: Optional[date] = None
    fixed_time: Optional[str] = Field(default=None, description="Fixed start time as HH:MM.")
    on_hold: bool = False

    @field_validator("fixed_time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and time_to_hours(value) >= 24:
            raise ValueError(f"Fixed time '{value}' must be before 24:00")
        return value


class PlacedAppointmentModel(AppointmentModel):
    start_time: str
    end_time: str


class _SegmentBase(BaseModel):
    origin: str
    destination: str
    distance_km: float = Field(..., ge=0)
    duration_hours: float = Field(..., ge=0)
    start_time: str
    end_time: str
    approximated: bool = False


class DepartureSegmentModel(_SegmentBase):
    kind: Literal["departure"] = "departure"


class TravelLegModel(_SegmentBase):
    kind: Literal["travel"] = "travel"


class ReturnSegmentModel(_SegmentBase):
    kind: Literal["return"] = "return"


TravelSegmentModel = Annotated[
    Union[DepartureSegmentModel, TravelLegModel, ReturnSegmentModel],
    Field(discriminator="kind"),
]


class OvernightStayModel(BaseModel):
    city: str
    latitude: float
    longitude: float
    distance_to_home_km: float
    reason: str
    optimized: bool = False


class DayModel(BaseModel):
    weekday: str
    day_date: date
    start_time: str
    end_time: str
    capacity_hours: float
    state: Literal["empty", "partial", "full"]
    appointments: List[PlacedAppointmentModel] = Field(default_factory=list)
    travel_segments: List[TravelSegmentModel] = Field(default_factory=list)
    work_hours: float = 0.0
    travel_hours: float = 0.0
    distance_km: float = 0.0
    overnight: Optional[OvernightStayModel] = None
    prior_overnight: Optional[OvernightStayModel] = None


class PlanStatsModel(BaseModel):
    total_appointments: int = 0
    scheduled: int = 0
    fixed_scheduled: int = 0
    flexible_scheduled: int = 0
    unscheduled: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    total_work_hours: float = 0.0
    total_travel_hours: float = 0.0
    total_distance_km: float = 0.0
    work_days: int = 0
    overnight_stays: int = 0
    travel_efficiency: float = 0.0
    week_utilization: float = 0.0


class ConflictModel(BaseModel):
    appointment_id: str
    conflicting_with: str
    day_date: date
    start_time: str
    end_time: str
    message: str


class UnscheduledModel(BaseModel):
    appointment_id: str
    customer_name: str = ""
    reason: str


class GeocodeFailureModel(BaseModel):
    appointment_id: str
    address: str
    reason: str


class PlanDiagnosticsModel(BaseModel):
    conflicts: List[ConflictModel] = Field(default_factory=list)
    unscheduled: List[UnscheduledModel] = Field(default_factory=list)
    failures: List[GeocodeFailureModel] = Field(default_factory=list)
    skipped: List[UnscheduledModel] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class WeeklyPlanModel(BaseModel):
    schema_version: Literal[1] = PLAN_SCHEMA_VERSION
    plan_id: Optional[str] = None
    week_start: date
    driver_id: str
    generated_at: datetime
    days: List[DayModel] = Field(..., min_length=5, max_length=5)
    stats: PlanStatsModel
    diagnostics: PlanDiagnosticsModel = Field(default_factory=PlanDiagnosticsModel)


class OptimizeWeekRequest(BaseModel):
    week_start: date = Field(..., description="Any date in the target week; normalized to its Monday.")
    driver_id: str = "default"
    appointments: Optional[List[AppointmentModel]] = Field(
        default=None,
        description="Appointments to plan. When omitted, plannable appointments are loaded from the store.",
    )
    persist: bool = Field(default=True, description="Save the plan as the active plan for its week.")


class OptimizeWeekResponse(BaseModel):
    plan: WeeklyPlanModel
    saved: bool = False


class AlternativeSlotsRequest(BaseModel):
    week_start: date
    appointment: AppointmentModel


class AlternativeSlotModel(BaseModel):
    weekday: str
    day_date: date
    start_time: str
    end_time: str
    available_hours: float
    travel_efficiency: float
    time_quality: float
    score: float


class AlternativeSlotsResponse(BaseModel):
    appointment_id: str
    customer_name: str
    can_reschedule: bool
    alternatives: List[AlternativeSlotModel]
    reasoning: List[str]
