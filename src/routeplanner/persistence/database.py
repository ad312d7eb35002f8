"""Supabase-backed appointment and plan stores."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from ..models.domain import Appointment, AppointmentStatus, Priority
from ..services.errors import PlanValidationError, StoreError
from ..services.outputs.formatter import payload_to_plan, plan_to_payload
from ..services.planning.models import WeeklyPlan

logger = logging.getLogger(__name__)

APPOINTMENTS_TABLE = "appointments"
PLANS_TABLE = "saved_plans"

# Legacy records carry German labels.
_PRIORITY_ALIASES = {"hoch": "high", "mittel": "medium", "niedrig": "low"}
_STATUS_ALIASES = {
    "vorschlag": "proposed",
    "bestätigt": "confirmed",
    "abgesagt": "cancelled",
    "neu_planen": "to_reschedule",
}


def _parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _pipeline_days(record: dict[str, Any], today: date) -> int:
    if record.get("pipeline_days") is not None:
        return int(record["pipeline_days"])
    created = _parse_date(record.get("created_at"))
    return max(0, (today - created).days) if created else 0


def appointment_from_record(record: dict[str, Any], today: date | None = None) -> Appointment:
    """Map an ``appointments`` row onto the domain model."""

    today = today or date.today()
    priority = str(record.get("priority") or "medium").lower()
    status = str(record.get("status") or "proposed").lower()
    fixed_time = record.get("fixed_time")
    return Appointment(
        appointment_id=str(record.get("appointment_id") or record["id"]),
        customer_name=record.get("customer_name") or record.get("customer") or "",
        address=record.get("address") or "",
        priority=Priority(_PRIORITY_ALIASES.get(priority, priority)),
        status=AppointmentStatus(_STATUS_ALIASES.get(status, status)),
        duration_hours=float(record.get("duration_hours") or record.get("duration") or 3.0),
        pipeline_days=_pipeline_days(record, today),
        latitude=record.get("latitude", record.get("lat")),
        longitude=record.get("longitude", record.get("lng")),
        is_fixed=bool(record.get("is_fixed")),
        fixed_date=_parse_date(record.get("fixed_date")),
        fixed_time=str(fixed_time)[:5] if fixed_time else None,
        on_hold=bool(record.get("on_hold")),
        raw=dict(record),
    )


class SupabaseAppointmentStore:
    def __init__(self, client) -> None:
        self.client = client

    def list_plannable(self) -> list[Appointment]:
        try:
            response = self.client.table(APPOINTMENTS_TABLE).select("*").execute()
        except Exception as exc:
            logger.error("Failed to load appointments: %s", exc)
            raise StoreError(f"Failed to load appointments: {exc}") from exc

        appointments: list[Appointment] = []
        for record in response.data or []:
            try:
                appointment = appointment_from_record(record)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed appointment record %s: %s", record.get("id"), exc)
                continue
            if appointment.is_plannable:
                appointments.append(appointment)
        return appointments


class SupabasePlanStore:
    """Plans live in ``saved_plans`` as schema payloads with an ``is_active`` flag."""

    def __init__(self, client) -> None:
        self.client = client

    def save(self, plan: WeeklyPlan) -> str:
        plan_id = plan.plan_id or uuid.uuid4().hex
        plan.plan_id = plan_id
        row = {
            "id": plan_id,
            "week_start": plan.week_start.isoformat(),
            "driver_id": plan.driver_id,
            "plan_data": plan_to_payload(plan),
            "is_active": True,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.table(PLANS_TABLE).insert(row).execute()
        except Exception as exc:
            logger.error("Failed to save plan for week %s: %s", plan.week_start.isoformat(), exc)
            raise StoreError(f"Failed to save plan: {exc}") from exc
        logger.info("Saved plan %s for week %s", plan_id, plan.week_start.isoformat())
        return plan_id

    def deactivate_others(self, week_start: date) -> int:
        try:
            response = (
                self.client.table(PLANS_TABLE)
                .update({"is_active": False})
                .eq("week_start", week_start.isoformat())
                .eq("is_active", True)
                .execute()
            )
        except Exception as exc:
            logger.error("Failed to deactivate plans for week %s: %s", week_start.isoformat(), exc)
            raise StoreError(f"Failed to deactivate plans: {exc}") from exc
        return len(response.data or [])

    def list_active_plans(self, exclude_week: Optional[date] = None) -> list[WeeklyPlan]:
        try:
            query = self.client.table(PLANS_TABLE).select("id, week_start, plan_data").eq("is_active", True)
            if exclude_week is not None:
                query = query.neq("week_start", exclude_week.isoformat())
            response = query.execute()
        except Exception as exc:
            logger.error("Failed to load active plans: %s", exc)
            raise StoreError(f"Failed to load active plans: {exc}") from exc
        plans: list[WeeklyPlan] = []
        for row in response.data or []:
            try:
                plans.append(payload_to_plan(row.get("plan_data")))
            except PlanValidationError as exc:
                logger.warning("Skipping invalid stored plan %s: %s", row.get("id"), exc)
        return plans

    def get_active_plan(self, week_start: date) -> Optional[WeeklyPlan]:
        try:
            response = (
                self.client.table(PLANS_TABLE)
                .select("id, week_start, plan_data")
                .eq("week_start", week_start.isoformat())
                .eq("is_active", True)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            logger.error("Failed to load plan for week %s: %s", week_start.isoformat(), exc)
            raise StoreError(f"Failed to load plan: {exc}") from exc
        rows = response.data or []
        return payload_to_plan(rows[0]["plan_data"]) if rows else None
