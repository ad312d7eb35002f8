"""Store interfaces used by the planning engine and their in-memory implementations."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Protocol

from ..models.domain import Appointment
from ..services.outputs.formatter import payload_to_plan, plan_to_payload
from ..services.planning.models import WeeklyPlan

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AppointmentStore(Protocol):
    def list_plannable(self) -> list[Appointment]:
        ...


class PlanStore(Protocol):
    def list_active_plans(self, exclude_week: Optional[date] = None) -> list[WeeklyPlan]:
        ...

    def save(self, plan: WeeklyPlan) -> str:
        ...

    def deactivate_others(self, week_start: date) -> int:
        ...

    def get_active_plan(self, week_start: date) -> Optional[WeeklyPlan]:
        ...


class CacheStore(Protocol):
    def get_distance(self, key: str, *, max_age: Optional[timedelta] = None) -> Optional[dict]:
        ...

    def put_distance(self, key: str, entry: dict) -> None:
        ...

    def expire_older_than(self, cutoff: datetime) -> int:
        ...

    def get_geocode(self, address: str) -> Optional[dict]:
        ...

    def put_geocode(self, address: str, entry: dict) -> None:
        ...

    def clear_geocodes(self) -> int:
        ...

    def stats(self) -> dict:
        ...


class InMemoryAppointmentStore:
    def __init__(self, appointments: Iterable[Appointment] = ()) -> None:
        self._lock = threading.Lock()
        self._appointments: dict[str, Appointment] = {item.appointment_id: item for item in appointments}

    def add(self, appointment: Appointment) -> None:
        with self._lock:
            self._appointments[appointment.appointment_id] = appointment

    def list_plannable(self) -> list[Appointment]:
        with self._lock:
            return [item for item in self._appointments.values() if item.is_plannable]


class InMemoryPlanStore:
    """Keeps plans as validated schema payloads, one active plan per week."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict] = {}

    def save(self, plan: WeeklyPlan) -> str:
        plan_id = plan.plan_id or uuid.uuid4().hex
        plan.plan_id = plan_id
        payload = plan_to_payload(plan)
        with self._lock:
            self._records[plan_id] = {
                "week_start": plan.week_start,
                "is_active": True,
                "payload": payload,
            }
        logger.info("Saved plan %s for week %s", plan_id, plan.week_start.isoformat())
        return plan_id

    def deactivate_others(self, week_start: date) -> int:
        count = 0
        with self._lock:
            for record in self._records.values():
                if record["week_start"] == week_start and record["is_active"]:
                    record["is_active"] = False
                    count += 1
        return count

    def list_active_plans(self, exclude_week: Optional[date] = None) -> list[WeeklyPlan]:
        with self._lock:
            payloads = [
                record["payload"]
                for record in self._records.values()
                if record["is_active"] and record["week_start"] != exclude_week
            ]
        return [payload_to_plan(payload) for payload in payloads]

    def get_active_plan(self, week_start: date) -> Optional[WeeklyPlan]:
        with self._lock:
            matches = [
                record["payload"]
                for record in self._records.values()
                if record["is_active"] and record["week_start"] == week_start
            ]
        return payload_to_plan(matches[-1]) if matches else None


class InMemoryCacheStore:
    """Distance and geocode cache guarded by a single lock."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._distances: dict[str, dict] = {}
        self._geocodes: dict[str, dict] = {}
        self._counters = {"distance_hits": 0, "distance_misses": 0, "geocode_hits": 0, "geocode_misses": 0}

    def _stamp(self, entry: dict) -> dict:
        stamped = dict(entry)
        stamped.setdefault("cached_at", self._clock().isoformat())
        return stamped

    def get_distance(self, key: str, *, max_age: Optional[timedelta] = None) -> Optional[dict]:
        with self._lock:
            entry = self._distances.get(key)
            if entry is not None and max_age is not None:
                if datetime.fromisoformat(entry["cached_at"]) < self._clock() - max_age:
                    entry = None
            self._counters["distance_hits" if entry is not None else "distance_misses"] += 1
            return dict(entry) if entry is not None else None

    def put_distance(self, key: str, entry: dict) -> None:
        with self._lock:
            self._distances[key] = self._stamp(entry)
            self._persist()

    def expire_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [
                key
                for key, entry in self._distances.items()
                if datetime.fromisoformat(entry["cached_at"]) < cutoff
            ]
            for key in stale:
                del self._distances[key]
            if stale:
                self._persist()
            return len(stale)

    def get_geocode(self, address: str) -> Optional[dict]:
        with self._lock:
            entry = self._geocodes.get(address)
            self._counters["geocode_hits" if entry is not None else "geocode_misses"] += 1
            return dict(entry) if entry is not None else None

    def put_geocode(self, address: str, entry: dict) -> None:
        with self._lock:
            self._geocodes[address] = self._stamp(entry)
            self._persist()

    def clear_geocodes(self) -> int:
        with self._lock:
            count = len(self._geocodes)
            self._geocodes.clear()
            self._persist()
            return count

    def stats(self) -> dict:
        with self._lock:
            return {
                "distance_entries": len(self._distances),
                "geocode_entries": len(self._geocodes),
                **self._counters,
            }

    def _persist(self) -> None:
        """Hook for durable subclasses; called with the lock held."""

