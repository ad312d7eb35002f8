"""Weekly planning pipeline: geocode, cluster, schedule, overnight stops, segments, stats."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from ...config import settings
from ...models.domain import Appointment, HomeBase
from ..errors import PlanningError
from ..geocoding.service import Geocoder
from ..travel.estimator import TravelEstimator
from ..zoning.regions import RegionClusterer
from .duplicates import DuplicateGuard
from .models import (
    Day,
    GeocodeFailure,
    PlanDiagnostics,
    PlanStats,
    UnscheduledAppointment,
    WeeklyPlan,
)
from .overnight import OvernightPlanner
from .scheduler import WeeklyScheduler
from .segments import SegmentBuilder

logger = logging.getLogger(__name__)


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def default_home_base() -> HomeBase:
    return HomeBase(settings.home_base_name, settings.home_base_latitude, settings.home_base_longitude)


def compute_stats(
    days: Sequence[Day],
    *,
    total_appointments: int,
    unscheduled: int,
    weekly_ceiling: float,
) -> PlanStats:
    stats = PlanStats(total_appointments=total_appointments, unscheduled=unscheduled)
    for day in days:
        for placed in day.appointments:
            stats.scheduled += 1
            if placed.appointment.is_fixed:
                stats.fixed_scheduled += 1
            else:
                stats.flexible_scheduled += 1
            status = placed.appointment.status.value
            stats.by_status[status] = stats.by_status.get(status, 0) + 1
        stats.total_work_hours += day.work_hours
        stats.total_travel_hours += day.travel_hours
        stats.total_distance_km += day.distance_km
        if day.appointments:
            stats.work_days += 1
        if day.overnight is not None:
            stats.overnight_stays += 1
        if day.prior_overnight is not None:
            stats.overnight_stays += 1

    stats.total_work_hours = round(stats.total_work_hours, 2)
    stats.total_travel_hours = round(stats.total_travel_hours, 2)
    stats.total_distance_km = round(stats.total_distance_km, 1)
    if stats.total_work_hours > 0:
        stats.travel_efficiency = round(1 - stats.total_travel_hours / stats.total_work_hours, 3)
    if weekly_ceiling > 0:
        stats.week_utilization = round(stats.total_work_hours / weekly_ceiling, 3)
    return stats


def validation_warnings(days: Sequence[Day], *, weekly_ceiling: float, flex_ceiling: float) -> list[str]:
    warnings: list[str] = []
    total = sum(day.work_hours for day in days)
    if total > weekly_ceiling:
        warnings.append(f"Weekly work time {total:.1f}h exceeds the {weekly_ceiling:.0f}h limit")
    for day in days:
        if day.work_hours > flex_ceiling:
            warnings.append(f"{day.weekday}: {day.work_hours:.1f}h exceeds the {flex_ceiling:.0f}h daily limit")
        if day.travel_segments and day.travel_segments[0].start_hour < day.start_hour:
            warnings.append(
                f"{day.weekday}: departure at {day.travel_segments[0].start_time} needed to reach "
                f"the first appointment; consider an overnight stay the day before"
            )
    return warnings


class PlanningEngine:
    """Entry point for weekly planning runs.

    Collaborators are injected; anything omitted is built from settings with the
    offline fallbacks (no mapping service, no stored plans).
    """

    def __init__(
        self,
        estimator: TravelEstimator | None = None,
        geocoder: Geocoder | None = None,
        clusterer: RegionClusterer | None = None,
        plan_store=None,
        home_base: HomeBase | None = None,
        *,
        scheduler: WeeklyScheduler | None = None,
        overnight_planner: OvernightPlanner | None = None,
        max_hours_per_week: float | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.home_base = home_base or default_home_base()
        self.estimator = estimator or TravelEstimator()
        self.geocoder = geocoder
        self.clusterer = clusterer or RegionClusterer()
        self.duplicate_guard = DuplicateGuard(plan_store)
        self.scheduler = scheduler or WeeklyScheduler(self.estimator, self.home_base)
        self.overnight_planner = overnight_planner or OvernightPlanner(self.home_base, estimator=self.estimator)
        self.segment_builder = SegmentBuilder(self.estimator, self.home_base)
        self.max_hours_per_week = (
            max_hours_per_week if max_hours_per_week is not None else settings.max_work_hours_per_week
        )
        self._clock = clock

    def empty_plan(
        self,
        week_start: date,
        driver_id: str,
        diagnostics: Optional[PlanDiagnostics] = None,
        total_appointments: int = 0,
    ) -> WeeklyPlan:
        """Zero-filled plan returned alongside planning failures."""

        days = tuple(self.scheduler.build_days(monday_of(week_start)))
        diagnostics = diagnostics or PlanDiagnostics()
        return WeeklyPlan(
            week_start=monday_of(week_start),
            driver_id=driver_id,
            days=days,
            stats=compute_stats(
                days,
                total_appointments=total_appointments,
                unscheduled=len(diagnostics.unscheduled) + len(diagnostics.conflicts),
                weekly_ceiling=self.max_hours_per_week,
            ),
            diagnostics=diagnostics,
            generated_at=self._clock(),
        )

    def _resolve_coordinates(
        self,
        appointments: Sequence[Appointment],
        diagnostics: PlanDiagnostics,
    ) -> list[Appointment]:
        missing = [item for item in appointments if item.coordinate is None]
        if not missing:
            return list(appointments)

        resolved: dict[str, Appointment] = {}
        if self.geocoder is not None:
            summary = self.geocoder.geocode_batch([item.address for item in missing if item.address])
            for item in missing:
                result = summary.results.get(item.address)
                if result is not None:
                    resolved[item.appointment_id] = item.with_coordinate(result.coordinate)

        located: list[Appointment] = []
        for item in appointments:
            if item.coordinate is not None:
                located.append(item)
            elif item.appointment_id in resolved:
                located.append(resolved[item.appointment_id])
            else:
                reason = "address could not be geocoded" if self.geocoder is not None else "no coordinates"
                logger.warning("Appointment %s excluded: %s (%r)", item.appointment_id, reason, item.address)
                diagnostics.failures.append(GeocodeFailure(item.appointment_id, item.address, reason))
        return located

    def optimize_week(
        self,
        appointments: Sequence[Appointment],
        week_start: date,
        driver_id: str = "default",
    ) -> WeeklyPlan:
        """Plan one week for a single driver.

        Raises :class:`PlanningError` (with a zero-filled plan) when nothing is left to
        plan after filtering or nothing could be placed. Per-appointment problems are
        collected in the plan diagnostics.
        """
        week_start = monday_of(week_start)
        week_end = week_start + timedelta(days=4)
        diagnostics = PlanDiagnostics()
        logger.info(
            "Planning week %s for driver %s with %d appointment(s)",
            week_start.isoformat(),
            driver_id,
            len(appointments),
        )

        plannable = [item for item in appointments if item.is_plannable]
        if not plannable:
            raise PlanningError(
                "No plannable appointments available",
                self.empty_plan(week_start, driver_id, diagnostics),
            )

        located = self._resolve_coordinates(plannable, diagnostics)

        used = self.duplicate_guard.used_appointment_ids(exclude_week=week_start)
        fixed: list[Appointment] = []
        flexible: list[Appointment] = []
        for item in located:
            if item.is_fixed:
                if week_start <= item.fixed_date <= week_end:
                    fixed.append(item)
                else:
                    diagnostics.skipped.append(
                        UnscheduledAppointment(item.appointment_id, item.customer_name, "outside_week")
                    )
            elif item.appointment_id in used:
                diagnostics.skipped.append(
                    UnscheduledAppointment(item.appointment_id, item.customer_name, "already_planned")
                )
            else:
                flexible.append(item)

        if not fixed and not flexible:
            raise PlanningError(
                "No appointments remain after filtering",
                self.empty_plan(week_start, driver_id, diagnostics, total_appointments=len(plannable)),
            )

        clustering = self.clusterer.cluster([*fixed, *flexible])
        ranks = self.clusterer.region_ranks(self.home_base)
        appointment_ranks = {aid: ranks[region] for aid, region in clustering.assignments.items()}
        logger.info("Region distribution: %s", clustering.counts())

        located_points = [item.coordinate for item in [*fixed, *flexible]]
        warmed = self.estimator.warm([self.home_base.coordinate, *located_points])
        if warmed:
            logger.info("Prefetched travel times between %d locations", warmed)

        outcome = self.scheduler.schedule(week_start, fixed, flexible, appointment_ranks)
        diagnostics.conflicts.extend(outcome.conflicts)
        diagnostics.unscheduled.extend(outcome.unscheduled)

        if not any(day.appointments for day in outcome.days):
            raise PlanningError(
                f"None of the {len(fixed) + len(flexible)} appointment(s) could be placed",
                self.empty_plan(week_start, driver_id, diagnostics, total_appointments=len(plannable)),
            )

        days = self.overnight_planner.plan(outcome.days)
        days = self.segment_builder.build(days)
        diagnostics.warnings.extend(
            validation_warnings(
                days,
                weekly_ceiling=self.max_hours_per_week,
                flex_ceiling=self.scheduler.flex_hours_per_day,
            )
        )

        plan = WeeklyPlan(
            week_start=week_start,
            driver_id=driver_id,
            days=days,
            stats=compute_stats(
                days,
                total_appointments=len(plannable),
                unscheduled=len(diagnostics.unscheduled) + len(diagnostics.conflicts),
                weekly_ceiling=self.max_hours_per_week,
            ),
            diagnostics=diagnostics,
            generated_at=self._clock(),
        )
        logger.info(
            "Planned %d of %d appointment(s) for week %s: %.1fh work, %.1fh travel, %d overnight stay(s)",
            plan.stats.scheduled,
            plan.stats.total_appointments,
            week_start.isoformat(),
            plan.stats.total_work_hours,
            plan.stats.total_travel_hours,
            plan.stats.overnight_stays,
        )
        return plan
