"""Strategic overnight stops for days that end too far from home or start too early."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...data.gazetteer import city_label, nearest_city
from ...models.domain import HomeBase
from ..geospatial import distance_between
from ..travel.estimator import TravelEstimator
from .models import Day, OvernightStay
from .timeutils import hours_to_time

logger = logging.getLogger(__name__)

_EPSILON = 1e-6


class OvernightPlanner:
    def __init__(
        self,
        home_base: HomeBase,
        *,
        estimator: TravelEstimator | None = None,
        distance_threshold_km: float | None = None,
        proximity_threshold_km: float | None = None,
    ) -> None:
        self.home_base = home_base
        self.estimator = estimator
        self.distance_threshold_km = (
            distance_threshold_km if distance_threshold_km is not None else settings.overnight_distance_km
        )
        self.proximity_threshold_km = (
            proximity_threshold_km if proximity_threshold_km is not None else settings.overnight_proximity_km
        )

    def plan(self, days: Sequence[Day]) -> tuple[Day, ...]:
        """Mark days whose last appointment is beyond the threshold with an overnight stay.

        The final day of the week always returns home. A day that does not follow an
        overnight stay and whose first appointment cannot be reached from home after the
        day opens gets a ``prior_overnight`` near that appointment instead.
        """
        planned = list(days)
        for index, day in enumerate(planned[:-1]):
            stay = self._overnight_for(day, planned[index + 1])
            if stay is not None:
                logger.info("Overnight stay in %s after %s (%s)", stay.city, day.weekday, stay.reason)
            planned[index] = day.with_overnight(stay)
        if planned:
            planned[-1] = planned[-1].with_overnight(None)

        for index, day in enumerate(planned):
            follows_overnight = index > 0 and planned[index - 1].overnight is not None
            stay = None if follows_overnight else self._early_start_stay(day)
            if stay is not None:
                logger.info("Overnight stay in %s before %s (%s)", stay.city, day.weekday, stay.reason)
            planned[index] = day.with_prior_overnight(stay)
        return tuple(planned)

    def _overnight_for(self, day: Day, next_day: Day) -> OvernightStay | None:
        if not day.appointments:
            return None
        last = day.appointments[-1].coordinate
        if last is None:
            return None
        distance_home = distance_between(last, self.home_base.coordinate)
        if distance_home <= self.distance_threshold_km:
            return None

        city = nearest_city(last)
        optimized = False
        if next_day.appointments and next_day.appointments[0].coordinate is not None:
            optimized = (
                distance_between(city.coordinate, next_day.appointments[0].coordinate) < self.proximity_threshold_km
            )
        return OvernightStay(
            city=city.name,
            latitude=city.latitude,
            longitude=city.longitude,
            distance_to_home_km=round(distance_home, 1),
            reason=f"{round(distance_home)} km from {self.home_base.name}, too far for a same-day return",
            optimized=optimized,
        )

    def _early_start_stay(self, day: Day) -> OvernightStay | None:
        if self.estimator is None or not day.appointments:
            return None
        first = day.appointments[0]
        if first.coordinate is None:
            return None
        travel = self.estimator.estimate(self.home_base.coordinate, first.coordinate).duration_hours
        departure = first.start_hour - travel
        if departure >= day.start_hour - _EPSILON:
            return None

        city = nearest_city(first.coordinate)
        return OvernightStay(
            city=city.name,
            latitude=city.latitude,
            longitude=city.longitude,
            distance_to_home_km=round(distance_between(city.coordinate, self.home_base.coordinate), 1),
            reason=(
                f"reaching {city_label(first.appointment.address)} by {first.start_time} would mean leaving "
                f"{self.home_base.name} at {hours_to_time(max(0.0, departure))}"
            ),
            optimized=True,
        )
