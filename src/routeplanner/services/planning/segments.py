"""Travel segments between the stops of each day."""

from __future__ import annotations

from typing import Optional, Sequence

from ...data.gazetteer import city_label
from ...models.domain import Coordinate, HomeBase
from ..travel.estimator import TravelEstimate, TravelEstimator
from .models import Day, PlacedAppointment, SegmentKind, TravelSegment


def _label(placed: PlacedAppointment) -> str:
    return city_label(placed.appointment.address)


class SegmentBuilder:
    def __init__(self, estimator: TravelEstimator, home_base: HomeBase) -> None:
        self.estimator = estimator
        self.home_base = home_base

    def _estimate(self, origin: Optional[Coordinate], destination: Optional[Coordinate]) -> TravelEstimate:
        if origin is None or destination is None:
            return TravelEstimate(distance_km=0.0, duration_hours=0.0, approximated=True, source="unknown")
        return self.estimator.estimate(origin, destination)

    def build(self, days: Sequence[Day]) -> tuple[Day, ...]:
        """Attach departure, inter-stop and return segments to every scheduled day.

        A day starts from the previous night's overnight city, or from its own
        ``prior_overnight`` hotel, when there is one and skips the return leg when it
        ends with an overnight stay.
        """
        built: list[Day] = []
        previous_overnight = None
        for day in days:
            if not day.appointments:
                built.append(day.with_segments(()))
                previous_overnight = day.overnight
                continue

            hotel = previous_overnight or day.prior_overnight
            if hotel is not None:
                origin_label, origin = hotel.city, hotel.coordinate
            else:
                origin_label, origin = self.home_base.name, self.home_base.coordinate

            segments: list[TravelSegment] = []
            first = day.appointments[0]
            estimate = self._estimate(origin, first.coordinate)
            segments.append(
                TravelSegment(
                    kind=SegmentKind.DEPARTURE,
                    origin=origin_label,
                    destination=_label(first),
                    distance_km=estimate.distance_km,
                    duration_hours=estimate.duration_hours,
                    start_hour=max(0.0, first.start_hour - estimate.duration_hours),
                    end_hour=first.start_hour,
                    approximated=estimate.approximated,
                )
            )

            for current, upcoming in zip(day.appointments, day.appointments[1:]):
                estimate = self._estimate(current.coordinate, upcoming.coordinate)
                segments.append(
                    TravelSegment(
                        kind=SegmentKind.TRAVEL,
                        origin=_label(current),
                        destination=_label(upcoming),
                        distance_km=estimate.distance_km,
                        duration_hours=estimate.duration_hours,
                        start_hour=current.end_hour,
                        end_hour=current.end_hour + estimate.duration_hours,
                        approximated=estimate.approximated,
                    )
                )

            if day.overnight is None:
                last = day.appointments[-1]
                estimate = self._estimate(last.coordinate, self.home_base.coordinate)
                segments.append(
                    TravelSegment(
                        kind=SegmentKind.RETURN,
                        origin=_label(last),
                        destination=self.home_base.name,
                        distance_km=estimate.distance_km,
                        duration_hours=estimate.duration_hours,
                        start_hour=last.end_hour,
                        end_hour=last.end_hour + estimate.duration_hours,
                        approximated=estimate.approximated,
                    )
                )

            built.append(day.with_segments(tuple(segments)))
            previous_overnight = day.overnight
        return tuple(built)
