"""Coarse geographic regions used to sequence appointments across the week."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from ...models.domain import Appointment, Coordinate, HomeBase
from ..geospatial import distance_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Region:
    name: str
    latitude: float
    longitude: float

    @property
    def centroid(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


# Iteration order is the tie-break for equidistant appointments.
DEFAULT_REGIONS: tuple[Region, ...] = (
    Region("Nord", 53.5, 10.0),
    Region("Ost", 52.5, 13.4),
    Region("West", 51.2, 7.0),
    Region("Süd", 48.5, 11.5),
    Region("Mitte", 50.5, 9.0),
)


class RegionClusteringResult:
    """Container for region assignments keyed by appointment id."""

    def __init__(self, assignments: dict[str, str], regions: Sequence[Region], metadata: dict | None = None):
        self.assignments = assignments
        self.regions = tuple(regions)
        self.metadata = metadata or {}

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {region.name: 0 for region in self.regions}
        for region_name in self.assignments.values():
            counts[region_name] = counts.get(region_name, 0) + 1
        return counts

    def appointments_for_region(self, region_name: str, appointments: Sequence[Appointment]) -> list[Appointment]:
        ids = {aid for aid, name in self.assignments.items() if name == region_name}
        return [appointment for appointment in appointments if appointment.appointment_id in ids]

    def as_buckets(self, appointments: Sequence[Appointment]) -> dict[str, list[Appointment]]:
        return {region.name: self.appointments_for_region(region.name, appointments) for region in self.regions}


class RegionClusterer:
    def __init__(self, regions: Sequence[Region] = DEFAULT_REGIONS) -> None:
        if not regions:
            raise ValueError("At least one region is required.")
        self.regions = tuple(regions)

    def nearest_region(self, coordinate: Coordinate) -> Region:
        best = self.regions[0]
        best_distance = distance_between(coordinate, best.centroid)
        for region in self.regions[1:]:
            distance = distance_between(coordinate, region.centroid)
            if distance < best_distance:
                best, best_distance = region, distance
        return best

    def cluster(self, appointments: Sequence[Appointment]) -> RegionClusteringResult:
        """Assign every geocoded appointment to exactly one region.

        Appointments without coordinates are returned in ``metadata["unlocated"]``.
        """
        assignments: dict[str, str] = {}
        unlocated: list[str] = []
        for appointment in appointments:
            coordinate = appointment.coordinate
            if coordinate is None:
                unlocated.append(appointment.appointment_id)
                continue
            assignments[appointment.appointment_id] = self.nearest_region(coordinate).name

        if unlocated:
            logger.warning("%d appointment(s) without coordinates left out of clustering", len(unlocated))
        return RegionClusteringResult(assignments, self.regions, {"unlocated": unlocated})

    def order_regions(self, home_base: HomeBase) -> list[Region]:
        """Regions sorted by centroid distance from the home base, nearest first."""

        return sorted(self.regions, key=lambda region: distance_between(home_base.coordinate, region.centroid))

    def region_ranks(self, home_base: HomeBase) -> dict[str, int]:
        return {region.name: rank for rank, region in enumerate(self.order_regions(home_base))}
