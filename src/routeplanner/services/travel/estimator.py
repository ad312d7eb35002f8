"""Travel distance/duration estimation with cache, mapping service and haversine fallback."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Protocol, Sequence

from ...config import settings
from ...models.domain import Coordinate
from ..errors import ExternalServiceError
from ..geospatial import distance_between
from ..maps.budget import ApiCallKind, BudgetController
from ..maps.client import MapsClient, MatrixChunk, plan_matrix_chunks

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TravelEstimate:
    distance_km: float
    duration_hours: float
    approximated: bool = False
    source: str = "haversine"


ZERO_TRAVEL = TravelEstimate(distance_km=0.0, duration_hours=0.0, approximated=False, source="identical")


def cache_key(origin: Coordinate, destination: Coordinate, precision: int | None = None) -> str:
    precision = precision if precision is not None else settings.cache_coordinate_precision
    a = origin.rounded(precision)
    b = destination.rounded(precision)
    return f"{a.latitude:.{precision}f},{a.longitude:.{precision}f}|{b.latitude:.{precision}f},{b.longitude:.{precision}f}"


class TravelProvider(Protocol):
    name: str

    def estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[TravelEstimate]:
        """Return an estimate or ``None`` to let the next provider try."""


class CachedTravelProvider:
    name = "cache"

    def __init__(self, cache, ttl_days: int | None = None, precision: int | None = None) -> None:
        self.cache = cache
        self.max_age = timedelta(days=ttl_days if ttl_days is not None else settings.distance_cache_ttl_days)
        self.precision = precision if precision is not None else settings.cache_coordinate_precision

    def estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[TravelEstimate]:
        entry = self.cache.get_distance(cache_key(origin, destination, self.precision), max_age=self.max_age)
        if entry is None:
            return None
        logger.debug("Distance cache hit for %s -> %s", origin.as_tuple(), destination.as_tuple())
        return TravelEstimate(
            distance_km=float(entry["distance_km"]),
            duration_hours=float(entry["duration_hours"]),
            approximated=False,
            source="cache",
        )

    def store(self, origin: Coordinate, destination: Coordinate, estimate: TravelEstimate) -> None:
        self.cache.put_distance(
            cache_key(origin, destination, self.precision),
            {
                "distance_km": estimate.distance_km,
                "duration_hours": estimate.duration_hours,
                "source": estimate.source,
            },
        )


class MapsTravelProvider:
    name = "maps"

    def __init__(self, client: MapsClient, budget: BudgetController) -> None:
        self.client = client
        self.budget = budget

    def estimate(self, origin: Coordinate, destination: Coordinate) -> Optional[TravelEstimate]:
        if not self.budget.try_acquire(ApiCallKind.DISTANCE_MATRIX):
            logger.warning("Distance lookup denied by budget, using approximation")
            return None
        try:
            matrix = self.client.distance_matrix([origin], [destination])
        except ExternalServiceError as exc:
            logger.warning("Distance lookup failed (%s), using approximation", exc)
            return None
        element = matrix[0][0]
        if element is None:
            return None
        return TravelEstimate(
            distance_km=element.distance_km,
            duration_hours=element.duration_hours,
            approximated=False,
            source=self.name,
        )


class HaversineTravelProvider:
    """Straight-line distance scaled to road distance; never declines."""

    name = "haversine"

    def __init__(
        self,
        road_factor: float | None = None,
        average_speed_kmh: float | None = None,
        padding_hours: float | None = None,
    ) -> None:
        self.road_factor = road_factor if road_factor is not None else settings.road_distance_factor
        self.average_speed_kmh = average_speed_kmh if average_speed_kmh is not None else settings.average_speed_kmh
        self.padding_hours = padding_hours if padding_hours is not None else settings.travel_padding_hours

    def estimate(self, origin: Coordinate, destination: Coordinate) -> TravelEstimate:
        distance = distance_between(origin, destination) * self.road_factor
        return TravelEstimate(
            distance_km=distance,
            duration_hours=distance / self.average_speed_kmh + self.padding_hours,
            approximated=True,
            source=self.name,
        )


class TravelEstimator:
    """Resolve travel estimates through an ordered list of providers.

    The default chain is cache, mapping service (when a client is configured) and
    the haversine approximation. Service results are written back to the cache.
    """

    def __init__(
        self,
        cache=None,
        client: MapsClient | None = None,
        budget: BudgetController | None = None,
        providers: Sequence[TravelProvider] | None = None,
        max_workers: int | None = None,
        chunk_delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache_provider = CachedTravelProvider(cache) if cache is not None else None
        self.client = client
        self.budget = budget or BudgetController()
        self.fallback = HaversineTravelProvider()
        if providers is None:
            chain: list[TravelProvider] = []
            if self.cache_provider is not None:
                chain.append(self.cache_provider)
            if client is not None:
                chain.append(MapsTravelProvider(client, self.budget))
            providers = chain
        self.providers = list(providers)
        self.max_workers = max_workers or settings.batch_max_workers
        self.chunk_delay_seconds = (
            chunk_delay_seconds if chunk_delay_seconds is not None else settings.matrix_chunk_delay_seconds
        )
        self._sleep = sleep

    def estimate(self, origin: Coordinate, destination: Coordinate) -> TravelEstimate:
        if origin == destination:
            return ZERO_TRAVEL
        for provider in self.providers:
            result = provider.estimate(origin, destination)
            if result is None:
                continue
            if self.cache_provider is not None and provider is not self.cache_provider and not result.approximated:
                self.cache_provider.store(origin, destination, result)
            return result
        return self.fallback.estimate(origin, destination)

    def warm(self, points: Sequence[Coordinate]) -> int:
        """Cache every pairwise estimate among ``points`` through batched matrix requests.

        Only runs with both a mapping client and a cache; returns the number of distinct
        points covered.
        """
        if self.client is None or self.cache_provider is None:
            return 0
        unique = list(dict.fromkeys(points))
        if len(unique) < 2:
            return 0
        self.estimate_matrix(unique, unique)
        return len(unique)

    def estimate_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
    ) -> list[list[TravelEstimate]]:
        """Estimate every origin/destination pair.

        Cached cells are answered first; the rest is requested from the mapping service in
        provider-sized chunks with bounded concurrency and a delay between dispatches.
        Anything still missing is approximated.
        """
        grid: list[list[Optional[TravelEstimate]]] = [[None] * len(destinations) for _ in origins]
        for i, origin in enumerate(origins):
            for j, destination in enumerate(destinations):
                if origin == destination:
                    grid[i][j] = ZERO_TRAVEL
                elif self.cache_provider is not None:
                    grid[i][j] = self.cache_provider.estimate(origin, destination)

        missing_origins = sorted({i for i, row in enumerate(grid) for cell in row if cell is None})
        missing_destinations = sorted(
            {j for row in grid for j, cell in enumerate(row) if cell is None}
        )
        if self.client is not None and missing_origins:
            self._fill_from_service(grid, origins, destinations, missing_origins, missing_destinations)

        for i, origin in enumerate(origins):
            for j, destination in enumerate(destinations):
                if grid[i][j] is None:
                    grid[i][j] = self.fallback.estimate(origin, destination)
        return grid  # type: ignore[return-value]

    def _fill_from_service(
        self,
        grid: list[list[Optional[TravelEstimate]]],
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        origin_index: list[int],
        destination_index: list[int],
    ) -> None:
        chunks = plan_matrix_chunks(len(origin_index), len(destination_index))
        logger.info(
            "Requesting %dx%d distance matrix in %d chunk(s)",
            len(origin_index),
            len(destination_index),
            len(chunks),
        )

        def run_chunk(chunk: MatrixChunk):
            chunk_origins = [origins[i] for i in origin_index[chunk.origin_start : chunk.origin_end]]
            chunk_destinations = [
                destinations[j] for j in destination_index[chunk.destination_start : chunk.destination_end]
            ]
            return chunk, self.client.distance_matrix(chunk_origins, chunk_destinations)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = []
            for position, chunk in enumerate(chunks):
                if not self.budget.try_acquire(ApiCallKind.DISTANCE_MATRIX, units=chunk.elements):
                    logger.warning("Budget exhausted after %d of %d matrix chunks", position, len(chunks))
                    break
                if position > 0 and self.chunk_delay_seconds > 0:
                    self._sleep(self.chunk_delay_seconds)
                futures.append(executor.submit(run_chunk, chunk))

            for future in as_completed(futures):
                try:
                    chunk, matrix = future.result()
                except ExternalServiceError as exc:
                    logger.warning("Distance matrix chunk failed (%s), using approximation", exc)
                    continue
                for row_offset, row in enumerate(matrix):
                    i = origin_index[chunk.origin_start + row_offset]
                    for column_offset, element in enumerate(row):
                        j = destination_index[chunk.destination_start + column_offset]
                        if element is None or grid[i][j] is not None:
                            continue
                        estimate = TravelEstimate(
                            distance_km=element.distance_km,
                            duration_hours=element.duration_hours,
                            approximated=False,
                            source="maps",
                        )
                        grid[i][j] = estimate
                        if self.cache_provider is not None:
                            self.cache_provider.store(origins[i], destinations[j], estimate)
