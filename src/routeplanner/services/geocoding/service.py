"""Address geocoding through an ordered chain of strategies."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence

from ...config import settings
from ...data.gazetteer import POSTAL_REGIONS, extract_postal_code, find_city_in_address
from ...models.domain import Coordinate
from ..errors import ExternalServiceError, GeocodeError
from ..geospatial import within_bounds
from ..maps.budget import ApiCallKind, BudgetController
from ..maps.client import MapsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    address: str
    latitude: float
    longitude: float
    formatted_address: str
    method: str
    accuracy: str = "approximate"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class GeocodingStrategy(Protocol):
    name: str

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        """Return a result or ``None`` to let the next strategy try."""


class CacheStrategy:
    name = "cache"

    def __init__(self, cache) -> None:
        self.cache = cache

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        entry = self.cache.get_geocode(address)
        if entry is None:
            return None
        logger.debug("Geocode cache hit for %r", address)
        return GeocodeResult(
            address=address,
            latitude=float(entry["latitude"]),
            longitude=float(entry["longitude"]),
            formatted_address=entry.get("formatted_address") or address,
            method=entry.get("method", "cache"),
            accuracy=entry.get("accuracy", "approximate"),
        )

    def store(self, result: GeocodeResult) -> None:
        self.cache.put_geocode(
            result.address,
            {
                "latitude": result.latitude,
                "longitude": result.longitude,
                "formatted_address": result.formatted_address,
                "method": result.method,
                "accuracy": result.accuracy,
            },
        )


class MapsServiceStrategy:
    name = "maps"

    def __init__(
        self,
        client: MapsClient,
        budget: BudgetController,
        bounds: tuple[float, float, float, float] | None = None,
    ) -> None:
        self.client = client
        self.budget = budget
        self.bounds = bounds or settings.service_area_bounds

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        if not self.budget.try_acquire(ApiCallKind.GEOCODING):
            logger.warning("Geocoding denied by budget for %r, trying offline fallbacks", address)
            return None
        try:
            data = self.client.geocode(address)
        except ExternalServiceError as exc:
            logger.warning("Geocoding service failed for %r (%s), trying offline fallbacks", address, exc)
            return None
        result = GeocodeResult(
            address=address,
            latitude=data["latitude"],
            longitude=data["longitude"],
            formatted_address=data["formatted_address"],
            method="maps",
            accuracy=data["accuracy"],
        )
        if not within_bounds(result.coordinate, self.bounds):
            logger.warning("Geocoding result for %r lies outside the service area, ignoring it", address)
            return None
        return result


class CityDatabaseStrategy:
    name = "city_database"

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        city = find_city_in_address(address)
        if city is None:
            return None
        return GeocodeResult(
            address=address,
            latitude=city.latitude,
            longitude=city.longitude,
            formatted_address=f"{city.name}, Deutschland",
            method=self.name,
            accuracy="city",
        )


class PostalPrefixStrategy:
    """Region centroid from the first postal digit, nudged by the next four digits."""

    name = "postal_prefix"

    def resolve(self, address: str) -> Optional[GeocodeResult]:
        postal_code = extract_postal_code(address)
        if postal_code is None:
            return None
        region = POSTAL_REGIONS.get(postal_code[0])
        if region is None:
            return None
        lat_offset = (int(postal_code[1:3]) - 50) * 0.01
        lng_offset = (int(postal_code[3:5]) - 50) * 0.01
        return GeocodeResult(
            address=address,
            latitude=region.latitude + lat_offset,
            longitude=region.longitude + lng_offset,
            formatted_address=f"{postal_code} {region.label}",
            method=self.name,
            accuracy="postal_region",
        )


@dataclass(slots=True)
class BatchGeocodeSummary:
    total: int
    results: dict[str, GeocodeResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return round(len(self.results) / self.total * 100, 1) if self.total else 0.0


ProgressCallback = Callable[[dict], None]


class Geocoder:
    """Resolve addresses with cache, budget-gated service call and offline fallbacks."""

    def __init__(
        self,
        cache=None,
        client: MapsClient | None = None,
        budget: BudgetController | None = None,
        strategies: Sequence[GeocodingStrategy] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache_strategy = CacheStrategy(cache) if cache is not None else None
        self.budget = budget or BudgetController()
        if strategies is None:
            chain: list[GeocodingStrategy] = []
            if self.cache_strategy is not None:
                chain.append(self.cache_strategy)
            if client is not None:
                chain.append(MapsServiceStrategy(client, self.budget))
            chain.extend([CityDatabaseStrategy(), PostalPrefixStrategy()])
            strategies = chain
        self.strategies = list(strategies)
        self._sleep = sleep

    def geocode(self, address: str) -> GeocodeResult:
        cleaned = (address or "").strip()
        if not cleaned:
            raise GeocodeError(address, "empty address")
        for strategy in self.strategies:
            result = strategy.resolve(cleaned)
            if result is None:
                continue
            if strategy.name == "maps" and self.cache_strategy is not None:
                self.cache_strategy.store(result)
            if strategy.name not in ("cache", "maps"):
                logger.info("Geocoded %r via %s fallback", cleaned, strategy.name)
            return result
        raise GeocodeError(cleaned)

    def geocode_batch(
        self,
        addresses: Sequence[str],
        *,
        max_workers: int | None = None,
        delay_seconds: float | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchGeocodeSummary:
        """Geocode many addresses in batches of ``max_workers`` with a pause between batches."""

        max_workers = max_workers or settings.batch_max_workers
        delay_seconds = delay_seconds if delay_seconds is not None else settings.geocode_batch_delay_seconds
        unique = list(dict.fromkeys(addresses))
        summary = BatchGeocodeSummary(total=len(unique))
        processed = 0

        def resolve(address: str) -> tuple[str, GeocodeResult | None, str | None]:
            try:
                return address, self.geocode(address), None
            except GeocodeError as exc:
                return address, None, exc.reason

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            for start in range(0, len(unique), max_workers):
                if start > 0 and delay_seconds > 0:
                    self._sleep(delay_seconds)
                batch = unique[start : start + max_workers]
                for address, result, error in executor.map(resolve, batch):
                    processed += 1
                    if result is not None:
                        summary.results[address] = result
                    else:
                        summary.errors[address] = error or "unresolved"
                    if processed % 10 == 0:
                        logger.info("Geocoded %d/%d addresses", processed, summary.total)
                    if on_progress is not None:
                        on_progress(
                            {
                                "processed": processed,
                                "total": summary.total,
                                "current": address,
                                "success": result is not None,
                                "error": error,
                            }
                        )

        logger.info(
            "Batch geocoding finished: %d/%d resolved (%.1f%%)",
            len(summary.results),
            summary.total,
            summary.success_rate,
        )
        return summary
