"""HTTP client for the external mapping service (geocoding and distance matrix)."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinate
from ..errors import ExternalServiceError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass(frozen=True, slots=True)
class MatrixElement:
    distance_km: float
    duration_hours: float


@dataclass(frozen=True, slots=True)
class MatrixChunk:
    origin_start: int
    origin_end: int
    destination_start: int
    destination_end: int

    @property
    def elements(self) -> int:
        return (self.origin_end - self.origin_start) * (self.destination_end - self.destination_start)


def plan_matrix_chunks(
    origin_count: int,
    destination_count: int,
    *,
    max_dimension: int | None = None,
    max_elements: int | None = None,
) -> list[MatrixChunk]:
    """Split an origins x destinations request into provider-sized chunks.

    Each chunk has at most ``max_dimension`` origins and destinations and at most
    ``max_elements`` cells in total.
    """
    max_dimension = max_dimension or settings.matrix_max_dimension
    max_elements = max_elements or settings.matrix_max_elements
    if origin_count <= 0 or destination_count <= 0:
        return []

    origin_step = min(max_dimension, origin_count, max_elements)
    destination_step = max(1, min(max_dimension, destination_count, max_elements // origin_step))

    chunks: list[MatrixChunk] = []
    for origin_start in range(0, origin_count, origin_step):
        origin_end = min(origin_start + origin_step, origin_count)
        for destination_start in range(0, destination_count, destination_step):
            destination_end = min(destination_start + destination_step, destination_count)
            chunks.append(MatrixChunk(origin_start, origin_end, destination_start, destination_end))
    return chunks


def _format_coordinate(coordinate: Coordinate) -> str:
    return f"{coordinate.latitude},{coordinate.longitude}"


class MapsClient:
    """Thin wrapper around the mapping web service.

    Every failure surfaces as :class:`ExternalServiceError`; callers decide on fallbacks.
    Timeouts are not retried so the fallback path is taken immediately.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.maps_api_key
        if not self.api_key:
            raise ValueError("Mapping service API key is not configured.")
        self.base_url = (base_url or settings.maps_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.maps_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.maps_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.maps_backoff_seconds
        self.max_dimension = settings.matrix_max_dimension
        self.max_elements = settings.matrix_max_elements
        self._transport = transport
        self.disabled = False
        self.request_count = 0
        self._count_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        # One client per request keeps worker threads independent.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 3.0)),
            transport=self._transport,
        )

    def _get_json(self, endpoint: str, params: dict) -> dict:
        if self.disabled:
            raise ExternalServiceError("Mapping service disabled after an authorization failure", status="DISABLED")

        url = f"{self.base_url}/{endpoint}/json"
        query = {**params, "key": self.api_key}
        client = self._get_client()
        try:
            attempt = 0
            while True:
                with self._count_lock:
                    self.request_count += 1
                try:
                    response = client.get(url, params=query)
                    response.raise_for_status()
                    return response.json()
                except httpx.TimeoutException as exc:
                    logger.warning("Mapping service %s request timed out after %.1fs", endpoint, self.timeout)
                    raise ExternalServiceError(f"{endpoint} request timed out", status="TIMEOUT") from exc
                except httpx.HTTPStatusError as exc:
                    code = exc.response.status_code
                    if code == 403:
                        self.disabled = True
                    if code not in _RETRYABLE_STATUS_CODES or attempt >= self.max_retries:
                        raise ExternalServiceError(
                            f"{endpoint} request failed with HTTP {code}", status=str(code)
                        ) from exc
                    attempt += 1
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        "Mapping service HTTP %s, retrying in %.1fs (attempt %d/%d)",
                        code,
                        wait_time,
                        attempt,
                        self.max_retries,
                    )
                    time.sleep(wait_time)
                except (httpx.TransportError, ValueError) as exc:
                    raise ExternalServiceError(f"{endpoint} request failed: {exc}", status="NETWORK") from exc
        finally:
            client.close()

    def _check_status(self, endpoint: str, data: dict) -> None:
        status = data.get("status")
        if status == "OK":
            return
        if status == "REQUEST_DENIED":
            self.disabled = True
        message = data.get("error_message") or "no details"
        raise ExternalServiceError(f"{endpoint} returned status {status}: {message}", status=status)

    def geocode(self, address: str) -> dict:
        """Resolve an address; returns latitude, longitude, formatted address and accuracy."""

        data = self._get_json(
            "geocode",
            {
                "address": address,
                "region": settings.maps_region,
                "components": f"country:{settings.maps_country}",
                "language": settings.maps_language,
            },
        )
        self._check_status("geocode", data)
        results = data.get("results") or []
        if not results:
            raise ExternalServiceError("geocode returned no results", status="ZERO_RESULTS")

        first = results[0]
        geometry = first.get("geometry", {})
        location = geometry.get("location", {})
        try:
            latitude = float(location["lat"])
            longitude = float(location["lng"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalServiceError("geocode result without a location", status="INVALID_RESPONSE") from exc

        return {
            "latitude": latitude,
            "longitude": longitude,
            "formatted_address": first.get("formatted_address") or address,
            "accuracy": str(geometry.get("location_type") or "approximate").lower(),
            "place_id": first.get("place_id"),
        }

    def distance_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
    ) -> list[list[MatrixElement | None]]:
        """Road distance/duration for every origin/destination pair of one request.

        Cells the provider cannot route come back as ``None``.
        """
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required.")
        if len(origins) > self.max_dimension or len(destinations) > self.max_dimension:
            raise ValueError(
                f"Distance matrix dimensions {len(origins)}x{len(destinations)} exceed {self.max_dimension}"
            )
        if len(origins) * len(destinations) > self.max_elements:
            raise ValueError(
                f"Distance matrix of {len(origins) * len(destinations)} elements exceeds {self.max_elements}"
            )

        data = self._get_json(
            "distancematrix",
            {
                "origins": "|".join(_format_coordinate(origin) for origin in origins),
                "destinations": "|".join(_format_coordinate(destination) for destination in destinations),
                "units": "metric",
                "mode": "driving",
            },
        )
        self._check_status("distancematrix", data)

        rows = data.get("rows") or []
        if len(rows) != len(origins):
            raise ExternalServiceError(
                f"distancematrix returned {len(rows)} rows for {len(origins)} origins", status="INVALID_RESPONSE"
            )

        matrix: list[list[MatrixElement | None]] = []
        for row in rows:
            elements = row.get("elements") or []
            parsed: list[MatrixElement | None] = []
            for index in range(len(destinations)):
                element = elements[index] if index < len(elements) else {}
                if element.get("status") != "OK":
                    parsed.append(None)
                    continue
                parsed.append(
                    MatrixElement(
                        distance_km=element["distance"]["value"] / 1000.0,
                        duration_hours=element["duration"]["value"] / 3600.0,
                    )
                )
            matrix.append(parsed)
        return matrix


def check_health(client: MapsClient | None) -> bool:
    """Return True if the mapping service answers a minimal geocoding request."""

    if client is None:
        return False
    try:
        client.geocode(settings.home_base_name)
        return True
    except ExternalServiceError:
        return False
