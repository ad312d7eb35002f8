"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(origin: Coordinate, destination: Coordinate) -> float:
    """Great-circle distance in kilometres between two coordinates."""

    return haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)


def within_bounds(coordinate: Coordinate, bounds: tuple[float, float, float, float]) -> bool:
    """Return True if the coordinate lies in the (min_lat, max_lat, min_lng, max_lng) box."""

    min_lat, max_lat, min_lng, max_lng = bounds
    return min_lat <= coordinate.latitude <= max_lat and min_lng <= coordinate.longitude <= max_lng
