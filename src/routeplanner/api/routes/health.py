"""Health, budget and cache maintenance endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...services import maintenance
from ...services.context import get_context

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_maps_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.maps.client import check_health as maps_health_check
    return maps_health_check


@router.get("/health/maps", status_code=status.HTTP_200_OK)
def health_maps() -> dict:
    """Check mapping service health."""
    client = get_context().maps_client
    if client is None:
        return {"service": "maps", "configured": False, "healthy": False}
    try:
        healthy = _get_maps_health_check()(client)
        return {"service": "maps", "configured": True, "healthy": healthy, "disabled": client.disabled}
    except Exception as e:
        return {"service": "maps", "configured": True, "healthy": False, "error": str(e)}


@router.get("/health/budget", status_code=status.HTTP_200_OK)
def budget_status() -> dict:
    return get_context().budget.get_status()


@router.get("/health/cache", status_code=status.HTTP_200_OK)
def cache_status() -> dict:
    return maintenance.cache_stats(get_context().cache)


@router.post("/health/cache/purge", status_code=status.HTTP_200_OK)
def purge_cache(clear_geocodes: bool = False) -> dict:
    """Drop expired travel entries and, on request, every geocode entry."""
    cache = get_context().cache
    expired = maintenance.purge_expired_travel(cache)
    cleared = maintenance.clear_geocodes(cache) if clear_geocodes else 0
    return {
        "expired_travel_entries": expired,
        "cleared_geocodes": cleared,
        **maintenance.cache_stats(cache),
    }
