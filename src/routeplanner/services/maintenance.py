"""Cache maintenance helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from ..config import settings

logger = logging.getLogger(__name__)


def purge_expired_travel(cache, now: datetime | None = None, ttl_days: int | None = None) -> int:
    """Delete distance entries older than the cache TTL; returns how many were removed."""

    now = now or datetime.now(timezone.utc)
    ttl_days = ttl_days if ttl_days is not None else settings.distance_cache_ttl_days
    removed = cache.expire_older_than(now - timedelta(days=ttl_days))
    if removed:
        logger.info("Purged %d expired travel cache entries", removed)
    return removed


def clear_geocodes(cache) -> int:
    removed = cache.clear_geocodes()
    logger.info("Cleared %d geocode cache entries", removed)
    return removed


def cache_stats(cache) -> dict:
    stats = cache.stats()
    distance_lookups = stats.get("distance_hits", 0) + stats.get("distance_misses", 0)
    geocode_lookups = stats.get("geocode_hits", 0) + stats.get("geocode_misses", 0)
    stats["distance_hit_rate"] = round(stats.get("distance_hits", 0) / distance_lookups, 3) if distance_lookups else 0.0
    stats["geocode_hit_rate"] = round(stats.get("geocode_hits", 0) / geocode_lookups, 3) if geocode_lookups else 0.0
    return stats
