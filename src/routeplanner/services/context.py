"""Process-wide wiring of stores, caches, budget and engine components."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import HomeBase
from ..persistence.database import SupabaseAppointmentStore, SupabasePlanStore
from ..persistence.filesystem import FileCacheStore
from ..persistence.stores import InMemoryAppointmentStore, InMemoryCacheStore, InMemoryPlanStore
from .geocoding.service import Geocoder
from .maps.budget import BudgetController
from .maps.client import MapsClient
from .planning.engine import PlanningEngine, default_home_base
from .travel.estimator import TravelEstimator
from .zoning.regions import RegionClusterer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlanningContext:
    home_base: HomeBase
    cache: object
    budget: BudgetController
    maps_client: Optional[MapsClient]
    estimator: TravelEstimator
    geocoder: Geocoder
    clusterer: RegionClusterer
    appointment_store: object
    plan_store: object
    engine: PlanningEngine


def build_context(
    *,
    cache=None,
    maps_client: MapsClient | None = None,
    appointment_store=None,
    plan_store=None,
    budget: BudgetController | None = None,
) -> PlanningContext:
    """Assemble the engine from settings, letting callers override any collaborator."""

    if cache is None:
        cache = FileCacheStore() if settings.cache_backend == "file" else InMemoryCacheStore()
    if maps_client is None and settings.maps_api_key:
        maps_client = MapsClient()
    if maps_client is None:
        logger.info("No mapping service API key configured - using offline geocoding and travel estimates")

    if appointment_store is None or plan_store is None:
        client = get_supabase_client()
        if appointment_store is None:
            appointment_store = SupabaseAppointmentStore(client) if client else InMemoryAppointmentStore()
        if plan_store is None:
            plan_store = SupabasePlanStore(client) if client else InMemoryPlanStore()

    home_base = default_home_base()
    budget = budget or BudgetController()
    estimator = TravelEstimator(cache=cache, client=maps_client, budget=budget)
    geocoder = Geocoder(cache=cache, client=maps_client, budget=budget)
    clusterer = RegionClusterer()
    engine = PlanningEngine(
        estimator=estimator,
        geocoder=geocoder,
        clusterer=clusterer,
        plan_store=plan_store,
        home_base=home_base,
    )
    return PlanningContext(
        home_base=home_base,
        cache=cache,
        budget=budget,
        maps_client=maps_client,
        estimator=estimator,
        geocoder=geocoder,
        clusterer=clusterer,
        appointment_store=appointment_store,
        plan_store=plan_store,
        engine=engine,
    )


@lru_cache()
def get_context() -> PlanningContext:
    return build_context()
