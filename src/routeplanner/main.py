"""FastAPI application entry point for the weekly route planner."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import health, planning, tools
from .config import settings

logger = logging.getLogger(__name__)

ROUTERS = (health.router, planning.router, tools.router)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Route planner ready: home base %s, cache backend %s, mapping service %s",
        settings.home_base_name,
        settings.cache_backend,
        "configured" if settings.maps_api_key else "offline",
    )
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Weekly appointment scheduling with travel estimation and overnight planning.",
        lifespan=lifespan,
    )
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "home_base": settings.home_base_name,
            "mapping_service": bool(settings.maps_api_key),
            "health": f"{settings.api_prefix}/health",
            "plans": f"{settings.api_prefix}/plans",
            "docs": "/docs",
        }

    for router in ROUTERS:
        app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
