"""Standalone geocoding, travel estimation and clustering endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...models.domain import Coordinate
from ...schemas.tools import (
    BatchGeocodeRequest,
    BatchGeocodeResponse,
    ClusterRequest,
    ClusterResponse,
    CoordinateModel,
    GeocodeRequest,
    GeocodeResponse,
    RegionModel,
    TravelMatrixRequest,
    TravelMatrixResponse,
    TravelRequest,
    TravelResponse,
)
from ...services.context import get_context
from ...services.errors import GeocodeError
from ...services.geocoding.service import GeocodeResult
from ...services.geospatial import distance_between
from ...services.outputs.formatter import appointment_from_model
from ...services.travel.estimator import TravelEstimate

router = APIRouter(tags=["tools"])


def _geocode_response(result: GeocodeResult) -> GeocodeResponse:
    return GeocodeResponse(
        address=result.address,
        latitude=result.latitude,
        longitude=result.longitude,
        formatted_address=result.formatted_address,
        method=result.method,
        accuracy=result.accuracy,
    )


def _travel_response(estimate: TravelEstimate) -> TravelResponse:
    return TravelResponse(
        distance_km=round(estimate.distance_km, 2),
        duration_hours=round(estimate.duration_hours, 3),
        approximated=estimate.approximated,
        source=estimate.source,
    )


def _coordinate(model: CoordinateModel) -> Coordinate:
    return Coordinate(model.latitude, model.longitude)


@router.post("/geocode", response_model=GeocodeResponse, status_code=status.HTTP_200_OK)
def geocode(payload: GeocodeRequest) -> GeocodeResponse:
    try:
        return _geocode_response(get_context().geocoder.geocode(payload.address))
    except GeocodeError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error geocoding address: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to geocode address: {str(exc)}",
        ) from exc


@router.post("/geocode/batch", response_model=BatchGeocodeResponse, status_code=status.HTTP_200_OK)
def geocode_batch(payload: BatchGeocodeRequest) -> BatchGeocodeResponse:
    try:
        summary = get_context().geocoder.geocode_batch(payload.addresses, max_workers=payload.max_workers)
    except Exception as exc:
        logging.exception(f"Error in batch geocoding: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to geocode addresses: {str(exc)}",
        ) from exc
    return BatchGeocodeResponse(
        total=summary.total,
        success_rate=summary.success_rate,
        results=[_geocode_response(result) for result in summary.results.values()],
        errors=summary.errors,
    )


@router.post("/travel", response_model=TravelResponse, status_code=status.HTTP_200_OK)
def estimate_travel(payload: TravelRequest) -> TravelResponse:
    try:
        estimate = get_context().estimator.estimate(_coordinate(payload.origin), _coordinate(payload.destination))
    except Exception as exc:
        logging.exception(f"Error estimating travel: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to estimate travel: {str(exc)}",
        ) from exc
    return _travel_response(estimate)


@router.post("/travel/matrix", response_model=TravelMatrixResponse, status_code=status.HTTP_200_OK)
def estimate_travel_matrix(payload: TravelMatrixRequest) -> TravelMatrixResponse:
    try:
        grid = get_context().estimator.estimate_matrix(
            [_coordinate(item) for item in payload.origins],
            [_coordinate(item) for item in payload.destinations],
        )
    except Exception as exc:
        logging.exception(f"Error estimating travel matrix: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to estimate travel matrix: {str(exc)}",
        ) from exc
    return TravelMatrixResponse(rows=[[_travel_response(cell) for cell in row] for row in grid])


@router.post("/clusters", response_model=ClusterResponse, status_code=status.HTTP_200_OK)
def cluster(payload: ClusterRequest) -> ClusterResponse:
    context = get_context()
    try:
        appointments = [appointment_from_model(item) for item in payload.appointments]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    result = context.clusterer.cluster(appointments)
    ordered = context.clusterer.order_regions(context.home_base)
    return ClusterResponse(
        regions=[
            RegionModel(
                name=region.name,
                centroid=CoordinateModel(latitude=region.latitude, longitude=region.longitude),
                distance_from_home_km=round(distance_between(context.home_base.coordinate, region.centroid), 1),
                appointment_ids=[item.appointment_id for item in result.appointments_for_region(region.name, appointments)],
            )
            for region in ordered
        ],
        order=[region.name for region in ordered],
        unlocated=result.metadata.get("unlocated", []),
    )
