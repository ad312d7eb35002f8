"""Request/response schemas for the standalone geocoding, travel and clustering tools."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .planning import AppointmentModel


class CoordinateModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1)


class GeocodeResponse(BaseModel):
    address: str
    latitude: float
    longitude: float
    formatted_address: str
    method: str
    accuracy: str


class BatchGeocodeRequest(BaseModel):
    addresses: List[str] = Field(..., min_length=1)
    max_workers: Optional[int] = Field(default=None, ge=1, le=10)


class BatchGeocodeResponse(BaseModel):
    total: int
    success_rate: float
    results: List[GeocodeResponse]
    errors: Dict[str, str]


class TravelRequest(BaseModel):
    origin: CoordinateModel
    destination: CoordinateModel


class TravelResponse(BaseModel):
    distance_km: float
    duration_hours: float
    approximated: bool
    source: str


class TravelMatrixRequest(BaseModel):
    origins: List[CoordinateModel] = Field(..., min_length=1)
    destinations: List[CoordinateModel] = Field(..., min_length=1)


class TravelMatrixResponse(BaseModel):
    rows: List[List[TravelResponse]]


class ClusterRequest(BaseModel):
    appointments: List[AppointmentModel] = Field(..., min_length=1)


class RegionModel(BaseModel):
    name: str
    centroid: CoordinateModel
    distance_from_home_km: float
    appointment_ids: List[str]


class ClusterResponse(BaseModel):
    regions: List[RegionModel]
    order: List[str]
    unlocated: List[str] = Field(default_factory=list)
