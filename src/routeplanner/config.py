"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEPLANNER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Weekly Route Planner API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for cache files.")
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Home base
    home_base_name: str = "Hannover"
    home_base_latitude: float = 52.3759
    home_base_longitude: float = 9.7320

    # Working window (decimal hours)
    work_start_hour: float = Field(default=8.0, ge=0.0, le=24.0)
    work_end_hour: float = Field(default=17.0, ge=0.0, le=24.0)
    first_day_start_hour: float = Field(
        default=9.0,
        ge=0.0,
        le=24.0,
        description="Earliest start on the first day of the week.",
    )
    last_day_end_hour: float = Field(
        default=16.0,
        ge=0.0,
        le=24.0,
        description="Latest end on the last day of the week, return trip included.",
    )

    # Work-hour ceilings
    max_work_hours_per_day: float = Field(default=8.0, gt=0.0)
    flex_work_hours_per_day: float = Field(
        default=10.0,
        gt=0.0,
        description="Higher daily ceiling usable only by confirmed appointments.",
    )
    max_work_hours_per_week: float = Field(default=40.0, gt=0.0)
    default_appointment_hours: float = Field(default=3.0, gt=0.0)

    # Slot search
    slot_buffer_hours: float = Field(default=0.5, ge=0.0)
    slot_grid_hours: float = Field(default=0.5, gt=0.0)

    # Travel estimation
    road_distance_factor: float = Field(default=1.3, ge=1.0)
    average_speed_kmh: float = Field(default=80.0, gt=0.0)
    travel_padding_hours: float = Field(default=0.25, ge=0.0)
    cache_coordinate_precision: int = Field(default=4, ge=0, le=8)
    distance_cache_ttl_days: int = Field(default=30, ge=1)

    # Overnight planning
    overnight_distance_km: float = Field(default=200.0, ge=0.0)
    overnight_proximity_km: float = Field(default=100.0, ge=0.0)

    # Mapping service
    maps_api_key: Optional[str] = Field(
        default=None,
        description="Mapping service API key. Without it every lookup uses the offline fallbacks.",
    )
    maps_base_url: str = "https://maps.googleapis.com/maps/api"
    maps_timeout_seconds: float = Field(default=5.0, gt=0.0)
    maps_max_retries: int = Field(default=1, ge=0)
    maps_backoff_seconds: float = Field(default=0.5, ge=0.0)
    maps_region: str = "de"
    maps_country: str = "DE"
    maps_language: str = "de"
    service_area_bounds: tuple[float, float, float, float] = Field(
        default=(47.2, 55.1, 5.8, 15.1),
        description="(min_lat, max_lat, min_lng, max_lng) accepted for geocoding results.",
    )
    matrix_max_dimension: int = Field(default=25, ge=1)
    matrix_max_elements: int = Field(default=100, ge=1)
    matrix_chunk_delay_seconds: float = Field(default=0.2, ge=0.0)
    batch_max_workers: int = Field(default=3, ge=1)
    geocode_batch_delay_seconds: float = Field(default=0.2, ge=0.0)

    # Daily API budget
    daily_budget: float = Field(default=5.0, ge=0.0)
    geocoding_unit_cost: float = Field(default=0.005, ge=0.0)
    distance_matrix_unit_cost: float = Field(default=0.01, ge=0.0)
    geocoding_budget_share: float = Field(default=0.2, ge=0.0, le=1.0)
    distance_matrix_budget_share: float = Field(default=0.8, ge=0.0, le=1.0)
    budget_warning_ratio: float = Field(default=0.8, ge=0.0, le=1.0)

    # Persistence
    cache_backend: Literal["memory", "file"] = "memory"
    cache_file: Path = Field(default=Path("data/cache.json"))

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("data_root", "cache_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("service_area_bounds", mode="before")
    @classmethod
    def _parse_bounds_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse the bounding box from a JSON array or comma-separated string."""
        if isinstance(value, (tuple, list)):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            return tuple(float(item.strip()) for item in value.split(",") if item.strip())
        return value


settings = Settings()
