"""Conversions between "HH:MM" strings and decimal hours."""

from __future__ import annotations

import math

_EPSILON = 1e-9


def time_to_hours(value: str) -> float:
    try:
        hours_part, minutes_part = value.strip().split(":", 1)
        hours = int(hours_part)
        minutes = int(minutes_part)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from exc
    if hours < 0 or not 0 <= minutes < 60:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return hours + minutes / 60.0


def hours_to_time(hours: float) -> str:
    whole = int(math.floor(hours + _EPSILON))
    minutes = int(round((hours - whole) * 60))
    if minutes >= 60:
        whole += 1
        minutes -= 60
    return f"{whole:02d}:{minutes:02d}"


def ceil_to_grid(hours: float, grid: float = 0.5) -> float:
    return math.ceil(hours / grid - _EPSILON) * grid


def floor_to_grid(hours: float, grid: float = 0.5) -> float:
    return math.floor(hours / grid + _EPSILON) * grid


def overlaps(start_a: float, end_a: float, start_b: float, end_b: float) -> bool:
    return start_a < end_b - _EPSILON and start_b < end_a - _EPSILON
