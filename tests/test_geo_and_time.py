import pytest

from src.routeplanner.data.gazetteer import (
    city_label,
    extract_postal_code,
    find_city_in_address,
    nearest_city,
)
from src.routeplanner.models.domain import Coordinate
from src.routeplanner.services.geospatial import distance_between, haversine_km, within_bounds
from src.routeplanner.services.planning.timeutils import (
    ceil_to_grid,
    floor_to_grid,
    hours_to_time,
    overlaps,
    time_to_hours,
)

HANNOVER = Coordinate(52.3759, 9.7320)
BERLIN = Coordinate(52.5200, 13.4050)


def test_time_round_trip_for_every_half_hour():
    for step in range(48):
        text = f"{step // 2:02d}:{30 * (step % 2):02d}"
        assert hours_to_time(time_to_hours(text)) == text


def test_hours_to_time_rolls_minutes_over():
    assert hours_to_time(8.25) == "08:15"
    assert hours_to_time(9.999) == "10:00"
    assert hours_to_time(25.5) == "25:30"


@pytest.mark.parametrize("value", ["", "9", "aa:bb", "10:75", "-1:00"])
def test_time_to_hours_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        time_to_hours(value)


def test_grid_rounding():
    assert ceil_to_grid(8.1) == 8.5
    assert ceil_to_grid(8.5) == 8.5
    assert floor_to_grid(16.9) == 16.5
    assert floor_to_grid(17.0) == 17.0


def test_overlaps_is_exclusive_at_boundaries():
    assert overlaps(9, 12, 10, 13)
    assert overlaps(10, 11, 9, 12)
    assert not overlaps(9, 12, 12, 15)
    assert not overlaps(12, 15, 9, 12)


def test_haversine_between_hannover_and_berlin():
    assert 240 < distance_between(HANNOVER, BERLIN) < 260
    assert haversine_km(52.0, 9.0, 52.0, 9.0) == 0.0


def test_within_bounds():
    bounds = (47.2, 55.1, 5.8, 15.1)
    assert within_bounds(HANNOVER, bounds)
    assert not within_bounds(Coordinate(40.4168, -3.7038), bounds)


def test_postal_code_and_city_extraction():
    assert extract_postal_code("Hauptstraße 5, 30159 Hannover") == "30159"
    assert extract_postal_code("Hauptstraße 5") is None
    assert find_city_in_address("Zeil 1, Frankfurt am Main").name == "Frankfurt am Main"
    assert find_city_in_address("Rathausplatz 2, KÖLN").name == "Köln"
    assert find_city_in_address("Hannoversche Straße 3") is None


def test_city_label():
    assert city_label("Hauptstraße 5, 30159 Hannover") == "Hannover"
    assert city_label("Am langen Weg ohne Postleitzahl") == "Am langen Weg ohne P..."
    assert city_label(None) == "Unknown"


def test_nearest_city():
    assert nearest_city(Coordinate(48.14, 11.58)).name == "München"
    assert nearest_city(HANNOVER).name == "Hannover"
