import pytest

from src.routeplanner.persistence.stores import InMemoryCacheStore
from src.routeplanner.services.errors import ExternalServiceError, GeocodeError
from src.routeplanner.services.geocoding.service import Geocoder
from src.routeplanner.services.maps.budget import BudgetController


class DummyMaps:
    def __init__(self, latitude: float = 52.5163, longitude: float = 13.3777, error: Exception | None = None):
        self.latitude = latitude
        self.longitude = longitude
        self.error = error
        self.calls = []

    def geocode(self, address):
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "formatted_address": f"{address}, Deutschland",
            "accuracy": "rooftop",
            "place_id": "p1",
        }


def _geocoder(**kwargs) -> Geocoder:
    kwargs.setdefault("sleep", lambda seconds: None)
    return Geocoder(**kwargs)


def test_service_result_is_cached_and_reused():
    cache = InMemoryCacheStore()
    maps = DummyMaps()
    geocoder = _geocoder(cache=cache, client=maps, budget=BudgetController(daily_budget=5.0))

    first = geocoder.geocode("Pariser Platz 1, 10117 Berlin")
    second = geocoder.geocode("Pariser Platz 1, 10117 Berlin")

    assert first.method == "maps"
    assert first.accuracy == "rooftop"
    assert second.method == "maps"
    assert second.latitude == first.latitude
    assert maps.calls == ["Pariser Platz 1, 10117 Berlin"]
    assert cache.stats()["geocode_hits"] == 1


def test_result_outside_service_area_falls_back_to_city_database():
    maps = DummyMaps(latitude=40.4168, longitude=-3.7038)
    cache = InMemoryCacheStore()
    geocoder = _geocoder(cache=cache, client=maps, budget=BudgetController(daily_budget=5.0))

    result = geocoder.geocode("Kurfürstendamm 1, Berlin")

    assert result.method == "city_database"
    assert result.latitude == pytest.approx(52.52)
    assert cache.stats()["geocode_entries"] == 0


def test_budget_denial_skips_the_service():
    maps = DummyMaps()
    geocoder = _geocoder(client=maps, budget=BudgetController(daily_budget=0.0))

    result = geocoder.geocode("Rathausplatz 1, Köln")

    assert result.method == "city_database"
    assert maps.calls == []


def test_service_failure_uses_offline_fallbacks():
    maps = DummyMaps(error=ExternalServiceError("timed out", status="TIMEOUT"))
    geocoder = _geocoder(client=maps, budget=BudgetController(daily_budget=5.0))

    assert geocoder.geocode("Rathausplatz 1, Köln").method == "city_database"


def test_postal_prefix_estimate():
    result = _geocoder().geocode("Musterweg 3, 80331 Irgendwo")

    assert result.method == "postal_prefix"
    assert result.latitude == pytest.approx(48.1351 - 0.47)
    assert result.longitude == pytest.approx(11.5820 - 0.19)


def test_unresolvable_address_raises():
    with pytest.raises(GeocodeError) as excinfo:
        _geocoder().geocode("Unbekannte Straße 5")
    assert excinfo.value.address == "Unbekannte Straße 5"


def test_empty_address_raises():
    with pytest.raises(GeocodeError):
        _geocoder().geocode("   ")


def test_batch_geocoding_reports_progress_and_errors():
    sleeps = []
    events = []
    geocoder = Geocoder(sleep=sleeps.append)

    summary = geocoder.geocode_batch(
        ["Alexanderplatz, Berlin", "Unbekannte Straße 5", "Alexanderplatz, Berlin"],
        max_workers=1,
        delay_seconds=0.2,
        on_progress=events.append,
    )

    assert summary.total == 2
    assert "Alexanderplatz, Berlin" in summary.results
    assert "Unbekannte Straße 5" in summary.errors
    assert summary.success_rate == 50.0
    assert sleeps == [0.2]
    assert [event["processed"] for event in events] == [1, 2]
    assert events[-1]["success"] is False
