from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from src.routeplanner.models.domain import Coordinate
from src.routeplanner.services.errors import ExternalServiceError
from src.routeplanner.services.maps.client import MapsClient, check_health, plan_matrix_chunks


def _client(handler, **kwargs) -> MapsClient:
    return MapsClient(
        api_key="test-key",
        base_url="https://maps.test/api",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def _geocode_payload(lat: float = 48.137, lng: float = 11.575) -> dict:
    return {
        "status": "OK",
        "results": [
            {
                "formatted_address": "Marienplatz 1, 80331 München, Deutschland",
                "geometry": {"location": {"lat": lat, "lng": lng}, "location_type": "ROOFTOP"},
                "place_id": "place-1",
            }
        ],
    }


def test_geocode_parses_first_result():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/geocode/json"
        assert request.url.params["key"] == "test-key"
        assert request.url.params["address"] == "Marienplatz 1, München"
        assert request.url.params["components"].startswith("country:")
        return httpx.Response(200, json=_geocode_payload())

    result = _client(handler).geocode("Marienplatz 1, München")

    assert result["latitude"] == 48.137
    assert result["longitude"] == 11.575
    assert result["accuracy"] == "rooftop"
    assert result["place_id"] == "place-1"


def test_geocode_without_results_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    with pytest.raises(ExternalServiceError) as excinfo:
        _client(handler).geocode("Nirgendwo 1")
    assert excinfo.value.status == "ZERO_RESULTS"


def test_request_denied_disables_the_client():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})

    client = _client(handler)
    with pytest.raises(ExternalServiceError):
        client.geocode("Berlin")
    assert client.disabled

    with pytest.raises(ExternalServiceError) as excinfo:
        client.geocode("Berlin")
    assert excinfo.value.status == "DISABLED"
    assert len(calls) == 1


def test_server_errors_are_retried():
    responses = [httpx.Response(503), httpx.Response(200, json=_geocode_payload())]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    client = _client(handler, max_retries=1)
    assert client.geocode("München")["latitude"] == 48.137
    assert client.request_count == 2


def test_retries_are_bounded():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    client = _client(handler, max_retries=1)
    with pytest.raises(ExternalServiceError) as excinfo:
        client.geocode("München")
    assert excinfo.value.status == "500"
    assert client.request_count == 2


def test_timeout_is_not_retried():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler, max_retries=3)
    with pytest.raises(ExternalServiceError) as excinfo:
        client.geocode("München")
    assert excinfo.value.status == "TIMEOUT"
    assert client.request_count == 1


def test_distance_matrix_parses_rows_and_unroutable_cells():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/distancematrix/json"
        assert request.url.params["origins"] == "52.0,9.0|53.0,10.0"
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "rows": [
                    {
                        "elements": [
                            {"status": "OK", "distance": {"value": 12000}, "duration": {"value": 1800}},
                            {"status": "NOT_FOUND"},
                        ]
                    },
                    {
                        "elements": [
                            {"status": "OK", "distance": {"value": 5000}, "duration": {"value": 3600}},
                            {"status": "OK", "distance": {"value": 0}, "duration": {"value": 0}},
                        ]
                    },
                ],
            },
        )

    origins = [Coordinate(52.0, 9.0), Coordinate(53.0, 10.0)]
    destinations = [Coordinate(52.5, 9.5), Coordinate(53.0, 10.0)]
    matrix = _client(handler).distance_matrix(origins, destinations)

    assert matrix[0][0].distance_km == 12.0
    assert matrix[0][0].duration_hours == 0.5
    assert matrix[0][1] is None
    assert matrix[1][0].duration_hours == 1.0


def test_request_count_is_exact_across_worker_threads():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_geocode_payload())

    client = _client(handler)
    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(client.geocode, [f"Marienplatz {index}, Muenchen" for index in range(64)]))

    assert client.request_count == 64


def test_distance_matrix_rejects_oversized_requests():
    client = _client(lambda request: httpx.Response(500))
    origins = [Coordinate(50 + i * 0.01, 9.0) for i in range(client.max_dimension + 1)]

    with pytest.raises(ValueError):
        client.distance_matrix(origins, [Coordinate(52.0, 9.0)])
    assert client.request_count == 0


def test_missing_api_key_is_rejected(monkeypatch):
    from src.routeplanner.services.maps import client as client_module

    monkeypatch.setattr(client_module.settings, "maps_api_key", None)
    with pytest.raises(ValueError):
        MapsClient(api_key=None)


def test_matrix_chunks_respect_element_limit():
    chunks = plan_matrix_chunks(30, 30, max_dimension=25, max_elements=100)

    assert all(chunk.elements <= 100 for chunk in chunks)
    assert all(chunk.origin_end - chunk.origin_start <= 25 for chunk in chunks)
    assert sum(chunk.elements for chunk in chunks) == 900
    assert len(plan_matrix_chunks(3, 5, max_dimension=25, max_elements=100)) == 1
    assert plan_matrix_chunks(0, 5) == []


def test_check_health():
    healthy = _client(lambda request: httpx.Response(200, json=_geocode_payload()))
    failing = _client(lambda request: httpx.Response(404))

    assert check_health(healthy)
    assert not check_health(failing)
    assert not check_health(None)
