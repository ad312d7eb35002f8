import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from src.routeplanner.services.maps.budget import ApiCallKind, BudgetController


def test_sub_budgets_split_the_daily_cap():
    budget = BudgetController(daily_budget=10.0)

    assert budget.sub_budgets[ApiCallKind.GEOCODING] == pytest.approx(2.0)
    assert budget.sub_budgets[ApiCallKind.DISTANCE_MATRIX] == pytest.approx(8.0)


def test_geocoding_cannot_starve_distance_matrix():
    budget = BudgetController(
        daily_budget=1.0,
        unit_costs={ApiCallKind.GEOCODING: 0.1, ApiCallKind.DISTANCE_MATRIX: 0.1},
    )

    assert budget.try_acquire(ApiCallKind.GEOCODING)
    assert budget.try_acquire(ApiCallKind.GEOCODING)
    assert not budget.try_acquire(ApiCallKind.GEOCODING)
    assert budget.can_make_api_call(ApiCallKind.DISTANCE_MATRIX)


def test_spend_stays_within_cap_when_calls_are_gated():
    budget = BudgetController(daily_budget=0.5)

    for index in range(500):
        kind = ApiCallKind.GEOCODING if index % 3 == 0 else ApiCallKind.DISTANCE_MATRIX
        if budget.can_make_api_call(kind):
            budget.register_api_call(kind)

    status = budget.get_status()
    assert status["spent"] <= 0.5
    assert status["remaining"] >= 0
    assert status["usage"]["geocoding"]["calls"] == 20
    assert status["usage"]["distance_matrix"]["calls"] == 40
    assert status["usage"]["distance_matrix"]["limit"] == 40


def test_matrix_request_is_charged_per_element():
    budget = BudgetController(daily_budget=1.0)

    assert budget.try_acquire(ApiCallKind.DISTANCE_MATRIX, units=60)
    assert not budget.try_acquire(ApiCallKind.DISTANCE_MATRIX, units=30)
    assert budget.try_acquire(ApiCallKind.DISTANCE_MATRIX, units=20)
    assert budget.get_status()["usage"]["distance_matrix"]["calls"] == 80


def test_usage_resets_when_the_day_changes():
    current = {"day": date(2024, 3, 4)}
    budget = BudgetController(daily_budget=1.0, today=lambda: current["day"])
    budget.register_api_call(ApiCallKind.DISTANCE_MATRIX, units=10)
    assert budget.get_status()["spent"] == pytest.approx(0.1)

    current["day"] = date(2024, 3, 5)
    status = budget.get_status()

    assert status["spent"] == 0.0
    assert status["date"] == "2024-03-05"
    assert status["usage"]["distance_matrix"]["calls"] == 0


def test_warning_logged_once_past_threshold(caplog):
    budget = BudgetController(daily_budget=1.0)

    with caplog.at_level(logging.WARNING):
        for _ in range(80):
            budget.register_api_call(ApiCallKind.DISTANCE_MATRIX)
        assert "of the daily API budget used" not in caplog.text
        budget.register_api_call(ApiCallKind.DISTANCE_MATRIX)
        budget.register_api_call(ApiCallKind.DISTANCE_MATRIX)

    assert caplog.text.count("More than 80% of the daily API budget used") == 1


def test_zero_budget_denies_everything():
    budget = BudgetController(daily_budget=0.0)

    assert not budget.can_make_api_call(ApiCallKind.GEOCODING)
    assert budget.get_status()["percentage"] == 100


def test_shares_above_one_are_rejected():
    with pytest.raises(ValueError):
        BudgetController(
            daily_budget=1.0,
            shares={ApiCallKind.GEOCODING: 0.6, ApiCallKind.DISTANCE_MATRIX: 0.6},
        )


def test_concurrent_acquires_never_overspend():
    budget = BudgetController(daily_budget=1.0)

    def acquire(index: int):
        kind = ApiCallKind.GEOCODING if index % 4 == 0 else ApiCallKind.DISTANCE_MATRIX
        return kind if budget.try_acquire(kind) else None

    with ThreadPoolExecutor(max_workers=16) as executor:
        granted = [kind for kind in executor.map(acquire, range(2000)) if kind is not None]

    status = budget.get_status()
    assert status["spent"] <= 1.0
    assert status["usage"]["geocoding"]["calls"] == granted.count(ApiCallKind.GEOCODING) == 40
    assert status["usage"]["distance_matrix"]["calls"] == granted.count(ApiCallKind.DISTANCE_MATRIX) == 80
