"""Daily spend tracking for paid mapping-service calls."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable

from ...config import settings

logger = logging.getLogger(__name__)

# Costs are rounded to this many decimals so repeated additions never drift past a cap.
_COST_PRECISION = 6


class ApiCallKind(str, Enum):
    GEOCODING = "geocoding"
    DISTANCE_MATRIX = "distance_matrix"


@dataclass(slots=True)
class _Usage:
    day: date
    calls: dict[ApiCallKind, int]
    spent: dict[ApiCallKind, float]

    @property
    def total_spent(self) -> float:
        return round(sum(self.spent.values()), _COST_PRECISION)


class BudgetController:
    """Gate external calls against a daily cap split into per-kind sub-budgets.

    Geocoding and distance-matrix calls each get a fixed share of the daily cap so one
    call type cannot starve the other. Denials are reported as ``False``; nothing here
    raises on an exhausted budget. All state changes happen under one lock.
    """

    def __init__(
        self,
        daily_budget: float | None = None,
        *,
        unit_costs: dict[ApiCallKind, float] | None = None,
        shares: dict[ApiCallKind, float] | None = None,
        warning_ratio: float | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.daily_budget = daily_budget if daily_budget is not None else settings.daily_budget
        self.unit_costs = unit_costs or {
            ApiCallKind.GEOCODING: settings.geocoding_unit_cost,
            ApiCallKind.DISTANCE_MATRIX: settings.distance_matrix_unit_cost,
        }
        shares = shares or {
            ApiCallKind.GEOCODING: settings.geocoding_budget_share,
            ApiCallKind.DISTANCE_MATRIX: settings.distance_matrix_budget_share,
        }
        if sum(shares.values()) > 1.0 + 1e-9:
            raise ValueError("Budget shares must not add up to more than 1.0")
        self.sub_budgets = {
            kind: round(self.daily_budget * share, _COST_PRECISION) for kind, share in shares.items()
        }
        self.warning_ratio = warning_ratio if warning_ratio is not None else settings.budget_warning_ratio
        self._today = today
        self._lock = threading.Lock()
        self._usage = self._fresh_usage()
        self._warned = False

    def _fresh_usage(self) -> _Usage:
        return _Usage(
            day=self._today(),
            calls={kind: 0 for kind in ApiCallKind},
            spent={kind: 0.0 for kind in ApiCallKind},
        )

    def _roll_over(self) -> None:
        current = self._today()
        if self._usage.day != current:
            logger.info("New budget day %s - resetting API usage", current.isoformat())
            self._usage = self._fresh_usage()
            self._warned = False

    def _cost(self, kind: ApiCallKind, units: int) -> float:
        return round(self.unit_costs[kind] * units, _COST_PRECISION)

    def _allowed(self, kind: ApiCallKind, units: int) -> bool:
        cost = self._cost(kind, units)
        kind_total = round(self._usage.spent[kind] + cost, _COST_PRECISION)
        grand_total = round(self._usage.total_spent + cost, _COST_PRECISION)
        if grand_total > self.daily_budget:
            logger.warning("Daily budget of %.2f reached", self.daily_budget)
            return False
        if kind_total > self.sub_budgets.get(kind, 0.0):
            logger.warning(
                "%s sub-budget exhausted: %.3f of %.3f spent",
                kind.value,
                self._usage.spent[kind],
                self.sub_budgets.get(kind, 0.0),
            )
            return False
        return True

    def _register(self, kind: ApiCallKind, units: int) -> None:
        self._usage.calls[kind] += units
        self._usage.spent[kind] = round(self._usage.spent[kind] + self._cost(kind, units), _COST_PRECISION)
        total = self._usage.total_spent
        logger.debug("API call %s x%d registered (today: %.3f)", kind.value, units, total)
        if not self._warned and self.daily_budget > 0 and total > self.daily_budget * self.warning_ratio:
            self._warned = True
            logger.warning(
                "More than %d%% of the daily API budget used (%.2f of %.2f)",
                round(self.warning_ratio * 100),
                total,
                self.daily_budget,
            )

    def can_make_api_call(self, kind: ApiCallKind, units: int = 1) -> bool:
        with self._lock:
            self._roll_over()
            return self._allowed(kind, units)

    def register_api_call(self, kind: ApiCallKind, units: int = 1) -> None:
        with self._lock:
            self._roll_over()
            self._register(kind, units)

    def try_acquire(self, kind: ApiCallKind, units: int = 1) -> bool:
        """Check and register in one atomic step; used by concurrent batch workers."""
        with self._lock:
            self._roll_over()
            if not self._allowed(kind, units):
                return False
            self._register(kind, units)
            return True

    def reset(self) -> None:
        with self._lock:
            self._usage = self._fresh_usage()
            self._warned = False

    def get_status(self) -> dict:
        with self._lock:
            self._roll_over()
            spent = self._usage.total_spent
            remaining = max(0.0, round(self.daily_budget - spent, _COST_PRECISION))
            percentage = round(spent / self.daily_budget * 100) if self.daily_budget > 0 else 100
            return {
                "date": self._usage.day.isoformat(),
                "daily_budget": self.daily_budget,
                "spent": spent,
                "remaining": remaining,
                "percentage": percentage,
                "usage": {
                    kind.value: {
                        "calls": self._usage.calls[kind],
                        "limit": self._call_limit(kind),
                        "spent": self._usage.spent[kind],
                        "cap": self.sub_budgets.get(kind, 0.0),
                    }
                    for kind in ApiCallKind
                },
            }

    def _call_limit(self, kind: ApiCallKind) -> int:
        unit_cost = self.unit_costs[kind]
        if unit_cost <= 0:
            return 0
        return int(round(self.sub_budgets.get(kind, 0.0) / unit_cost, _COST_PRECISION))
