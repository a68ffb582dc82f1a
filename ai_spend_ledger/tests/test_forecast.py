from datetime import date

import pytest

from spend_ledger.services.forecast_service import compute_forecast, linear_regression, moving_average


def test_linear_regression_exact_line() -> None:
    assert linear_regression([(0, 1), (1, 3), (2, 5)]) == (2.0, 1.0)


def test_linear_regression_degenerate_inputs() -> None:
    assert linear_regression([]) == (0.0, 0.0)
    assert linear_regression([(0, 5.0)]) == (0.0, 5.0)
    # same x twice: denominator 0, fall back to mean
    assert linear_regression([(1, 1.0), (1, 3.0)]) == (0.0, 2.0)


def test_moving_average_trailing_window() -> None:
    assert moving_average([1, 2, 3, 4], 2) == [1, 1.5, 2.5, 3.5]
    assert moving_average([], 7) == []


def test_forecast_without_history() -> None:
    out = compute_forecast({}, "2024-03", date(2024, 3, 10))
    assert out["daysElapsed"] == 10
    assert out["daysRemaining"] == 21
    assert out["predictedMonthEnd"] == 0
    assert out["currentSpend"] == 0
    assert out["budgetExhaustionDate"] is None
    assert len(out["dailyForecasts"]) == 21


def test_forecast_flat_spend_never_exhausts() -> None:
    costs = {date(2024, 3, d): 10.0 for d in range(1, 11)}
    out = compute_forecast(costs, "2024-03", date(2024, 3, 10), budget_amount=200.0)
    assert out["currentSpend"] == 100
    assert out["predictedMonthEnd"] == pytest.approx(310.0)
    # slope 0: no exhaustion estimate even over budget
    assert out["budgetExhaustionDate"] is None


def test_forecast_growing_spend() -> None:
    costs = {date(2024, 3, d): float(d) for d in range(1, 11)}
    out = compute_forecast(costs, "2024-03", date(2024, 3, 10), budget_amount=100.0)
    assert out["currentSpend"] == 55
    assert out["dailyForecasts"][0] == {"date": "2024-03-11", "value": 66.0}
    assert out["dailyForecasts"][-1]["date"] == "2024-03-31"
    assert out["predictedMonthEnd"] == pytest.approx(496.0)
    assert out["budgetExhaustionDate"] == "2024-03-15"


def test_forecast_budget_already_spent() -> None:
    costs = {date(2024, 3, d): float(d) for d in range(1, 11)}
    out = compute_forecast(costs, "2024-03", date(2024, 3, 10), budget_amount=50.0)
    assert out["budgetExhaustionDate"] == "2024-03-10"


def test_forecast_last_day_of_month() -> None:
    out = compute_forecast({date(2024, 2, 29): 4.0}, "2024-02", date(2024, 2, 29))
    assert out["daysElapsed"] == 29
    assert out["daysRemaining"] == 0
    assert out["dailyForecasts"] == []
    assert out["predictedMonthEnd"] == 4.0
