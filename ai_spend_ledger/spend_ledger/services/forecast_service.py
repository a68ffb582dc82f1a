"""
Forecast chi phí cuối tháng: linear regression trên tổng theo ngày (60 ngày gần nhất),
cộng dồn dự báo cho các ngày còn lại, ước tính ngày hết budget.
"""
import calendar
import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.models import Budget, DailyCost
from spend_ledger.utils.dates import month_range, utc_now

HISTORY_DAYS = 60

Point = Tuple[float, float]


def linear_regression(points: Sequence[Point]) -> Tuple[float, float]:
    """
    Least squares (slope, intercept).
    n < 2 -> (0, y đầu tiên hoặc 0); mẫu số 0 -> (0, mean y).
    """
    n = len(points)
    if n < 2:
        return 0.0, (points[0][1] if points else 0.0)
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_xx = sum(x * x for x, _ in points)
    denom = n * sum_xx - sum_x * sum_x
    if denom == 0:
        return 0.0, sum_y / n
    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """Trailing average; the first entries average over what is available."""
    out: List[float] = []
    for i in range(len(values)):
        chunk = values[max(0, i - window + 1) : i + 1]
        out.append(sum(chunk) / len(chunk))
    return out


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def compute_forecast(
    cost_by_date: Dict[date, float],
    month: str,
    today: date,
    budget_amount: Optional[float] = None,
) -> Dict[str, Any]:
    """Pure forecast over per-day totals; dates are x = 0..n-1 in ascending order."""
    start = month_range(month).start.date()
    last_day = calendar.monthrange(start.year, start.month)[1]
    days_elapsed = min(today.day, last_day)
    days_remaining = max(0, last_day - days_elapsed)

    ordered = sorted(cost_by_date.items())
    points: List[Point] = [(float(i), cost) for i, (_, cost) in enumerate(ordered)]
    month_end = start.replace(day=last_day)
    current_spend = sum(cost for day, cost in ordered if start <= day <= month_end)

    slope, intercept = linear_regression(points)
    next_index = len(points)

    daily_forecasts: List[Dict[str, Any]] = []
    accum = current_spend
    for d in range(1, days_remaining + 1):
        predicted = max(0.0, intercept + slope * (next_index + d - 1))
        accum += predicted
        day = start + timedelta(days=days_elapsed + d - 1)
        daily_forecasts.append({"date": day.isoformat(), "value": _round2(accum)})

    exhaustion: Optional[str] = None
    if budget_amount is not None and slope > 0:
        avg_daily = intercept + slope * (next_index - 1) if points else 0.0
        if avg_daily > 0:
            budget_left = budget_amount - current_spend
            if budget_left > 0:
                days_until = math.ceil(budget_left / avg_daily)
                exhaustion = (start + timedelta(days=days_elapsed + days_until - 1)).isoformat()
            else:
                exhaustion = today.isoformat()

    return {
        "predictedMonthEnd": _round2(accum),
        "dailyForecasts": daily_forecasts,
        "budgetExhaustionDate": exhaustion,
        "currentSpend": _round2(current_spend),
        "daysElapsed": days_elapsed,
        "daysRemaining": days_remaining,
    }


async def load_forecast(
    db: AsyncSession,
    workspace_id: UUID,
    month: str,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Đọc tổng theo ngày (60 ngày) + budget của tháng, rồi compute_forecast."""
    today = today or utc_now().date()
    since = today - timedelta(days=HISTORY_DAYS)
    r = await db.execute(
        select(DailyCost.date, func.sum(DailyCost.value))
        .where(DailyCost.workspace_id == workspace_id, DailyCost.date >= since)
        .group_by(DailyCost.date)
    )
    cost_by_date = {day: float(value or 0) for day, value in r.all()}
    budget = (
        await db.execute(select(Budget).where(Budget.workspace_id == workspace_id, Budget.month == month))
    ).scalar_one_or_none()
    budget_amount = float(budget.amount) if budget is not None else None
    return compute_forecast(cost_by_date, month, today, budget_amount)
