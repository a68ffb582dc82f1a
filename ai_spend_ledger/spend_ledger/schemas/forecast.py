"""Schemas for month-end forecast."""
from typing import List, Optional

from pydantic import BaseModel, Field


class DailyForecast(BaseModel):
    date: str
    value: float = Field(..., description="Cumulative month spend through this day")


class ForecastOut(BaseModel):
    predicted_month_end: float = Field(..., alias="predictedMonthEnd")
    daily_forecasts: List[DailyForecast] = Field(..., alias="dailyForecasts")
    budget_exhaustion_date: Optional[str] = Field(None, alias="budgetExhaustionDate")
    current_spend: float = Field(..., alias="currentSpend")
    days_elapsed: int = Field(..., alias="daysElapsed")
    days_remaining: int = Field(..., alias="daysRemaining")

    model_config = {"populate_by_name": True}
