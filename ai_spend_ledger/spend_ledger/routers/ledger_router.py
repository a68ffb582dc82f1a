"""Ledger reads: GET /summary, /trend, /breakdown, /forecast. Member của workspace mới được đọc."""
from datetime import date, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import get_db
from spend_ledger.routers.deps import get_current_user_id, require_role, resolve_month
from spend_ledger.schemas.forecast import ForecastOut
from spend_ledger.services.analytics_service import get_breakdown, get_summary, get_trend
from spend_ledger.services.forecast_service import load_forecast
from spend_ledger.utils.dates import utc_now

router = APIRouter(tags=["ledger"])

DEFAULT_TREND_DAYS = 30


@router.get("/summary")
async def summary(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    month: Optional[str] = Query(None, description="YYYY-MM, default tháng hiện tại"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Month cost, today cost, budget, remaining, connection states."""
    await require_role(db, user_id, workspace_id)
    return await get_summary(db, workspace_id, resolve_month(month))


@router.get("/trend")
async def trend(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Per-day totals in [from, to]; default 30 ngày gần nhất."""
    await require_role(db, user_id, workspace_id)
    to_date = to_date or utc_now().date()
    from_date = from_date or to_date - timedelta(days=DEFAULT_TREND_DAYS - 1)
    if from_date > to_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="from must be <= to")
    return await get_trend(db, workspace_id, from_date, to_date)


@router.get("/breakdown")
async def breakdown(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    month: Optional[str] = Query(None),
    by: str = Query("project", pattern="^(project|line_item|model)$"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    await require_role(db, user_id, workspace_id)
    return await get_breakdown(db, workspace_id, resolve_month(month), by)


@router.get("/forecast", response_model=ForecastOut, response_model_by_alias=True)
async def forecast(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    month: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ForecastOut:
    """Dự báo chi phí cuối tháng + ngày hết budget."""
    await require_role(db, user_id, workspace_id)
    result = await load_forecast(db, workspace_id, resolve_month(month))
    return ForecastOut.model_validate(result)
