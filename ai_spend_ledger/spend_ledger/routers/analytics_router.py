"""Analytics: GET /analytics/keys, /analytics/ratios, /analytics/comparison."""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import get_db
from spend_ledger.routers.deps import get_current_user_id, require_role, resolve_month
from spend_ledger.services.analytics_service import get_comparison, get_cost_ratios, get_per_key_analytics
from spend_ledger.utils.dates import utc_now

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/keys")
async def per_key(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, List[Dict[str, str]]]:
    """Token totals per API key (string, có thể vượt 2^53)."""
    await require_role(db, user_id, workspace_id)
    to_date = to_date or utc_now().date()
    from_date = from_date or to_date - timedelta(days=29)
    if from_date > to_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="from must be <= to")
    return {"keys": await get_per_key_analytics(db, workspace_id, from_date, to_date)}


@router.get("/ratios")
async def ratios(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    month: Optional[str] = Query(None),
    group_by: str = Query("model", alias="groupBy", pattern="^(model|project)$"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    await require_role(db, user_id, workspace_id)
    month = resolve_month(month)
    return {"month": month, "groupBy": group_by, "items": await get_cost_ratios(db, workspace_id, month, group_by)}


@router.get("/comparison")
async def comparison(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    period: str = Query("month", pattern="^(week|month)$"),
    month: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Kỳ hiện tại so với kỳ trước (tháng trước hoặc 7 ngày trước đầu tháng)."""
    await require_role(db, user_id, workspace_id)
    return await get_comparison(db, workspace_id, period, resolve_month(month))
