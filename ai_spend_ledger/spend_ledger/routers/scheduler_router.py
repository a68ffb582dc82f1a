"""Scheduler status API."""
from fastapi import APIRouter, Depends

from spend_ledger.config import Settings
from spend_ledger.routers.deps import get_app_settings, get_current_user_id
from spend_ledger.schemas.scheduler import SchedulerStatusResponse
from spend_ledger.services.scheduler_service import get_scheduler_status

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def scheduler_status(
    settings: Settings = Depends(get_app_settings),
    user_id: str = Depends(get_current_user_id),
) -> SchedulerStatusResponse:
    """Trạng thái sync worker: enabled, interval, last_tick_at."""
    return SchedulerStatusResponse(**get_scheduler_status(settings))
