"""
Manual sync (POST /openai/sync: Sync Now cho cả bốn provider) và cron sync (GET/POST /cron/sync).
Lỗi từng provider nằm trong connection state, không làm request fail.
"""
import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.config import Settings
from spend_ledger.db import get_db
from spend_ledger.logging_config import get_logger
from spend_ledger.routers.deps import get_app_settings, get_current_user_id, get_orchestrator, require_role
from spend_ledger.schemas.common import ErrorResponse, SuccessResponse
from spend_ledger.schemas.sync import CronSyncResponse, SyncRequest
from spend_ledger.services.sync_service import SyncOrchestrator
from spend_ledger.services.workspace_service import ADMIN_ROLES

router = APIRouter(tags=["sync"])
logger = get_logger(__name__)


def _cron_authorized(authorization: str, cron_secret: str) -> bool:
    """So sánh constant-time với 'Bearer <CRON_SECRET>'."""
    expected = f"Bearer {cron_secret}".encode("utf-8")
    return hmac.compare_digest((authorization or "").encode("utf-8"), expected)


@router.post(
    "/openai/sync",
    response_model=SuccessResponse,
    responses={403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def post_manual_sync(
    payload: SyncRequest,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SuccessResponse:
    """Sync Now: owner/admin, bốn provider song song cho workspace."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    # không giữ transaction trong lúc gọi provider
    await db.commit()
    try:
        await orchestrator.sync_workspace_all(payload.workspace_id)
    except Exception as e:
        logger.exception("sync.manual_failed", workspace_id=str(payload.workspace_id))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Sync failed") from e
    return SuccessResponse()


@router.api_route(
    "/cron/sync",
    methods=["GET", "POST"],
    response_model=CronSyncResponse,
    responses={401: {"model": ErrorResponse}},
)
async def cron_sync(
    authorization: str = Header("", alias="Authorization"),
    settings: Settings = Depends(get_app_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> CronSyncResponse:
    """Fleet sync mọi workspace x bốn provider, cửa sổ SYNC_WINDOW_DAYS."""
    if not _cron_authorized(authorization, settings.cron_secret):
        logger.warning("sync.cron_unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    result = await orchestrator.sync_all_fleets()
    logger.info("sync.cron_completed", **{k: v["total"] for k, v in result.items() if isinstance(v, dict)})
    return CronSyncResponse.model_validate(result)
