"""In-app notifications của user hiện tại."""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import get_db
from spend_ledger.routers.deps import get_current_user_id
from spend_ledger.schemas.common import SuccessResponse
from spend_ledger.schemas.notifications import NotificationOut, ReadAllResponse
from spend_ledger.services.alert_rule_service import list_notifications, mark_all_read, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def get_notifications(
    workspace_id: Optional[UUID] = Query(None, alias="workspaceId"),
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> List[NotificationOut]:
    items = await list_notifications(db, user_id, workspace_id, unread_only=unread, limit=limit)
    return [NotificationOut.model_validate(n) for n in items]


@router.post("/read-all", response_model=ReadAllResponse)
async def post_read_all(
    workspace_id: Optional[UUID] = Query(None, alias="workspaceId"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> ReadAllResponse:
    """Đánh dấu đã đọc toàn bộ notification chưa đọc."""
    updated = await mark_all_read(db, user_id, workspace_id)
    return ReadAllResponse(updated=updated)


@router.patch("/{notification_id}/read", response_model=SuccessResponse)
async def patch_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> SuccessResponse:
    if not await mark_read(db, user_id, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return SuccessResponse()
