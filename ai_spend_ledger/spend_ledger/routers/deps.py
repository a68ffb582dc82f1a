"""Shared router dependencies: caller identity, app-state collaborators, role checks."""
from typing import Iterable, Optional
from uuid import UUID

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.config import Settings
from spend_ledger.errors import InvalidMonthError
from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.models import WorkspaceMember
from spend_ledger.models.enums import WorkspaceRole
from spend_ledger.services.sync_service import SyncOrchestrator
from spend_ledger.services.workspace_service import get_membership_with_role
from spend_ledger.utils.dates import format_month, month_range, utc_now

ALL_ROLES = tuple(WorkspaceRole)


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> str:
    """User id do gateway (đã xác thực) truyền qua X-User-ID. Thiếu -> 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_secret_box(request: Request) -> SecretBox:
    return request.app.state.secret_box


async def require_role(
    db: AsyncSession,
    user_id: str,
    workspace_id: UUID,
    roles: Iterable[WorkspaceRole] = ALL_ROLES,
) -> WorkspaceMember:
    """403 nếu user không phải member với một trong các role."""
    membership = await get_membership_with_role(db, user_id, workspace_id, roles)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return membership


def resolve_month(month: Optional[str]) -> str:
    """Default tháng hiện tại (UTC); sai format -> 400."""
    if not month:
        return format_month(utc_now())
    try:
        month_range(month)
    except InvalidMonthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return month
