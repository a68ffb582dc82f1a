"""
Connection state: DISCONNECTED (connect/reconnect) -> OK (sync ok) <-> DEGRADED (sync lỗi).
Không có trạng thái kết thúc. Mọi cập nhật status đi qua module này.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Type, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.errors import LAST_ERROR_LIMIT
from spend_ledger.models import AnthropicConnection, BedrockConnection, OpenAIConnection, VertexAIConnection
from spend_ledger.models.enums import ConnectionStatus

ConnectionModel = Type[Union[OpenAIConnection, AnthropicConnection, VertexAIConnection, BedrockConnection]]


def ok_values(now: datetime) -> Dict[str, Any]:
    return {
        "status": ConnectionStatus.OK.value,
        "last_sync_at": now,
        "last_error": None,
    }


def degraded_values(message: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """lastSyncAt chỉ ghi khi sync đã thực sự chạy (không ghi cho lỗi decrypt)."""
    values: Dict[str, Any] = {
        "status": ConnectionStatus.DEGRADED.value,
        "last_error": message[:LAST_ERROR_LIMIT],
    }
    if now is not None:
        values["last_sync_at"] = now
    return values


def reset_values() -> Dict[str, Any]:
    """Connect/reconnect luôn về DISCONNECTED và xóa lỗi; lastSyncAt giữ nguyên."""
    return {
        "status": ConnectionStatus.DISCONNECTED.value,
        "last_error": None,
    }


def is_connection_alert_transition(previous: str, new: str) -> bool:
    """Alert chỉ khi status thực sự đổi và không phải về OK (recovery không alert)."""
    return previous != new and new != ConnectionStatus.OK.value


async def get_status(session: AsyncSession, model: ConnectionModel, workspace_id: UUID) -> Optional[str]:
    r = await session.execute(select(model.status).where(model.workspace_id == workspace_id))
    return r.scalar_one_or_none()


async def apply(session: AsyncSession, model: ConnectionModel, workspace_id: UUID, values: Dict[str, Any]) -> None:
    """UPDATE the connection row in the caller's transaction."""
    await session.execute(update(model).where(model.workspace_id == workspace_id).values(**values))


async def mark_ok(session: AsyncSession, model: ConnectionModel, workspace_id: UUID, now: datetime, **extra: Any) -> None:
    await apply(session, model, workspace_id, {**ok_values(now), **extra})


async def mark_degraded(
    session: AsyncSession,
    model: ConnectionModel,
    workspace_id: UUID,
    message: str,
    now: Optional[datetime] = None,
) -> None:
    await apply(session, model, workspace_id, degraded_values(message, now))
