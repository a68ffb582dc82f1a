"""
Connect/reconnect provider: mã hóa credentials, upsert connection row, reset status về DISCONNECTED.
Credentials không bao giờ được log hay trả về.
"""
import json
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.logging_config import get_logger
from spend_ledger.models import AnthropicConnection, BedrockConnection, OpenAIConnection, VertexAIConnection
from spend_ledger.models.enums import OpenAIMode, ProviderName
from spend_ledger.services import connection_state
from spend_ledger.services.connection_state import ConnectionModel
from spend_ledger.services.ledger_writer import purge_personal_rows

logger = get_logger(__name__)


class InvalidCredentialsError(ValueError):
    """Credential payload has the wrong shape (reported as 400)."""


def validate_service_account(service_account_json: str) -> Dict[str, Any]:
    try:
        info = json.loads(service_account_json)
    except ValueError as e:
        raise InvalidCredentialsError("Invalid JSON format for service account") from e
    if not isinstance(info, dict) or not info.get("client_email") or not info.get("private_key"):
        raise InvalidCredentialsError("Service account JSON must contain client_email and private_key")
    return info


async def _upsert_connection(
    db: AsyncSession,
    model: ConnectionModel,
    workspace_id: UUID,
    values: Dict[str, Any],
):
    """Create or replace the workspace's connection row; status luôn reset."""
    r = await db.execute(select(model).where(model.workspace_id == workspace_id))
    conn = r.scalar_one_or_none()
    values = {**values, **connection_state.reset_values()}
    if conn is None:
        conn = model(workspace_id=workspace_id, **values)
        db.add(conn)
    else:
        for key, value in values.items():
            setattr(conn, key, value)
    await db.flush()
    return conn


async def connect_openai(
    db: AsyncSession,
    box: SecretBox,
    workspace_id: UUID,
    api_key: str,
    mode: OpenAIMode,
) -> OpenAIConnection:
    """Đổi mode (personal <-> organization) thì xóa row __personal__ và credit snapshot."""
    r = await db.execute(select(OpenAIConnection.mode).where(OpenAIConnection.workspace_id == workspace_id))
    previous_mode = r.scalar_one_or_none()
    values: Dict[str, Any] = {"admin_key_enc": box.encrypt(api_key), "mode": mode.value}
    if previous_mode is not None and previous_mode != mode.value:
        purged = await purge_personal_rows(db, workspace_id)
        values.update(
            credit_total_granted=None,
            credit_total_used=None,
            credit_total_available=None,
            credit_currency=None,
        )
        logger.info(
            "connect.openai_mode_switched",
            workspace_id=str(workspace_id),
            previous_mode=previous_mode,
            mode=mode.value,
            purged_rows=purged,
        )
    conn = await _upsert_connection(db, OpenAIConnection, workspace_id, values)
    logger.info("connect.saved", workspace_id=str(workspace_id), provider=ProviderName.OPENAI.value)
    return conn


async def connect_anthropic(db: AsyncSession, box: SecretBox, workspace_id: UUID, api_key: str) -> AnthropicConnection:
    conn = await _upsert_connection(db, AnthropicConnection, workspace_id, {"admin_key_enc": box.encrypt(api_key)})
    logger.info("connect.saved", workspace_id=str(workspace_id), provider=ProviderName.ANTHROPIC.value)
    return conn


async def connect_vertex(
    db: AsyncSession,
    box: SecretBox,
    workspace_id: UUID,
    service_account_json: str,
    project_id: str,
    region: str,
) -> VertexAIConnection:
    """project_id là billing account id dùng cho costs:list."""
    validate_service_account(service_account_json)
    conn = await _upsert_connection(
        db,
        VertexAIConnection,
        workspace_id,
        {
            "service_account_enc": box.encrypt(service_account_json),
            "project_id": project_id,
            "region": region,
        },
    )
    logger.info("connect.saved", workspace_id=str(workspace_id), provider=ProviderName.VERTEX.value)
    return conn


async def connect_bedrock(
    db: AsyncSession,
    box: SecretBox,
    workspace_id: UUID,
    access_key_id: str,
    secret_access_key: str,
    region: str,
) -> BedrockConnection:
    conn = await _upsert_connection(
        db,
        BedrockConnection,
        workspace_id,
        {
            "access_key_enc": box.encrypt(access_key_id),
            "secret_key_enc": box.encrypt(secret_access_key),
            "region": region,
        },
    )
    logger.info("connect.saved", workspace_id=str(workspace_id), provider=ProviderName.BEDROCK.value)
    return conn
