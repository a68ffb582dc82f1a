"""Connect endpoints per provider + GET /connections. Owner/admin only for writes; credentials never returned."""
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import get_db
from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.logging_config import get_logger
from spend_ledger.models.enums import OpenAIMode, ProviderName
from spend_ledger.routers.deps import get_current_user_id, get_orchestrator, get_secret_box, require_role
from spend_ledger.schemas.common import ErrorResponse
from spend_ledger.schemas.connections import (
    AnthropicConnectRequest,
    BedrockConnectRequest,
    ConnectResponse,
    OpenAIConnectRequest,
    VertexConnectRequest,
)
from spend_ledger.services.analytics_service import connection_overview
from spend_ledger.services.connect_service import (
    InvalidCredentialsError,
    connect_anthropic,
    connect_bedrock,
    connect_openai,
    connect_vertex,
)
from spend_ledger.services.sync_service import SyncOrchestrator
from spend_ledger.services.workspace_service import ADMIN_ROLES

router = APIRouter(tags=["connections"])

CONNECT_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}
logger = get_logger(__name__)


async def _queue_first_sync(
    db: AsyncSession,
    background: BackgroundTasks,
    orchestrator: SyncOrchestrator,
    workspace_id: UUID,
    provider: ProviderName,
) -> ConnectResponse:
    """Commit connection trước, sync đầu tiên chạy sau khi response đã gửi."""
    await db.commit()
    background.add_task(orchestrator.sync, workspace_id, provider)
    logger.info("connect.sync_queued", workspace_id=str(workspace_id), provider=provider.value)
    return ConnectResponse()


@router.post("/openai/connect", response_model=ConnectResponse, responses=CONNECT_ERRORS)
async def post_openai_connect(
    payload: OpenAIConnectRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    box: SecretBox = Depends(get_secret_box),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ConnectResponse:
    """Save OpenAI key; mode organization (admin key) or personal (credit grants)."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    await connect_openai(db, box, payload.workspace_id, payload.api_key, OpenAIMode(payload.mode.upper()))
    return await _queue_first_sync(db, background, orchestrator, payload.workspace_id, ProviderName.OPENAI)


@router.post("/anthropic/connect", response_model=ConnectResponse, responses=CONNECT_ERRORS)
async def post_anthropic_connect(
    payload: AnthropicConnectRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    box: SecretBox = Depends(get_secret_box),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ConnectResponse:
    """Save Anthropic Admin API key."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    await connect_anthropic(db, box, payload.workspace_id, payload.api_key)
    return await _queue_first_sync(db, background, orchestrator, payload.workspace_id, ProviderName.ANTHROPIC)


@router.post(
    "/vertex/connect",
    response_model=ConnectResponse,
    responses={**CONNECT_ERRORS, 400: {"model": ErrorResponse}},
)
async def post_vertex_connect(
    payload: VertexConnectRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    box: SecretBox = Depends(get_secret_box),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ConnectResponse:
    """Save GCP service account JSON + billing account id."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    try:
        await connect_vertex(
            db, box, payload.workspace_id, payload.service_account_json, payload.project_id, payload.region
        )
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return await _queue_first_sync(db, background, orchestrator, payload.workspace_id, ProviderName.VERTEX)


@router.post("/bedrock/connect", response_model=ConnectResponse, responses=CONNECT_ERRORS)
async def post_bedrock_connect(
    payload: BedrockConnectRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    box: SecretBox = Depends(get_secret_box),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> ConnectResponse:
    """Save AWS access key pair (Cost Explorer read)."""
    await require_role(db, user_id, payload.workspace_id, ADMIN_ROLES)
    await connect_bedrock(
        db, box, payload.workspace_id, payload.access_key_id, payload.secret_access_key, payload.region
    )
    return await _queue_first_sync(db, background, orchestrator, payload.workspace_id, ProviderName.BEDROCK)


@router.get("/connections")
async def get_connections(
    workspace_id: UUID = Query(..., alias="workspaceId"),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Status, lastSyncAt, lastError, remediation per provider."""
    await require_role(db, user_id, workspace_id)
    return await connection_overview(db, workspace_id)
