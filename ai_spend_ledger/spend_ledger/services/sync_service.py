"""
Sync orchestrator: decrypt credentials -> provider client -> ledger writer -> connection state -> alerts.
Mỗi (workspace, provider) độc lập; mọi lỗi của provider thành DEGRADED + lastError, không raise ra ngoài.
Session DB không giữ qua HTTP call: đọc connection, đóng session, fetch, ghi trong session mới.
"""
import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import select

from spend_ledger.config import Settings
from spend_ledger.db import SessionFactory
from spend_ledger.errors import DecryptError, truncate_error
from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.logging_config import get_logger
from spend_ledger.models import AnthropicConnection, BedrockConnection, OpenAIConnection, VertexAIConnection
from spend_ledger.models.enums import ConnectionStatus, OpenAIMode, ProviderName
from spend_ledger.services import connection_state
from spend_ledger.services.alert_service import AlertDispatcher
from spend_ledger.services.connection_state import ConnectionModel
from spend_ledger.services.ledger_writer import write_sync_result
from spend_ledger.services.provider_types import (
    AnthropicCredentials,
    BedrockCredentials,
    Credentials,
    OpenAICredentials,
    ProviderClient,
    VertexCredentials,
)
from spend_ledger.utils.dates import sync_window, utc_now

logger = get_logger(__name__)


def _openai_credentials(box: SecretBox, conn: OpenAIConnection) -> OpenAICredentials:
    return OpenAICredentials(api_key=box.decrypt(conn.admin_key_enc), mode=OpenAIMode(conn.mode))


def _anthropic_credentials(box: SecretBox, conn: AnthropicConnection) -> AnthropicCredentials:
    return AnthropicCredentials(api_key=box.decrypt(conn.admin_key_enc))


def _vertex_credentials(box: SecretBox, conn: VertexAIConnection) -> VertexCredentials:
    return VertexCredentials(
        service_account_json=box.decrypt(conn.service_account_enc),
        billing_account_id=conn.project_id,
        region=conn.region,
    )


def _bedrock_credentials(box: SecretBox, conn: BedrockConnection) -> BedrockCredentials:
    return BedrockCredentials(
        access_key_id=box.decrypt(conn.access_key_enc),
        secret_access_key=box.decrypt(conn.secret_key_enc),
        region=conn.region,
    )


@dataclass(frozen=True)
class ProviderSpec:
    """Per-provider wiring: connection table, decrypt step, fixed decrypt error message."""

    name: ProviderName
    label: str
    model: ConnectionModel
    load_credentials: Callable[[SecretBox, Any], Credentials]
    decrypt_error: str


PROVIDERS: Dict[ProviderName, ProviderSpec] = {
    ProviderName.OPENAI: ProviderSpec(
        name=ProviderName.OPENAI,
        label="OpenAI",
        model=OpenAIConnection,
        load_credentials=_openai_credentials,
        decrypt_error="Failed to decrypt OpenAI key",
    ),
    ProviderName.ANTHROPIC: ProviderSpec(
        name=ProviderName.ANTHROPIC,
        label="Anthropic",
        model=AnthropicConnection,
        load_credentials=_anthropic_credentials,
        decrypt_error="Failed to decrypt Anthropic key",
    ),
    ProviderName.VERTEX: ProviderSpec(
        name=ProviderName.VERTEX,
        label="Vertex AI",
        model=VertexAIConnection,
        load_credentials=_vertex_credentials,
        decrypt_error="Failed to decrypt Vertex AI credentials",
    ),
    ProviderName.BEDROCK: ProviderSpec(
        name=ProviderName.BEDROCK,
        label="Bedrock",
        model=BedrockConnection,
        load_credentials=_bedrock_credentials,
        decrypt_error="Failed to decrypt Bedrock credentials",
    ),
}

# Cron response keys
FLEET_RESPONSE_KEYS = {
    ProviderName.OPENAI: "openAI",
    ProviderName.ANTHROPIC: "anthropic",
    ProviderName.VERTEX: "vertex",
    ProviderName.BEDROCK: "bedrock",
}


def build_provider_clients(settings: Settings) -> Dict[ProviderName, ProviderClient]:
    """Default clients; tests pass their own mapping (MockTransport / stub boto3 client)."""
    from spend_ledger.services.anthropic_cost_service import AnthropicCostClient
    from spend_ledger.services.bedrock_cost_service import BedrockCostClient
    from spend_ledger.services.openai_cost_service import OpenAICostClient
    from spend_ledger.services.vertex_cost_service import VertexCostClient

    return {
        ProviderName.OPENAI: OpenAICostClient(settings),
        ProviderName.ANTHROPIC: AnthropicCostClient(settings),
        ProviderName.VERTEX: VertexCostClient(settings),
        ProviderName.BEDROCK: BedrockCostClient(settings),
    }


class SyncOrchestrator:
    """Drives single (workspace, provider) syncs, per-workspace fan-out and batched fleet syncs."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        secret_box: SecretBox,
        clients: Mapping[ProviderName, ProviderClient],
        dispatcher: AlertDispatcher,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._box = secret_box
        self._clients = dict(clients)
        self._dispatcher = dispatcher

    async def sync(
        self,
        workspace_id: UUID,
        provider: ProviderName,
        window_days: Optional[int] = None,
    ) -> Optional[str]:
        """
        Sync một provider cho một workspace. Trả về status mới, hoặc None nếu provider chưa connect.
        Không raise lỗi provider/ledger: tất cả thành DEGRADED.
        """
        spec = PROVIDERS[provider]
        days = window_days or self._settings.sync_window_days
        log = logger.bind(workspace_id=str(workspace_id), provider=provider.value)

        async with self._session_factory() as session:
            conn = (
                await session.execute(select(spec.model).where(spec.model.workspace_id == workspace_id))
            ).scalar_one_or_none()
            if conn is None:
                log.debug("sync.skipped", reason="not_connected")
                return None
            previous_status = conn.status
            try:
                credentials = spec.load_credentials(self._box, conn)
            except DecryptError as e:
                credentials = None
                log.warning("sync.decrypt_failed", error=str(e))

        if credentials is None:
            await self._mark_degraded(spec, workspace_id, spec.decrypt_error, now=None)
            self._dispatcher.after_sync_failure(
                workspace_id, provider.value, previous_status, ConnectionStatus.DEGRADED.value
            )
            return ConnectionStatus.DEGRADED.value

        window = sync_window(days)
        try:
            result = await self._clients[provider].fetch_cost_and_usage(
                credentials, window.start, window.end_exclusive
            )
            counts = await write_sync_result(self._session_factory, spec.model, workspace_id, result, utc_now())
        except Exception as e:
            message = truncate_error(e, f"{spec.label} sync failed")
            log.warning("sync.failed", error=message, error_type=e.__class__.__name__)
            await self._mark_degraded(spec, workspace_id, message, now=utc_now())
            self._dispatcher.after_sync_failure(
                workspace_id, provider.value, previous_status, ConnectionStatus.DEGRADED.value
            )
            return ConnectionStatus.DEGRADED.value

        log.info("sync.completed", window_days=days, **counts)
        self._dispatcher.after_sync_success(workspace_id, provider.value, previous_status)
        return ConnectionStatus.OK.value

    async def _mark_degraded(self, spec: ProviderSpec, workspace_id: UUID, message: str, now) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await connection_state.mark_degraded(session, spec.model, workspace_id, message, now)
        except Exception:
            logger.exception("sync.mark_degraded_failed", workspace_id=str(workspace_id), provider=spec.name.value)

    async def _sync_isolated(self, workspace_id: UUID, provider: ProviderName, window_days: Optional[int]) -> None:
        try:
            await self.sync(workspace_id, provider, window_days)
        except Exception:
            logger.exception("sync.unexpected_error", workspace_id=str(workspace_id), provider=provider.value)

    async def sync_workspace_all(self, workspace_id: UUID, window_days: Optional[int] = None) -> None:
        """Manual "Sync Now": bốn provider chạy song song, lỗi provider này không chặn provider khác."""
        await asyncio.gather(
            *(self._sync_isolated(workspace_id, provider, window_days) for provider in PROVIDERS)
        )

    async def sync_fleet(self, provider: ProviderName, window_days: Optional[int] = None) -> Dict[str, int]:
        """Mọi workspace đã connect provider: batch SYNC_BATCH_SIZE, song song trong batch, tuần tự giữa batch."""
        spec = PROVIDERS[provider]
        async with self._session_factory() as session:
            r = await session.execute(select(spec.model.workspace_id))
            workspace_ids: List[UUID] = list(r.scalars().all())
        batch_size = self._settings.sync_batch_size
        for i in range(0, len(workspace_ids), batch_size):
            batch = workspace_ids[i : i + batch_size]
            await asyncio.gather(*(self._sync_isolated(ws, provider, window_days) for ws in batch))
        logger.info("sync.fleet_completed", provider=provider.value, total=len(workspace_ids))
        return {"total": len(workspace_ids)}

    async def sync_all_fleets(self, window_days: Optional[int] = None) -> Dict[str, Any]:
        """Cron: bốn fleet sync song song. Response shape {success, openAI, anthropic, vertex, bedrock}."""
        providers = list(PROVIDERS)
        results = await asyncio.gather(
            *(self.sync_fleet(provider, window_days) for provider in providers),
            return_exceptions=True,
        )
        out: Dict[str, Any] = {"success": True}
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.error("sync.fleet_failed", provider=provider.value, error=str(result))
                result = {"total": 0}
            out[FLEET_RESPONSE_KEYS[provider]] = result
        return out
