"""SyncOrchestrator: status transitions, decrypt and ledger failures, partial-failure isolation, alert isolation, fleet totals."""
import uuid
from decimal import Decimal

import httpx
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import FakeProviderClient, add_rows, fetch_all, get_connection
from spend_ledger.errors import UpstreamError
from spend_ledger.models import (
    AlertRule,
    AnthropicConnection,
    BedrockConnection,
    DailyCost,
    Notification,
    OpenAIConnection,
    VertexAIConnection,
    Workspace,
)
from spend_ledger.models.enums import AlertChannel, AlertType, ConnectionStatus, ProviderName
from spend_ledger.services import ledger_writer
from spend_ledger.services.alert_service import AlertDispatcher, AlertEvaluator
from spend_ledger.services.connect_service import connect_anthropic
from spend_ledger.services.openai_cost_service import OpenAICostClient
from spend_ledger.services.provider_types import CostRow, FetchResult
from spend_ledger.services.sync_service import SyncOrchestrator
from spend_ledger.utils.dates import utc_now


async def _connect_all(session_factory, box, workspace_id) -> None:
    await add_rows(
        session_factory,
        OpenAIConnection(workspace_id=workspace_id, admin_key_enc=box.encrypt("sk-admin-000000000000000")),
        AnthropicConnection(workspace_id=workspace_id, admin_key_enc=box.encrypt("sk-ant-admin-00000000000")),
        VertexAIConnection(
            workspace_id=workspace_id,
            service_account_enc=box.encrypt('{"client_email": "a@b", "private_key": "k"}'),
            project_id="0000-AAAA",
        ),
        BedrockConnection(
            workspace_id=workspace_id,
            access_key_enc=box.encrypt("AKIAEXAMPLE00000"),
            secret_key_enc=box.encrypt("secret-secret-secret"),
        ),
    )


async def test_decrypt_failure_degrades_without_http_call(
    settings, session_factory, secret_box, dispatcher, workspace_id
) -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={})

    await add_rows(session_factory, OpenAIConnection(workspace_id=workspace_id, admin_key_enc="garbage"))
    clients = {ProviderName.OPENAI: OpenAICostClient(settings, transport=httpx.MockTransport(handler))}
    orchestrator = SyncOrchestrator(settings, session_factory, secret_box, clients, dispatcher)

    status = await orchestrator.sync(workspace_id, ProviderName.OPENAI)
    await dispatcher.drain()

    assert status == ConnectionStatus.DEGRADED.value
    assert requests == []
    conn = await get_connection(session_factory, ProviderName.OPENAI, workspace_id)
    assert conn.status == ConnectionStatus.DEGRADED.value
    assert conn.last_error == "Failed to decrypt OpenAI key"
    assert conn.last_sync_at is None


async def test_not_connected_returns_none(orchestrator, workspace_id, fake_clients) -> None:
    assert await orchestrator.sync(workspace_id, ProviderName.ANTHROPIC) is None
    assert fake_clients[ProviderName.ANTHROPIC].calls == []


async def test_vertex_failure_does_not_block_other_providers(
    orchestrator, session_factory, secret_box, fake_clients, dispatcher, workspace_id
) -> None:
    await _connect_all(session_factory, secret_box, workspace_id)
    fake_clients[ProviderName.VERTEX].error = UpstreamError("GCP", 500, "backend exploded")
    fake_clients[ProviderName.BEDROCK].result = FetchResult(
        cost_rows=[CostRow(utc_now().date(), "bedrock:us-east-1", "bedrock:tokens", "usd", Decimal("1.2"))]
    )

    await orchestrator.sync_workspace_all(workspace_id)
    await dispatcher.drain()

    for provider in (ProviderName.OPENAI, ProviderName.ANTHROPIC, ProviderName.BEDROCK):
        conn = await get_connection(session_factory, provider, workspace_id)
        assert conn.status == ConnectionStatus.OK.value, provider
    vertex = await get_connection(session_factory, ProviderName.VERTEX, workspace_id)
    assert vertex.status == ConnectionStatus.DEGRADED.value
    assert vertex.last_error.startswith("GCP request failed (500)")
    assert vertex.last_sync_at is not None
    rows = await fetch_all(session_factory, select(DailyCost).where(DailyCost.workspace_id == workspace_id))
    assert [r.project_id for r in rows] == ["bedrock:us-east-1"]


async def test_status_transitions(orchestrator, session_factory, secret_box, fake_clients, workspace_id) -> None:
    async with session_factory() as session:
        async with session.begin():
            await connect_anthropic(session, secret_box, workspace_id, "sk-ant-admin-00000000000")
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.DISCONNECTED.value

    assert await orchestrator.sync(workspace_id, ProviderName.ANTHROPIC) == ConnectionStatus.OK.value

    fake_clients[ProviderName.ANTHROPIC].error = RuntimeError("boom " + "x" * 600)
    assert await orchestrator.sync(workspace_id, ProviderName.ANTHROPIC) == ConnectionStatus.DEGRADED.value
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.DEGRADED.value
    assert conn.last_error.startswith("boom")
    assert len(conn.last_error) == 400
    synced_at = conn.last_sync_at
    assert synced_at is not None

    # reconnect always resets, whatever the previous state
    async with session_factory() as session:
        async with session.begin():
            await connect_anthropic(session, secret_box, workspace_id, "sk-ant-admin-11111111111")
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.DISCONNECTED.value
    assert conn.last_error is None
    assert conn.last_sync_at == synced_at


async def test_fleet_sync_counts_connected_workspaces(
    settings, session_factory, secret_box, fake_clients, dispatcher, workspace_id
) -> None:
    other = uuid.uuid4()
    await add_rows(session_factory, Workspace(id=other, display_name="Other", slug=f"other-{other.hex[:8]}"))
    for ws in (workspace_id, other):
        await add_rows(session_factory, AnthropicConnection(workspace_id=ws, admin_key_enc=secret_box.encrypt("k" * 24)))
    await add_rows(session_factory, OpenAIConnection(workspace_id=other, admin_key_enc="broken"))

    orchestrator = SyncOrchestrator(settings, session_factory, secret_box, fake_clients, dispatcher)
    result = await orchestrator.sync_all_fleets()
    await dispatcher.drain()

    assert result == {
        "success": True,
        "openAI": {"total": 1},
        "anthropic": {"total": 2},
        "vertex": {"total": 0},
        "bedrock": {"total": 0},
    }
    assert len(fake_clients[ProviderName.ANTHROPIC].calls) == 2
    assert fake_clients[ProviderName.OPENAI].calls == []


async def test_degraded_transition_fires_connection_alert(
    settings, session_factory, secret_box, workspace_id
) -> None:
    await add_rows(
        session_factory,
        BedrockConnection(
            workspace_id=workspace_id,
            access_key_enc=secret_box.encrypt("AKIAEXAMPLE00000"),
            secret_key_enc=secret_box.encrypt("secret-secret-secret"),
            status=ConnectionStatus.OK.value,
        ),
        AlertRule(
            workspace_id=workspace_id,
            type=AlertType.CONNECTION_STATUS.value,
            channel=AlertChannel.IN_APP.value,
            config={},
        ),
    )
    dispatcher = AlertDispatcher(AlertEvaluator(session_factory))
    clients = {ProviderName.BEDROCK: FakeProviderClient(error=UpstreamError("Bedrock", 500, "down"))}
    orchestrator = SyncOrchestrator(settings, session_factory, secret_box, clients, dispatcher)

    await orchestrator.sync(workspace_id, ProviderName.BEDROCK)
    await dispatcher.drain()

    notes = await fetch_all(session_factory, select(Notification).where(Notification.workspace_id == workspace_id))
    assert len(notes) == 3
    assert {n.type for n in notes} == {AlertType.CONNECTION_STATUS.value}
    assert notes[0].title == "bedrock connection DEGRADED"


async def test_ledger_write_failure_degrades(
    orchestrator, session_factory, secret_box, dispatcher, workspace_id, monkeypatch
) -> None:
    await add_rows(session_factory, AnthropicConnection(workspace_id=workspace_id, admin_key_enc=secret_box.encrypt("k" * 24)))

    async def broken_usage_upsert(session, workspace_id, rows):
        raise OperationalError("INSERT INTO daily_usage_completions", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger_writer, "upsert_daily_usage", broken_usage_upsert)
    status = await orchestrator.sync(workspace_id, ProviderName.ANTHROPIC)
    await dispatcher.drain()

    assert status == ConnectionStatus.DEGRADED.value
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.DEGRADED.value
    assert conn.last_error.startswith("Ledger write failed")
    assert conn.last_sync_at is not None


class ExplodingEvaluator:
    def __init__(self) -> None:
        self.calls = []

    async def evaluate_budget_alerts(self, workspace_id, now=None) -> None:
        self.calls.append("budget")
        raise RuntimeError("budget query failed")

    async def evaluate_cost_spike_alerts(self, workspace_id, now=None) -> None:
        self.calls.append("cost_spike")
        raise RuntimeError("spike query failed")

    async def evaluate_connection_alerts(self, workspace_id, provider, previous, new) -> None:
        self.calls.append("connection")
        raise RuntimeError("notification insert failed")


async def test_alert_errors_do_not_change_sync_outcome(
    settings, session_factory, secret_box, fake_clients, workspace_id
) -> None:
    await add_rows(session_factory, AnthropicConnection(workspace_id=workspace_id, admin_key_enc=secret_box.encrypt("k" * 24)))
    evaluator = ExplodingEvaluator()
    dispatcher = AlertDispatcher(evaluator)
    orchestrator = SyncOrchestrator(settings, session_factory, secret_box, fake_clients, dispatcher)

    status = await orchestrator.sync(workspace_id, ProviderName.ANTHROPIC)
    await dispatcher.drain()

    assert status == ConnectionStatus.OK.value
    assert sorted(evaluator.calls) == ["budget", "connection", "cost_spike"]
    assert dispatcher.pending == 0
    conn = await get_connection(session_factory, ProviderName.ANTHROPIC, workspace_id)
    assert conn.status == ConnectionStatus.OK.value
    assert conn.last_error is None
