"""
Shared fixtures: SQLite ledger on disk (aiosqlite), settings, app with fake provider clients.
Mỗi transaction SQLite mở bằng BEGIN IMMEDIATE để các session song song chờ lock thay vì lỗi.
"""
import base64
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

import spend_ledger.models  # noqa: F401
from spend_ledger.config import load_settings
from spend_ledger.db import Base, build_session_factory
from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.main import create_app
from spend_ledger.models import Workspace, WorkspaceMember
from spend_ledger.models.enums import ProviderName, WorkspaceRole
from spend_ledger.services.alert_service import AlertDispatcher, AlertEvaluator
from spend_ledger.services.provider_types import FetchResult
from spend_ledger.services.sync_service import PROVIDERS, SyncOrchestrator

TEST_ENCRYPTION_KEY = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode("ascii")
TEST_CRON_SECRET = "cron-secret-for-tests-123"

OWNER = "user-owner"
ADMIN = "user-admin"
MEMBER = "user-member"


class FakeProviderClient:
    """Records calls; returns a fixed FetchResult or raises."""

    def __init__(self, result: Optional[FetchResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result or FetchResult()
        self.error = error
        self.calls: List[Any] = []

    async def fetch_cost_and_usage(self, credentials: Any, window_start: datetime, window_end: datetime) -> FetchResult:
        self.calls.append((credentials, window_start, window_end))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    return load_settings(
        APP_ENV="test",
        DATABASE_URL="sqlite+aiosqlite://",
        ENCRYPTION_KEY=TEST_ENCRYPTION_KEY,
        CRON_SECRET=TEST_CRON_SECRET,
        REDIS_URL=None,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def secret_box(settings):
    return SecretBox(settings.encryption_key)


@pytest.fixture
def fake_clients() -> Dict[ProviderName, FakeProviderClient]:
    return {provider: FakeProviderClient() for provider in PROVIDERS}


@pytest.fixture
def dispatcher(session_factory):
    return AlertDispatcher(AlertEvaluator(session_factory))


@pytest.fixture
def orchestrator(settings, session_factory, secret_box, fake_clients, dispatcher):
    return SyncOrchestrator(settings, session_factory, secret_box, fake_clients, dispatcher)


@pytest.fixture
async def workspace_id(session_factory) -> uuid.UUID:
    """Workspace with one owner, one admin, one member."""
    ws_id = uuid.uuid4()
    async with session_factory() as session:
        async with session.begin():
            session.add(Workspace(id=ws_id, display_name="Acme", slug=f"acme-{ws_id.hex[:8]}"))
            await session.flush()
            session.add_all(
                [
                    WorkspaceMember(workspace_id=ws_id, user_id=OWNER, role=WorkspaceRole.OWNER.value),
                    WorkspaceMember(workspace_id=ws_id, user_id=ADMIN, role=WorkspaceRole.ADMIN.value),
                    WorkspaceMember(workspace_id=ws_id, user_id=MEMBER, role=WorkspaceRole.MEMBER.value),
                ]
            )
    return ws_id


@pytest.fixture
def app(settings, session_factory, fake_clients):
    return create_app(settings, session_factory=session_factory, clients=fake_clients)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.dispatcher.drain()


async def fetch_one(session_factory, stmt):
    async with session_factory() as session:
        return (await session.execute(stmt)).scalar_one_or_none()


async def fetch_all(session_factory, stmt):
    async with session_factory() as session:
        return list((await session.execute(stmt)).scalars().all())


async def add_rows(session_factory, *rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)


async def get_connection(session_factory, provider: ProviderName, workspace_id: uuid.UUID):
    model = PROVIDERS[provider].model
    return await fetch_one(session_factory, select(model).where(model.workspace_id == workspace_id))
