"""FastAPI application entrypoint: uvicorn --factory spend_ledger.main:create_app."""
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI

from spend_ledger import __version__
from spend_ledger.config import Settings, load_settings
from spend_ledger.db import SessionFactory, build_engine, build_session_factory
from spend_ledger.infrastructure.crypto import SecretBox
from spend_ledger.logging_config import configure_logging, get_logger
from spend_ledger.middleware.correlation_id import CorrelationIdMiddleware
from spend_ledger.middleware.rate_limit import RateLimitMiddleware
from spend_ledger.models.enums import ProviderName
from spend_ledger.routers import (
    alerts_router,
    analytics_router,
    api_health_router,
    connections_router,
    health_router,
    ledger_router,
    notifications_router,
    scheduler_router,
    sync_router,
)
from spend_ledger.services.alert_service import AlertDispatcher, AlertEvaluator
from spend_ledger.services.provider_types import ProviderClient
from spend_ledger.services.scheduler_service import start_scheduler, stop_scheduler
from spend_ledger.services.sync_service import SyncOrchestrator, build_provider_clients

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: logging, scheduler worker, drain alert tasks, dispose engine."""
    configure_logging(app.state.settings)
    logger.info("app_started", version=__version__, env=app.state.settings.app_env)
    await start_scheduler(app)
    yield
    await stop_scheduler()
    await app.state.dispatcher.drain()
    if app.state.engine is not None:
        await app.state.engine.dispose()
    logger.info("app_shutdown")


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    clients: Optional[Mapping[ProviderName, ProviderClient]] = None,
) -> FastAPI:
    """
    Build the app with explicitly constructed collaborators.
    Settings load một lần ở đây; tests truyền session_factory (SQLite) và clients giả.
    """
    settings = settings or load_settings()
    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)

    evaluator = AlertEvaluator(session_factory, webhook_timeout=settings.webhook_timeout_seconds)
    dispatcher = AlertDispatcher(evaluator)
    secret_box = SecretBox(settings.encryption_key)
    orchestrator = SyncOrchestrator(
        settings,
        session_factory,
        secret_box,
        clients if clients is not None else build_provider_clients(settings),
        dispatcher,
    )

    app = FastAPI(
        title="AI Spend Ledger",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.secret_box = secret_box
    app.state.dispatcher = dispatcher
    app.state.orchestrator = orchestrator

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health_router)
    app.include_router(api_health_router)
    app.include_router(connections_router)
    app.include_router(sync_router)
    app.include_router(ledger_router)
    app.include_router(analytics_router)
    app.include_router(alerts_router)
    app.include_router(notifications_router)
    app.include_router(scheduler_router)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root endpoint: app name and version."""
        return {"name": "ai_spend_ledger", "version": __version__}

    return app
