"""API routers."""
from spend_ledger.routers.alerts_router import router as alerts_router
from spend_ledger.routers.analytics_router import router as analytics_router
from spend_ledger.routers.api_health_router import lb_router as health_router
from spend_ledger.routers.api_health_router import router as api_health_router
from spend_ledger.routers.connections_router import router as connections_router
from spend_ledger.routers.ledger_router import router as ledger_router
from spend_ledger.routers.notifications_router import router as notifications_router
from spend_ledger.routers.scheduler_router import router as scheduler_router
from spend_ledger.routers.sync_router import router as sync_router

__all__ = [
    "alerts_router",
    "analytics_router",
    "api_health_router",
    "connections_router",
    "health_router",
    "ledger_router",
    "notifications_router",
    "scheduler_router",
    "sync_router",
]
