# Foundation health: /api/healthz (liveness), /api/readyz (readiness). readyz check DB + Redis (nếu có REDIS_URL).
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.config import Settings
from spend_ledger.db import get_db
from spend_ledger.logging_config import get_logger
from spend_ledger.routers.deps import get_app_settings

router = APIRouter(prefix="/api", tags=["health"])
# /health không prefix, cho load balancer / Docker
lb_router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@lb_router.get("/health")
def health() -> dict[str, str]:
    """Liveness cho load balancer (không chạm DB)."""
    return {"status": "ok"}


@router.get("/healthz")
def healthz() -> dict[str, str]:
    """Liveness: process đang chạy. Luôn 200."""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Readiness: ledger DB và Redis (nếu có) sẵn sàng. 200 OK, 503 nếu lỗi."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("readyz.db_fail", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "db": "fail"},
        )

    redis_state = "skipped"
    if settings.redis_url:
        from redis.asyncio import Redis

        try:
            client = Redis.from_url(settings.redis_url, decode_responses=True)
            await client.ping()
            await client.aclose()
            redis_state = "ok"
        except Exception as e:
            logger.warning("readyz.redis_fail", error=str(e))
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "redis": "fail"},
            )

    return {"status": "ok", "db": "ok", "redis": redis_state}
