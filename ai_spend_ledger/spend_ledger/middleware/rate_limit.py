"""
Rate limit middleware: Redis sliding window, key theo X-Workspace-ID hoặc X-User-ID.
Default 60 req/min. Không có REDIS_URL thì bỏ qua; Redis lỗi thì cho qua (fail open).
"""
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from spend_ledger.config import Settings
from spend_ledger.logging_config import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "rl:"
WINDOW_SECONDS = 60
# cron và health không bị giới hạn
EXEMPT_PATHS = ("/cron/sync", "/health", "/api/healthz", "/api/readyz")


def _rate_limit_key(request: Request) -> Optional[str]:
    workspace = request.headers.get("X-Workspace-ID", "").strip()
    if workspace:
        return f"ws:{workspace[:64]}"
    user = request.headers.get("X-User-ID", "").strip()
    if user:
        return f"user:{user[:64]}"
    return None


async def _check_sliding_window(redis_url: str, key: str, limit: int) -> bool:
    """
    Sliding window: ZADD now, ZREMRANGEBYSCORE -inf (now-60), ZCARD.
    True nếu request còn trong limit.
    """
    now = time.time()
    rkey = REDIS_KEY_PREFIX + key
    try:
        client = Redis.from_url(redis_url, decode_responses=True)
        try:
            pipe = client.pipeline()
            pipe.zadd(rkey, {str(uuid.uuid4()): now})
            pipe.zremrangebyscore(rkey, "-inf", now - WINDOW_SECONDS)
            pipe.zcard(rkey)
            pipe.expire(rkey, WINDOW_SECONDS + 10)
            results = await pipe.execute()
            return results[2] <= limit
        finally:
            await client.aclose()
    except (RedisError, OSError) as e:
        logger.warning("rate_limit.redis_error", key=key, error=str(e))
        return True


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-workspace / per-user request limit."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings: Settings = request.app.state.settings
        if not settings.redis_url or request.url.path in EXEMPT_PATHS:
            return await call_next(request)
        key = _rate_limit_key(request)
        if not key:
            return await call_next(request)
        limit = settings.rate_limit_per_min
        if not await _check_sliding_window(settings.redis_url, key, limit):
            logger.info("rate_limit.exceeded", key=key, limit=limit)
            return Response(
                content='{"detail":"Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
            )
        return await call_next(request)
