# Request context: correlation id (X-Correlation-ID hoặc tạo mới), workspace id, path; log một dòng mỗi request.
import time
import uuid
from typing import Callable

import structlog.contextvars
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from spend_ledger.logging_config import get_logger

HEADER_CORRELATION_ID = "X-Correlation-ID"

logger = get_logger(__name__)


def _workspace_from_request(request: Request) -> str:
    """workspaceId trong query (GET) hoặc header X-Workspace-ID; body không đọc ở đây."""
    value = request.query_params.get("workspaceId") or request.headers.get("X-Workspace-ID", "")
    return value.strip()[:64]


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind correlation_id/workspace_id vào log context; echo correlation id trên response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(HEADER_CORRELATION_ID, "").strip()[:128] or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"correlation_id": correlation_id, "path": request.url.path}
        workspace_id = _workspace_from_request(request)
        if workspace_id:
            context["workspace_id"] = workspace_id
        structlog.contextvars.bind_contextvars(**context)

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[HEADER_CORRELATION_ID] = correlation_id
        logger.info(
            "request.completed",
            method=request.method,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
