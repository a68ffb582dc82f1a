"""
Scheduler sync: chạy fleet sync định kỳ trong process FastAPI (ngoài cron endpoint).
ENV: SCHEDULER_ENABLED, SCHEDULER_INTERVAL_SECONDS.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from spend_ledger.config import Settings
from spend_ledger.logging_config import get_logger
from spend_ledger.services.sync_service import SyncOrchestrator
from spend_ledger.utils.dates import utc_now

logger = get_logger(__name__)

_scheduler_task: Optional[asyncio.Task[None]] = None
_stop_event: Optional[asyncio.Event] = None
_last_tick_at: Optional[datetime] = None
_last_totals: Optional[Dict[str, int]] = None
_enabled = False


def get_scheduler_status(settings: Settings) -> Dict[str, Any]:
    """Trả về enabled, interval_seconds, last_tick_at, last_totals."""
    return {
        "enabled": _enabled,
        "interval_seconds": settings.scheduler_interval_seconds,
        "last_tick_at": _last_tick_at.isoformat() if _last_tick_at else None,
        "last_totals": _last_totals,
    }


async def _tick(orchestrator: SyncOrchestrator) -> None:
    """Một vòng: sync cả bốn fleet. Lỗi chỉ log, vòng sau chạy tiếp."""
    global _last_tick_at, _last_totals
    _last_tick_at = utc_now()
    logger.info("scheduler.tick", at=_last_tick_at.isoformat())
    try:
        result = await orchestrator.sync_all_fleets()
        _last_totals = {k: v["total"] for k, v in result.items() if isinstance(v, dict)}
        logger.info("scheduler.tick_done", **_last_totals)
    except Exception as e:
        logger.warning("scheduler.tick_error", error=str(e))


async def _scheduler_loop(orchestrator: SyncOrchestrator, interval_seconds: int) -> None:
    assert _stop_event is not None
    while not _stop_event.is_set():
        await _tick(orchestrator)
        try:
            await asyncio.wait_for(_stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass


async def start_scheduler(app: Any) -> None:
    """Khởi động sync worker (gọi từ lifespan startup). SCHEDULER_ENABLED=false thì không làm gì."""
    global _scheduler_task, _stop_event, _enabled
    settings: Settings = app.state.settings
    if _scheduler_task is not None or not settings.scheduler_enabled:
        return
    _enabled = True
    _stop_event = asyncio.Event()
    _scheduler_task = asyncio.create_task(
        _scheduler_loop(app.state.orchestrator, settings.scheduler_interval_seconds)
    )
    logger.info("scheduler.started", interval_seconds=settings.scheduler_interval_seconds)


async def stop_scheduler() -> None:
    """Dừng sync worker."""
    global _scheduler_task, _stop_event, _enabled
    if _scheduler_task is None:
        return
    _enabled = False
    if _stop_event:
        _stop_event.set()
    _scheduler_task.cancel()
    try:
        await _scheduler_task
    except asyncio.CancelledError:
        pass
    _scheduler_task = None
    _stop_event = None
    logger.info("scheduler.stopped")
