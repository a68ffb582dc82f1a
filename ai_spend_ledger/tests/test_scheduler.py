import asyncio
from types import SimpleNamespace

from spend_ledger.services import scheduler_service


class _CountingOrchestrator:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail

    async def sync_all_fleets(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("db down")
        return {"success": True, "openAI": {"total": 0}}


async def test_scheduler_ticks_and_stops(settings) -> None:
    enabled = settings.model_copy(update={"scheduler_enabled": True, "scheduler_interval_seconds": 3600})
    orchestrator = _CountingOrchestrator()
    app = SimpleNamespace(state=SimpleNamespace(settings=enabled, orchestrator=orchestrator))

    await scheduler_service.start_scheduler(app)
    try:
        for _ in range(50):
            if orchestrator.calls:
                break
            await asyncio.sleep(0.01)
        status = scheduler_service.get_scheduler_status(enabled)
        assert status["enabled"] is True
        assert status["last_tick_at"] is not None
    finally:
        await scheduler_service.stop_scheduler()

    assert orchestrator.calls == 1
    status = scheduler_service.get_scheduler_status(enabled)
    assert status["enabled"] is False
    assert status["last_totals"] == {"openAI": 0}


async def test_scheduler_disabled_is_noop(settings) -> None:
    orchestrator = _CountingOrchestrator()
    app = SimpleNamespace(state=SimpleNamespace(settings=settings, orchestrator=orchestrator))
    await scheduler_service.start_scheduler(app)
    await asyncio.sleep(0)
    assert orchestrator.calls == 0
    await scheduler_service.stop_scheduler()


async def test_tick_error_is_logged_not_raised() -> None:
    orchestrator = _CountingOrchestrator(fail=True)
    await scheduler_service._tick(orchestrator)
    assert orchestrator.calls == 1
