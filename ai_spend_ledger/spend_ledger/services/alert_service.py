"""
Alert evaluation sau mỗi sync: BUDGET_THRESHOLD, COST_SPIKE, CONNECTION_STATUS.
Đánh giá chạy trong task riêng (AlertDispatcher); lỗi chỉ log, không ảnh hưởng kết quả sync.
"""
import asyncio
import math
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import func, select

from spend_ledger.db import SessionFactory
from spend_ledger.logging_config import get_logger
from spend_ledger.models import AlertRule, Budget, DailyCost, Notification, WorkspaceMember
from spend_ledger.models.enums import AlertChannel, AlertType, ConnectionStatus
from spend_ledger.services import connection_state
from spend_ledger.services.webhook_service import send_webhook
from spend_ledger.utils.dates import format_month, month_range, utc_now

logger = get_logger(__name__)

DEFAULT_THRESHOLD_PERCENT = 80.0
DEFAULT_SPIKE_MULTIPLIER = 2.0
SPIKE_LOOKBACK_DAYS = 7

WebhookSender = Callable[..., Awaitable[bool]]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _config_number(config: Any, key: str, default: float) -> float:
    if not isinstance(config, dict):
        return default
    value = config.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def budget_alert(total_cost: float, budget_amount: float, threshold_percent: float) -> Optional[Tuple[str, str]]:
    """(title, body) nếu usage% >= threshold; budget <= 0 thì không alert."""
    if budget_amount <= 0:
        return None
    usage_percent = total_cost / budget_amount * 100
    if usage_percent < threshold_percent:
        return None
    pct = _round_half_up(usage_percent)
    return (
        f"Budget {pct}% used",
        f"Monthly spend ${total_cost:.2f} has reached {pct}% of your ${budget_amount:.2f} budget.",
    )


def spike_stats(daily_totals: List[Tuple[date, float]]) -> Optional[Tuple[float, float]]:
    """
    (today_cost, avg_previous) từ totals theo ngày; ngày cuối cùng là "today".
    Cần >= 2 ngày và avg > 0.
    """
    if len(daily_totals) < 2:
        return None
    ordered = sorted(daily_totals, key=lambda item: item[0])
    today_cost = ordered[-1][1]
    previous = [value for _, value in ordered[:-1]]
    avg_cost = sum(previous) / len(previous)
    if avg_cost <= 0:
        return None
    return today_cost, avg_cost


def spike_alert(today_cost: float, avg_cost: float, multiplier: float) -> Optional[Tuple[str, str]]:
    if today_cost < avg_cost * multiplier:
        return None
    ratio = f"{today_cost / avg_cost:.1f}"
    return (
        f"Cost spike detected ({ratio}x)",
        f"Today's cost ${today_cost:.2f} is {ratio}x the 7-day average of ${avg_cost:.2f}.",
    )


def connection_alert(provider: str, previous: str, new: str) -> Tuple[str, str]:
    return (
        f"{provider} connection {new}",
        f"{provider} connection status changed from {previous} to {new}.",
    )


class AlertEvaluator:
    """Reads the ledger + alert rules, fires matching rules (webhook or in-app notifications)."""

    def __init__(
        self,
        session_factory: SessionFactory,
        webhook_timeout: float = 5.0,
        webhook_sender: WebhookSender = send_webhook,
    ) -> None:
        self._session_factory = session_factory
        self._webhook_timeout = webhook_timeout
        self._send_webhook = webhook_sender

    async def _enabled_rules(self, workspace_id: UUID, alert_type: AlertType) -> List[AlertRule]:
        async with self._session_factory() as session:
            r = await session.execute(
                select(AlertRule).where(
                    AlertRule.workspace_id == workspace_id,
                    AlertRule.type == alert_type.value,
                    AlertRule.enabled.is_(True),
                )
            )
            return list(r.scalars().all())

    async def fire_alert(self, rule: AlertRule, title: str, body: str, alert_type: AlertType) -> None:
        """WEBHOOK: POST payload; IN_APP: một notification cho mỗi member. Lỗi chỉ log."""
        try:
            if rule.channel == AlertChannel.WEBHOOK.value and rule.webhook_url:
                await self._send_webhook(
                    rule.webhook_url,
                    {
                        "alertRuleId": str(rule.id),
                        "workspaceId": str(rule.workspace_id),
                        "type": alert_type.value,
                        "title": title,
                        "body": body,
                        "timestamp": utc_now().isoformat().replace("+00:00", "Z"),
                    },
                    timeout=self._webhook_timeout,
                )
            if rule.channel == AlertChannel.IN_APP.value:
                async with self._session_factory() as session:
                    async with session.begin():
                        r = await session.execute(
                            select(WorkspaceMember.user_id).where(WorkspaceMember.workspace_id == rule.workspace_id)
                        )
                        session.add_all(
                            Notification(
                                user_id=user_id,
                                workspace_id=rule.workspace_id,
                                title=title,
                                body=body,
                                type=alert_type.value,
                            )
                            for user_id in r.scalars().all()
                        )
            logger.info("alerts.fired", rule_id=str(rule.id), type=alert_type.value, channel=rule.channel)
        except Exception as e:
            logger.warning("alerts.fire_failed", rule_id=str(rule.id), error=str(e))

    async def evaluate_budget_alerts(self, workspace_id: UUID, now: Optional[datetime] = None) -> None:
        month = format_month(now or utc_now())
        rng = month_range(month)
        async with self._session_factory() as session:
            budget = (
                await session.execute(
                    select(Budget).where(Budget.workspace_id == workspace_id, Budget.month == month)
                )
            ).scalar_one_or_none()
            if budget is None:
                return
            total = (
                await session.execute(
                    select(func.coalesce(func.sum(DailyCost.value), 0)).where(
                        DailyCost.workspace_id == workspace_id,
                        DailyCost.date >= rng.start.date(),
                        DailyCost.date < rng.end_exclusive.date(),
                    )
                )
            ).scalar_one()
        total_cost = float(total or 0)
        budget_amount = float(budget.amount)
        if budget_amount <= 0:
            return
        for rule in await self._enabled_rules(workspace_id, AlertType.BUDGET_THRESHOLD):
            threshold = _config_number(rule.config, "thresholdPercent", DEFAULT_THRESHOLD_PERCENT)
            message = budget_alert(total_cost, budget_amount, threshold)
            if message:
                await self.fire_alert(rule, *message, AlertType.BUDGET_THRESHOLD)

    async def evaluate_cost_spike_alerts(self, workspace_id: UUID, now: Optional[datetime] = None) -> None:
        today = (now or utc_now()).date()
        since = today - timedelta(days=SPIKE_LOOKBACK_DAYS)
        async with self._session_factory() as session:
            r = await session.execute(
                select(DailyCost.date, func.sum(DailyCost.value))
                .where(
                    DailyCost.workspace_id == workspace_id,
                    DailyCost.date >= since,
                    DailyCost.date <= today,
                )
                .group_by(DailyCost.date)
            )
            totals = [(day, float(value or 0)) for day, value in r.all()]
        stats = spike_stats(totals)
        if stats is None:
            return
        today_cost, avg_cost = stats
        for rule in await self._enabled_rules(workspace_id, AlertType.COST_SPIKE):
            multiplier = _config_number(rule.config, "spikeMultiplier", DEFAULT_SPIKE_MULTIPLIER)
            message = spike_alert(today_cost, avg_cost, multiplier)
            if message:
                await self.fire_alert(rule, *message, AlertType.COST_SPIKE)

    async def evaluate_connection_alerts(self, workspace_id: UUID, provider: str, previous: str, new: str) -> None:
        if not connection_state.is_connection_alert_transition(previous, new):
            return
        title, body = connection_alert(provider, previous, new)
        for rule in await self._enabled_rules(workspace_id, AlertType.CONNECTION_STATUS):
            await self.fire_alert(rule, title, body, AlertType.CONNECTION_STATUS)


class AlertDispatcher:
    """
    Post-commit alert tasks. Detached asyncio tasks giữ strong reference tới khi xong;
    exception chỉ log. drain() chờ hết task (shutdown/tests).
    """

    def __init__(self, evaluator: AlertEvaluator) -> None:
        self._evaluator = evaluator
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _spawn(self, name: str, workspace_id: UUID, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(self._guard(name, workspace_id, coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, name: str, workspace_id: UUID, coro: Awaitable[None]) -> None:
        try:
            await coro
        except Exception as e:
            logger.warning("alerts.evaluation_failed", evaluation=name, workspace_id=str(workspace_id), error=str(e))

    def after_sync_success(self, workspace_id: UUID, provider: str, previous_status: str) -> None:
        self._spawn("budget", workspace_id, self._evaluator.evaluate_budget_alerts(workspace_id))
        self._spawn("cost_spike", workspace_id, self._evaluator.evaluate_cost_spike_alerts(workspace_id))
        if previous_status != ConnectionStatus.OK.value:
            self._spawn(
                "connection",
                workspace_id,
                self._evaluator.evaluate_connection_alerts(workspace_id, provider, previous_status, ConnectionStatus.OK.value),
            )

    def after_sync_failure(self, workspace_id: UUID, provider: str, previous_status: str, new_status: str) -> None:
        if previous_status != new_status:
            self._spawn(
                "connection",
                workspace_id,
                self._evaluator.evaluate_connection_alerts(workspace_id, provider, previous_status, new_status),
            )

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

