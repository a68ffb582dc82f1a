"""CRUD cho alert rules và in-app notifications."""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.logging_config import get_logger
from spend_ledger.models import AlertRule, Notification
from spend_ledger.models.enums import AlertChannel

logger = get_logger(__name__)


class AlertRuleValidationError(ValueError):
    """Rule state after a change is invalid (WEBHOOK without URL)."""


async def list_rules(db: AsyncSession, workspace_id: UUID) -> List[AlertRule]:
    r = await db.execute(
        select(AlertRule).where(AlertRule.workspace_id == workspace_id).order_by(AlertRule.created_at.desc())
    )
    return list(r.scalars().all())


async def get_rule(db: AsyncSession, rule_id: UUID) -> Optional[AlertRule]:
    r = await db.execute(select(AlertRule).where(AlertRule.id == rule_id))
    return r.scalar_one_or_none()


async def create_rule(
    db: AsyncSession,
    workspace_id: UUID,
    alert_type: str,
    channel: str,
    config: Dict[str, Any],
    webhook_url: Optional[str],
    enabled: bool,
    created_by: str,
) -> AlertRule:
    rule = AlertRule(
        workspace_id=workspace_id,
        type=alert_type,
        channel=channel,
        config=config,
        webhook_url=webhook_url,
        enabled=enabled,
        created_by=created_by,
    )
    db.add(rule)
    await db.flush()
    await db.refresh(rule)
    logger.info("alert_rule.created", workspace_id=str(workspace_id), rule_id=str(rule.id), type=alert_type)
    return rule


async def update_rule(db: AsyncSession, rule: AlertRule, changes: Dict[str, Any]) -> AlertRule:
    """changes chỉ chứa field client gửi (exclude_unset)."""
    for key, value in changes.items():
        setattr(rule, key, value)
    if rule.channel == AlertChannel.WEBHOOK.value and not (rule.webhook_url or "").strip():
        raise AlertRuleValidationError("webhookUrl is required for WEBHOOK channel")
    await db.flush()
    await db.refresh(rule)
    logger.info("alert_rule.updated", rule_id=str(rule.id), fields=sorted(changes))
    return rule


async def delete_rule(db: AsyncSession, rule: AlertRule) -> None:
    await db.delete(rule)
    await db.flush()
    logger.info("alert_rule.deleted", rule_id=str(rule.id))


async def list_notifications(
    db: AsyncSession,
    user_id: str,
    workspace_id: Optional[UUID] = None,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if workspace_id is not None:
        q = q.where(Notification.workspace_id == workspace_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    r = await db.execute(q.order_by(Notification.created_at.desc()).limit(limit))
    return list(r.scalars().all())


async def mark_all_read(db: AsyncSession, user_id: str, workspace_id: Optional[UUID] = None) -> int:
    stmt = update(Notification).where(Notification.user_id == user_id, Notification.read.is_(False))
    if workspace_id is not None:
        stmt = stmt.where(Notification.workspace_id == workspace_id)
    r = await db.execute(stmt.values(read=True))
    return r.rowcount or 0


async def mark_read(db: AsyncSession, user_id: str, notification_id: UUID) -> bool:
    """False nếu notification không tồn tại hoặc thuộc user khác."""
    r = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    return bool(r.rowcount)
