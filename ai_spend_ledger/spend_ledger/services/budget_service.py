"""Monthly budget upsert per (workspace, month)."""
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.logging_config import get_logger
from spend_ledger.models import Budget

logger = get_logger(__name__)


async def upsert_budget(
    db: AsyncSession,
    workspace_id: UUID,
    month: str,
    amount: Decimal,
    currency: str = "usd",
) -> Budget:
    r = await db.execute(select(Budget).where(Budget.workspace_id == workspace_id, Budget.month == month))
    budget = r.scalar_one_or_none()
    if budget is None:
        budget = Budget(workspace_id=workspace_id, month=month, amount=amount, currency=currency.lower())
        db.add(budget)
    else:
        budget.amount = amount
        budget.currency = currency.lower()
    await db.flush()
    await db.refresh(budget)
    logger.info("budget.saved", workspace_id=str(workspace_id), month=month)
    return budget
