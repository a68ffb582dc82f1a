"""
Ledger writer: upsert cost/usage rows theo natural key, một transaction cho mỗi sync.
INSERT .. ON CONFLICT DO UPDATE (PostgreSQL; SQLite trong tests). Last-sync-wins, không cộng dồn;
riêng OpenAI personal mode cộng delta vào row __personal__ trước khi upsert.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.db import SessionFactory
from spend_ledger.errors import LedgerWriteError
from spend_ledger.logging_config import get_logger
from spend_ledger.models import DailyCost, DailyUsageCompletions, OpenAIConnection
from spend_ledger.models.ledger import DAILY_COST_KEY, DAILY_USAGE_KEY, PERSONAL_LINE_ITEM, PERSONAL_PROJECT_ID
from spend_ledger.services import connection_state
from spend_ledger.services.connection_state import ConnectionModel
from spend_ledger.services.provider_types import CostRow, CreditSnapshot, FetchResult, UsageRow

logger = get_logger(__name__)

CHUNK_SIZE = 500


def _dialect_insert(session: AsyncSession, table):
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise LedgerWriteError(f"Unsupported database dialect for upsert: {name}")


def _chunks(items: Sequence[Dict[str, Any]], size: int = CHUNK_SIZE) -> Iterable[Sequence[Dict[str, Any]]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def cost_values(workspace_id: UUID, rows: Iterable[CostRow]) -> List[Dict[str, Any]]:
    """Row dicts keyed by natural key; duplicate keys in one batch collapse last-wins."""
    by_key: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
    for row in rows:
        values = {
            "workspace_id": workspace_id,
            "date": row.date,
            "project_id": row.project_id,
            "line_item": row.line_item,
            "currency": row.currency,
            "value": row.value,
        }
        by_key[tuple(values[k] for k in DAILY_COST_KEY)] = values
    return list(by_key.values())


def usage_values(workspace_id: UUID, rows: Iterable[UsageRow]) -> List[Dict[str, Any]]:
    by_key: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
    for row in rows:
        values = {
            "workspace_id": workspace_id,
            "date": row.date,
            "project_id": row.project_id,
            "user_id": row.user_id,
            "api_key_id": row.api_key_id,
            "model": row.model,
            "batch": row.batch,
            "service_tier": row.service_tier,
            "input_tokens": row.input_tokens,
            "output_tokens": row.output_tokens,
            "total_tokens": row.total_tokens,
        }
        by_key[tuple(values[k] for k in DAILY_USAGE_KEY)] = values
    return list(by_key.values())


async def upsert_daily_costs(session: AsyncSession, workspace_id: UUID, rows: Iterable[CostRow]) -> int:
    values = cost_values(workspace_id, rows)
    for chunk in _chunks(values):
        stmt = _dialect_insert(session, DailyCost).values([{"id": uuid.uuid4(), **v} for v in chunk])
        stmt = stmt.on_conflict_do_update(
            index_elements=list(DAILY_COST_KEY),
            set_={
                "currency": stmt.excluded.currency,
                "value": stmt.excluded.value,
                "updated_at": func.now(),
            },
        )
        await session.execute(stmt)
    return len(values)


async def upsert_daily_usage(session: AsyncSession, workspace_id: UUID, rows: Iterable[UsageRow]) -> int:
    values = usage_values(workspace_id, rows)
    for chunk in _chunks(values):
        stmt = _dialect_insert(session, DailyUsageCompletions).values([{"id": uuid.uuid4(), **v} for v in chunk])
        stmt = stmt.on_conflict_do_update(
            index_elements=list(DAILY_USAGE_KEY),
            set_={
                "input_tokens": stmt.excluded.input_tokens,
                "output_tokens": stmt.excluded.output_tokens,
                "total_tokens": stmt.excluded.total_tokens,
                "updated_at": func.now(),
            },
        )
        await session.execute(stmt)
    return len(values)


def credit_delta(previous_used: Optional[Decimal], current_used: Decimal) -> Decimal:
    """
    Personal mode: chi phí suy ra từ total_used tích lũy.
    Lần đầu (chưa có previous) là baseline -> 0; sau đó max(0, current - previous).
    """
    if previous_used is None:
        return Decimal("0")
    return max(Decimal("0"), Decimal(current_used) - Decimal(previous_used))


def personal_cost_row(day: date, existing_value: Optional[Decimal], delta: Decimal, currency: str) -> CostRow:
    """Same-day deltas accumulate into one __personal__/credit_estimate row."""
    return CostRow(
        date=day,
        project_id=PERSONAL_PROJECT_ID,
        line_item=PERSONAL_LINE_ITEM,
        currency=currency,
        value=Decimal(existing_value or 0) + delta,
    )


async def _personal_row_for_snapshot(
    session: AsyncSession,
    workspace_id: UUID,
    snapshot: CreditSnapshot,
    day: date,
) -> Tuple[CostRow, Decimal]:
    r = await session.execute(
        select(OpenAIConnection.credit_total_used).where(OpenAIConnection.workspace_id == workspace_id)
    )
    previous_used = r.scalar_one_or_none()
    r = await session.execute(
        select(DailyCost.value).where(
            DailyCost.workspace_id == workspace_id,
            DailyCost.date == day,
            DailyCost.project_id == PERSONAL_PROJECT_ID,
            DailyCost.line_item == PERSONAL_LINE_ITEM,
        )
    )
    existing = r.scalar_one_or_none()
    delta = credit_delta(previous_used, snapshot.total_used)
    return personal_cost_row(day, existing, delta, snapshot.currency), delta


async def write_sync_result(
    session_factory: SessionFactory,
    model: ConnectionModel,
    workspace_id: UUID,
    result: FetchResult,
    now: datetime,
) -> Dict[str, int]:
    """
    Một transaction: upsert cost + usage rows, (personal) credit snapshot, connection -> OK.
    Lỗi SQLAlchemy -> LedgerWriteError; không row nào được commit.
    """
    try:
        async with session_factory() as session:
            async with session.begin():
                cost_rows = list(result.cost_rows)
                extra: Dict[str, Any] = {}
                if result.credit is not None:
                    row, delta = await _personal_row_for_snapshot(session, workspace_id, result.credit, now.date())
                    cost_rows.append(row)
                    extra = {
                        "credit_total_granted": result.credit.total_granted,
                        "credit_total_used": result.credit.total_used,
                        "credit_total_available": result.credit.total_available,
                        "credit_currency": result.credit.currency,
                    }
                    logger.info(
                        "ledger.personal_credit",
                        workspace_id=str(workspace_id),
                        total_used=str(result.credit.total_used),
                        delta=str(delta),
                    )
                costs = await upsert_daily_costs(session, workspace_id, cost_rows)
                usage = await upsert_daily_usage(session, workspace_id, result.usage_rows)
                await connection_state.mark_ok(session, model, workspace_id, now, **extra)
    except SQLAlchemyError as e:
        raise LedgerWriteError(f"Ledger write failed: {e.__class__.__name__}") from e
    return {"cost_rows": costs, "usage_rows": usage}


async def purge_personal_rows(session: AsyncSession, workspace_id: UUID) -> int:
    """Đổi mode OpenAI: xóa row __personal__/credit_estimate (caller giữ transaction)."""
    r = await session.execute(
        delete(DailyCost).where(
            DailyCost.workspace_id == workspace_id,
            DailyCost.project_id == PERSONAL_PROJECT_ID,
            DailyCost.line_item == PERSONAL_LINE_ITEM,
        )
    )
    return r.rowcount or 0
