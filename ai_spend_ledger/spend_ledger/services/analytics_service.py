"""
Read-only queries over the ledger: summary, trend, breakdown, per-key tokens, ratios, comparison.
Lọc theo tháng luôn dùng [đầu tháng, đầu tháng sau).
"""
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from spend_ledger.errors import remediation_for_error
from spend_ledger.models import Budget, DailyCost, DailyUsageCompletions
from spend_ledger.models.enums import ConnectionStatus, ProviderName
from spend_ledger.services.sync_service import PROVIDERS
from spend_ledger.utils.dates import format_month, month_range, previous_month, utc_now

BREAKDOWN_DIMENSIONS = ("project", "line_item", "model")


def _month_dates(month: str):
    rng = month_range(month)
    return rng.start.date(), rng.end_exclusive.date()


def _percent(value: float, total: float) -> str:
    return f"{value / total * 100:.1f}" if total > 0 else "0"


def _delta_percent(current: float, previous: float) -> Optional[str]:
    return f"{(current - previous) / previous * 100:.1f}" if previous > 0 else None


async def _sum_cost(db: AsyncSession, workspace_id: UUID, start: date, end_exclusive: date) -> float:
    r = await db.execute(
        select(func.coalesce(func.sum(DailyCost.value), 0)).where(
            DailyCost.workspace_id == workspace_id,
            DailyCost.date >= start,
            DailyCost.date < end_exclusive,
        )
    )
    return float(r.scalar_one() or 0)


async def _sum_tokens(db: AsyncSession, workspace_id: UUID, start: date, end_exclusive: date) -> int:
    r = await db.execute(
        select(func.coalesce(func.sum(DailyUsageCompletions.total_tokens), 0)).where(
            DailyUsageCompletions.workspace_id == workspace_id,
            DailyUsageCompletions.date >= start,
            DailyUsageCompletions.date < end_exclusive,
        )
    )
    return int(r.scalar_one() or 0)


async def connection_overview(db: AsyncSession, workspace_id: UUID) -> Dict[str, Dict[str, Any]]:
    """Per provider: configured/status/lastSyncAt/lastError/remediation. Không trả credentials."""
    out: Dict[str, Dict[str, Any]] = {}
    for name, spec in PROVIDERS.items():
        conn = (
            await db.execute(select(spec.model).where(spec.model.workspace_id == workspace_id))
        ).scalar_one_or_none()
        if conn is None:
            out[name.value] = {
                "configured": False,
                "status": ConnectionStatus.DISCONNECTED.value,
                "lastSyncAt": None,
                "lastError": None,
                "remediation": None,
            }
            continue
        item: Dict[str, Any] = {
            "configured": True,
            "status": conn.status,
            "lastSyncAt": conn.last_sync_at,
            "lastError": conn.last_error,
            "remediation": remediation_for_error(conn.last_error),
        }
        if name == ProviderName.OPENAI:
            item["mode"] = conn.mode
            item["credit"] = (
                {
                    "totalGranted": float(conn.credit_total_granted or 0),
                    "totalUsed": float(conn.credit_total_used or 0),
                    "totalAvailable": float(conn.credit_total_available or 0),
                    "currency": conn.credit_currency or "usd",
                }
                if conn.credit_total_used is not None
                else None
            )
        elif name == ProviderName.VERTEX:
            item["projectId"] = conn.project_id
            item["region"] = conn.region
        elif name == ProviderName.BEDROCK:
            item["region"] = conn.region
        out[name.value] = item
    return out


async def get_summary(db: AsyncSession, workspace_id: UUID, month: str) -> Dict[str, Any]:
    start, end_exclusive = _month_dates(month)
    today = utc_now().date()
    month_cost = await _sum_cost(db, workspace_id, start, end_exclusive)
    today_cost = await _sum_cost(db, workspace_id, today, today + timedelta(days=1))
    budget = (
        await db.execute(select(Budget).where(Budget.workspace_id == workspace_id, Budget.month == month))
    ).scalar_one_or_none()
    first_currency = (
        await db.execute(
            select(DailyCost.currency)
            .where(DailyCost.workspace_id == workspace_id, DailyCost.date >= start, DailyCost.date < end_exclusive)
            .limit(1)
        )
    ).scalar_one_or_none()
    month_budget = float(budget.amount) if budget is not None else None
    connections = await connection_overview(db, workspace_id)
    openai = connections[ProviderName.OPENAI.value]
    return {
        "month": format_month(start),
        "monthCost": month_cost,
        "todayCost": today_cost,
        "monthBudget": month_budget,
        "remaining": None if month_budget is None else max(0.0, month_budget - month_cost),
        "currency": ((budget.currency if budget else None) or first_currency or "usd").lower(),
        "lastSyncAt": openai["lastSyncAt"],
        "status": openai["status"],
        "lastError": openai["lastError"],
        "connections": connections,
    }


async def get_trend(db: AsyncSession, workspace_id: UUID, from_date: date, to_date: date) -> Dict[str, Any]:
    """Tổng theo ngày trong [from, to] (cả hai đầu)."""
    r = await db.execute(
        select(DailyCost.date, func.sum(DailyCost.value), func.min(DailyCost.currency))
        .where(DailyCost.workspace_id == workspace_id, DailyCost.date >= from_date, DailyCost.date <= to_date)
        .group_by(DailyCost.date)
        .order_by(DailyCost.date)
    )
    rows = r.all()
    return {
        "trend": [{"date": day.isoformat(), "value": float(value or 0)} for day, value, _ in rows],
        "currency": rows[0][2] if rows else "usd",
    }


async def get_breakdown(db: AsyncSession, workspace_id: UUID, month: str, by: str) -> Dict[str, Any]:
    """by=project|line_item theo cost; by=model theo total tokens (string, có thể > 2^53)."""
    start, end_exclusive = _month_dates(month)
    if by == "model":
        r = await db.execute(
            select(DailyUsageCompletions.model, func.sum(DailyUsageCompletions.total_tokens))
            .where(
                DailyUsageCompletions.workspace_id == workspace_id,
                DailyUsageCompletions.date >= start,
                DailyUsageCompletions.date < end_exclusive,
            )
            .group_by(DailyUsageCompletions.model)
        )
        totals: Dict[str, int] = {}
        for model, tokens in r.all():
            key = model or "unscoped"
            totals[key] = totals.get(key, 0) + int(tokens or 0)
        items = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
        return {
            "by": by,
            "metric": "total_tokens",
            "items": [{"key": key, "totalTokens": str(tokens)} for key, tokens in items],
        }

    column = DailyCost.project_id if by == "project" else DailyCost.line_item
    r = await db.execute(
        select(column, func.sum(DailyCost.value), func.min(DailyCost.currency))
        .where(DailyCost.workspace_id == workspace_id, DailyCost.date >= start, DailyCost.date < end_exclusive)
        .group_by(column)
    )
    rows = r.all()
    costs: Dict[str, float] = {}
    for key, value, _ in rows:
        name = key or "unscoped"
        costs[name] = costs.get(name, 0.0) + float(value or 0)
    return {
        "by": by,
        "metric": "cost",
        "currency": rows[0][2] if rows else "usd",
        "items": [{"key": k, "value": v} for k, v in sorted(costs.items(), key=lambda kv: kv[1], reverse=True)],
    }


async def get_per_key_analytics(
    db: AsyncSession,
    workspace_id: UUID,
    from_date: date,
    to_date: date,
) -> List[Dict[str, str]]:
    total = func.sum(DailyUsageCompletions.total_tokens)
    r = await db.execute(
        select(
            DailyUsageCompletions.api_key_id,
            func.sum(DailyUsageCompletions.input_tokens),
            func.sum(DailyUsageCompletions.output_tokens),
            total,
        )
        .where(
            DailyUsageCompletions.workspace_id == workspace_id,
            DailyUsageCompletions.date >= from_date,
            DailyUsageCompletions.date <= to_date,
        )
        .group_by(DailyUsageCompletions.api_key_id)
        .order_by(total.desc())
    )
    return [
        {
            "apiKeyId": api_key_id or "unknown",
            "inputTokens": str(int(inp or 0)),
            "outputTokens": str(int(out or 0)),
            "totalTokens": str(int(tot or 0)),
        }
        for api_key_id, inp, out, tot in r.all()
    ]


async def get_cost_ratios(db: AsyncSession, workspace_id: UUID, month: str, group_by: str) -> List[Dict[str, Any]]:
    """group_by=model: tỷ lệ token; group_by=project: tỷ lệ cost. percent 1 chữ số thập phân."""
    start, end_exclusive = _month_dates(month)
    if group_by == "model":
        total_col = func.sum(DailyUsageCompletions.total_tokens)
        r = await db.execute(
            select(DailyUsageCompletions.model, total_col)
            .where(
                DailyUsageCompletions.workspace_id == workspace_id,
                DailyUsageCompletions.date >= start,
                DailyUsageCompletions.date < end_exclusive,
            )
            .group_by(DailyUsageCompletions.model)
            .order_by(total_col.desc())
        )
        rows = [(key or "unknown", float(value or 0)) for key, value in r.all()]
    else:
        total_col = func.sum(DailyCost.value)
        r = await db.execute(
            select(DailyCost.project_id, total_col)
            .where(DailyCost.workspace_id == workspace_id, DailyCost.date >= start, DailyCost.date < end_exclusive)
            .group_by(DailyCost.project_id)
            .order_by(total_col.desc())
        )
        rows = [(key or "unscoped", float(value or 0)) for key, value in r.all()]
    total = sum(value for _, value in rows)
    return [{"key": key, "value": value, "percent": _percent(value, total)} for key, value in rows]


async def get_comparison(db: AsyncSession, workspace_id: UUID, period: str, month: str) -> Dict[str, Any]:
    """period=month: tháng trước; period=week: 7 ngày ngay trước đầu tháng."""
    cur_start, cur_end = _month_dates(month)
    if period == "month":
        prev_label = previous_month(month)
        prev_start, prev_end = _month_dates(prev_label)
        cur_label = month
    else:
        prev_start, prev_end = cur_start - timedelta(days=7), cur_start
        prev_label = f"{prev_start.isoformat()} to {prev_end.isoformat()}"
        cur_label = f"{cur_start.isoformat()} to {cur_end.isoformat()}"

    cur_cost = await _sum_cost(db, workspace_id, cur_start, cur_end)
    prev_cost = await _sum_cost(db, workspace_id, prev_start, prev_end)
    cur_tokens = await _sum_tokens(db, workspace_id, cur_start, cur_end)
    prev_tokens = await _sum_tokens(db, workspace_id, prev_start, prev_end)
    return {
        "current": {"cost": cur_cost, "tokens": cur_tokens, "period": cur_label},
        "previous": {"cost": prev_cost, "tokens": prev_tokens, "period": prev_label},
        "delta": {
            "costPercent": _delta_percent(cur_cost, prev_cost),
            "tokensPercent": _delta_percent(float(cur_tokens), float(prev_tokens)),
        },
    }
