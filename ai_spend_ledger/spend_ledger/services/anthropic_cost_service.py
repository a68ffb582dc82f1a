"""
Anthropic admin API client: cost_report + usage_report/messages, bucket_width=1d.
Paging: has_more + next_page, tối đa ANTHROPIC_MAX_PAGES trang mỗi endpoint.
"""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import httpx

from spend_ledger.config import Settings
from spend_ledger.logging_config import get_logger
from spend_ledger.services.provider_http import as_list, build_client, get_json
from spend_ledger.services.provider_types import (
    AnthropicCredentials,
    CostRow,
    FetchResult,
    UsageRow,
    to_decimal,
    to_int,
)
from spend_ledger.utils.dates import parse_utc_timestamp, utc_day

logger = get_logger(__name__)

PROVIDER_LABEL = "Anthropic"
ANTHROPIC_VERSION = "2023-06-01"
COST_PATH = "/organizations/cost_report"
USAGE_PATH = "/organizations/usage_report/messages"
COST_GROUP_BY = ("workspace_id", "description")
USAGE_GROUP_BY = ("workspace_id", "model")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def amount_from_value(value: Any) -> Decimal:
    """Number, numeric string hoặc {"value": ...} wrapper; còn lại -> 0."""
    if isinstance(value, dict):
        return amount_from_value(value.get("value"))
    if _is_number(value) or isinstance(value, str):
        return to_decimal(value)
    return Decimal("0")


def extract_cost_amount(result: Dict[str, Any]) -> Decimal:
    """
    Ordered fallback chain over the cost result shapes:
    1. cost_usd (number)
    2. amount_cents (number) / 100
    3. amount (number | numeric string | {value})
    4. 0
    """
    cost_usd = result.get("cost_usd")
    if _is_number(cost_usd):
        return to_decimal(cost_usd)
    amount_cents = result.get("amount_cents")
    if _is_number(amount_cents):
        return to_decimal(amount_cents) / Decimal(100)
    return amount_from_value(result.get("amount"))


def _bucket_day(bucket: Dict[str, Any]):
    starting_at = bucket.get("starting_at")
    if not starting_at or not isinstance(starting_at, str):
        return None
    return utc_day(parse_utc_timestamp(starting_at))


def cost_rows_from_buckets(buckets: List[Dict[str, Any]]) -> List[CostRow]:
    rows: List[CostRow] = []
    for bucket in buckets:
        day = _bucket_day(bucket)
        if day is None:
            continue
        for result in as_list(bucket.get("results")):
            rows.append(
                CostRow(
                    date=day,
                    project_id=f"anthropic:{result.get('workspace_id') or ''}",
                    line_item=f"anthropic:{result.get('description') or 'usage'}",
                    currency=str(result.get("currency") or "usd").lower(),
                    value=extract_cost_amount(result),
                )
            )
    return rows


def usage_rows_from_buckets(buckets: List[Dict[str, Any]]) -> List[UsageRow]:
    rows: List[UsageRow] = []
    for bucket in buckets:
        day = _bucket_day(bucket)
        if day is None:
            continue
        for result in as_list(bucket.get("results")):
            input_tokens = to_int(result.get("input_tokens"))
            output_tokens = to_int(result.get("output_tokens"))
            cache_creation = to_int(result.get("cache_creation_input_tokens"))
            cache_read = to_int(result.get("cache_read_input_tokens"))
            rows.append(
                UsageRow(
                    date=day,
                    project_id=f"anthropic:{result.get('workspace_id') or ''}",
                    user_id="",
                    api_key_id="",
                    model=f"anthropic:{result.get('model') or 'unknown'}",
                    batch="",
                    service_tier="",
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens + cache_creation + cache_read,
                )
            )
    return rows


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AnthropicCostClient:
    """x-api-key client over the Anthropic admin reporting APIs."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._base = settings.anthropic_api_base.rstrip("/")
        self._timeout = settings.provider_http_timeout_seconds
        self._max_pages = settings.anthropic_max_pages
        self._transport = transport

    async def fetch_cost_and_usage(
        self,
        credentials: AnthropicCredentials,
        window_start: datetime,
        window_end: datetime,
    ) -> FetchResult:
        headers = {
            "x-api-key": credentials.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        start_at, end_at = _iso(window_start), _iso(window_end)
        async with build_client(self._timeout, self._transport) as client:
            cost_buckets, usage_buckets = await asyncio.gather(
                self._paginate(client, COST_PATH, COST_GROUP_BY, start_at, end_at, headers),
                self._paginate(client, USAGE_PATH, USAGE_GROUP_BY, start_at, end_at, headers),
            )
        return FetchResult(
            cost_rows=cost_rows_from_buckets(cost_buckets),
            usage_rows=usage_rows_from_buckets(usage_buckets),
        )

    async def _paginate(
        self,
        client: httpx.AsyncClient,
        path: str,
        group_by: Tuple[str, ...],
        start_at: str,
        end_at: str,
        headers: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        buckets: List[Dict[str, Any]] = []
        page: Optional[str] = None
        for _ in range(self._max_pages):
            params: List[Tuple[str, str]] = [
                ("starting_at", start_at),
                ("ending_at", end_at),
                ("bucket_width", "1d"),
            ]
            params.extend(("group_by[]", key) for key in group_by)
            if page:
                params.append(("page", page))
            data = await get_json(client, PROVIDER_LABEL, self._base + path, params=params, headers=headers)
            buckets.extend(as_list(data.get("data")))
            next_page = data.get("next_page") if data.get("has_more") else None
            page = str(next_page) if next_page else None
            if not page:
                return buckets
        logger.warning("anthropic.page_cap_reached", path=path, max_pages=self._max_pages)
        return buckets
