"""
OpenAI billing client.
ORGANIZATION: /organization/costs + /organization/usage/completions (cursor next_page).
PERSONAL: /dashboard/billing/credit_grants (cumulative credit, delta tính ở orchestrator).
"""
import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from spend_ledger.config import Settings
from spend_ledger.logging_config import get_logger
from spend_ledger.models.enums import OpenAIMode
from spend_ledger.services.provider_http import as_dict, as_list, build_client, get_json
from spend_ledger.services.provider_types import (
    CostRow,
    CreditSnapshot,
    FetchResult,
    OpenAICredentials,
    UsageRow,
    to_decimal,
    to_int,
)
from spend_ledger.utils.dates import from_unix_seconds, to_unix_seconds, utc_day

logger = get_logger(__name__)

PROVIDER_LABEL = "OpenAI"
COSTS_PATH = "/organization/costs"
USAGE_PATH = "/organization/usage/completions"
CREDIT_GRANTS_PATH = "/dashboard/billing/credit_grants"
COST_GROUP_BY = ("project_id", "line_item")
USAGE_GROUP_BY = ("project_id", "user_id", "api_key_id", "model", "batch", "service_tier")

PageParser = Callable[[Dict[str, Any]], Tuple[List[Dict[str, Any]], Optional[str]]]


def parse_cost_page(data: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """
    Cost page có hai shape. Thứ tự ưu tiên:
    1. organization_costs.buckets / organization_costs.next_page
    2. data / next_page
    """
    nested = data.get("organization_costs")
    nested = nested if isinstance(nested, dict) else {}
    if nested.get("buckets") is not None:
        buckets = as_list(nested.get("buckets"))
    else:
        buckets = as_list(data.get("data"))
    cursor = nested.get("next_page")
    if cursor is None:
        cursor = data.get("next_page")
    return buckets, (str(cursor) if cursor else None)


def parse_usage_page(data: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    cursor = data.get("next_page")
    return as_list(data.get("data")), (str(cursor) if cursor else None)


def _bucket_day(bucket: Dict[str, Any]):
    start_time = bucket.get("start_time")
    if isinstance(start_time, bool) or not isinstance(start_time, (int, float)):
        return None
    return utc_day(from_unix_seconds(start_time))


def _batch_key(batch: Any) -> str:
    """JSON true/false -> "true"/"false"; null -> ""."""
    if batch is None:
        return ""
    if isinstance(batch, bool):
        return "true" if batch else "false"
    return str(batch)


def cost_rows_from_buckets(buckets: List[Dict[str, Any]]) -> List[CostRow]:
    rows: List[CostRow] = []
    for bucket in buckets:
        day = _bucket_day(bucket)
        if day is None:
            continue
        for result in as_list(bucket.get("results")):
            amount = as_dict(result.get("amount"))
            rows.append(
                CostRow(
                    date=day,
                    project_id=result.get("project_id") or "",
                    line_item=result.get("line_item") or "",
                    currency=str(amount.get("currency") or "usd").lower(),
                    value=to_decimal(amount.get("value")),
                )
            )
    return rows


def usage_rows_from_buckets(buckets: List[Dict[str, Any]]) -> List[UsageRow]:
    rows: List[UsageRow] = []
    for bucket in buckets:
        day = _bucket_day(bucket)
        if day is None:
            continue
        # results, fallback result
        results = bucket.get("results")
        if results is None:
            results = bucket.get("result")
        for result in as_list(results):
            input_tokens = to_int(result.get("input_tokens"))
            output_tokens = to_int(result.get("output_tokens"))
            rows.append(
                UsageRow(
                    date=day,
                    project_id=result.get("project_id") or "",
                    user_id=result.get("user_id") or "",
                    api_key_id=result.get("api_key_id") or "",
                    model=result.get("model") or "",
                    batch=_batch_key(result.get("batch")),
                    service_tier=result.get("service_tier") or "",
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens,
                )
            )
    return rows


def credit_snapshot_from_response(data: Dict[str, Any]) -> CreditSnapshot:
    return CreditSnapshot(
        total_granted=to_decimal(data.get("total_granted")),
        total_used=to_decimal(data.get("total_used")),
        total_available=to_decimal(data.get("total_available")),
    )


class OpenAICostClient:
    """Bearer-token client over the OpenAI admin APIs."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._base = settings.openai_api_base.rstrip("/")
        self._timeout = settings.provider_http_timeout_seconds
        self._max_pages = settings.openai_max_pages
        self._transport = transport

    async def fetch_cost_and_usage(
        self,
        credentials: OpenAICredentials,
        window_start: datetime,
        window_end: datetime,
    ) -> FetchResult:
        headers = {"Authorization": f"Bearer {credentials.api_key}"}
        async with build_client(self._timeout, self._transport) as client:
            if credentials.mode == OpenAIMode.PERSONAL:
                data = await get_json(client, PROVIDER_LABEL, self._base + CREDIT_GRANTS_PATH, headers=headers)
                return FetchResult(credit=credit_snapshot_from_response(data))

            start_time = to_unix_seconds(window_start)
            end_time = to_unix_seconds(window_end)
            cost_buckets, usage_buckets = await asyncio.gather(
                self._paginate(client, COSTS_PATH, COST_GROUP_BY, start_time, end_time, headers, parse_cost_page),
                self._paginate(client, USAGE_PATH, USAGE_GROUP_BY, start_time, end_time, headers, parse_usage_page),
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
        start_time: int,
        end_time: int,
        headers: Dict[str, str],
        parse_page: PageParser,
    ) -> List[Dict[str, Any]]:
        buckets: List[Dict[str, Any]] = []
        page: Optional[str] = None
        for _ in range(self._max_pages):
            params: List[Tuple[str, str]] = [
                ("start_time", str(start_time)),
                ("end_time", str(end_time)),
                ("bucket_width", "1d"),
            ]
            params.extend(("group_by", key) for key in group_by)
            if page:
                params.append(("page", page))
            data = await get_json(client, PROVIDER_LABEL, self._base + path, params=params, headers=headers)
            chunk, page = parse_page(data)
            buckets.extend(chunk)
            if not page:
                return buckets
        logger.warning("openai.page_cap_reached", path=path, max_pages=self._max_pages)
        return buckets
