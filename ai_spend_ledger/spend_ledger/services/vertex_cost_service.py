"""
Vertex AI cost client: Cloud Billing costs:list cho billing account, filter AI services.
Paging nextPageToken, tối đa VERTEX_MAX_PAGES (50). Cost-only, không có usage rows.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from spend_ledger.config import Settings
from spend_ledger.logging_config import get_logger
from spend_ledger.services.provider_http import as_dict, as_list, build_client, get_json
from spend_ledger.services.provider_types import CostRow, FetchResult, VertexCredentials, to_decimal
from spend_ledger.services.vertex_auth import get_google_access_token, parse_service_account
from spend_ledger.utils.dates import parse_utc_timestamp, utc_day

logger = get_logger(__name__)

PROVIDER_LABEL = "GCP"
AI_SERVICE_FILTER = 'service.description:"Vertex AI" OR service.description:"Cloud AI"'


def cost_rows_from_billing(rows: List[Dict[str, Any]], sa_project_id: Optional[str]) -> List[CostRow]:
    """
    Row date = usageStartTime, fallback usageEndTime; thiếu cả hai thì bỏ qua.
    projectId ưu tiên project_id của service account, rồi row.project.id.
    """
    out: List[CostRow] = []
    for row in rows:
        stamp = row.get("usageStartTime") or row.get("usageEndTime")
        if not stamp or not isinstance(stamp, str):
            continue
        cost = as_dict(row.get("cost"))
        project = sa_project_id or as_dict(row.get("project")).get("id") or ""
        line_item = (
            as_dict(row.get("sku")).get("description")
            or as_dict(row.get("service")).get("description")
            or "usage"
        )
        out.append(
            CostRow(
                date=utc_day(parse_utc_timestamp(stamp)),
                project_id=f"vertex:{project}",
                line_item=f"vertex:{line_item}",
                currency=str(cost.get("currencyCode") or "usd").lower(),
                value=to_decimal(cost.get("amount")),
            )
        )
    return out


class VertexCostClient:
    """Service-account client over the Cloud Billing API."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._billing_base = settings.gcp_billing_base.rstrip("/")
        self._token_endpoint = settings.google_token_endpoint
        self._timeout = settings.provider_http_timeout_seconds
        self._max_pages = settings.vertex_max_pages
        self._transport = transport

    async def fetch_cost_and_usage(
        self,
        credentials: VertexCredentials,
        window_start: datetime,
        window_end: datetime,
    ) -> FetchResult:
        info = parse_service_account(credentials.service_account_json)
        # dateRange.endDate is inclusive: last day of the window = today
        start_date = window_start.date().isoformat()
        end_date = (window_end - timedelta(days=1)).date().isoformat()
        async with build_client(self._timeout, self._transport) as client:
            access_token = await get_google_access_token(client, info, self._token_endpoint)
            rows = await self._list_costs(client, access_token, credentials.billing_account_id, start_date, end_date)
        return FetchResult(cost_rows=cost_rows_from_billing(rows, info.get("project_id")))

    async def _list_costs(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        billing_account_id: str,
        start_date: str,
        end_date: str,
    ) -> List[Dict[str, Any]]:
        url = f"{self._billing_base}/billingAccounts/{billing_account_id}/costs:list"
        headers = {"Authorization": f"Bearer {access_token}"}
        rows: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        for _ in range(self._max_pages):
            params = {
                "dateRange.startDate": start_date,
                "dateRange.endDate": end_date,
                "filter": AI_SERVICE_FILTER,
            }
            if page_token:
                params["pageToken"] = page_token
            data = await get_json(client, PROVIDER_LABEL, url, params=params, headers=headers)
            rows.extend(as_list(data.get("rows")))
            token = data.get("nextPageToken")
            page_token = str(token) if token else None
            if not page_token:
                return rows
        logger.warning("vertex.page_cap_reached", billing_account_id=billing_account_id, max_pages=self._max_pages)
        return rows
