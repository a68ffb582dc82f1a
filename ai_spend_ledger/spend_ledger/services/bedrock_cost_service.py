"""
Bedrock cost client: AWS Cost Explorer GetCostAndUsage (boto3, chạy trong thread).
DAILY UnblendedCost, filter SERVICE in Bedrock/SageMaker, group by SERVICE + USAGE_TYPE.
Paging NextPageToken, tối đa BEDROCK_MAX_PAGES. Cost-only.
"""
import asyncio
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from spend_ledger.config import Settings
from spend_ledger.errors import AuthError, ProviderError, UpstreamError
from spend_ledger.logging_config import get_logger
from spend_ledger.services.provider_types import BedrockCredentials, CostRow, FetchResult, to_decimal

logger = get_logger(__name__)

PROVIDER_LABEL = "Bedrock"
SERVICES = ["Amazon Bedrock", "Amazon SageMaker"]
AUTH_ERROR_CODES = {
    "AccessDeniedException",
    "AccessDenied",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredTokenException",
    "SignatureDoesNotMatch",
}

CostExplorerFactory = Callable[[BedrockCredentials, float], Any]


def default_cost_explorer(credentials: BedrockCredentials, timeout: float) -> Any:
    config = Config(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 2})
    return boto3.client(
        "ce",
        region_name=credentials.region,
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        config=config,
    )


def map_client_error(error: ClientError) -> ProviderError:
    """ClientError -> AuthError (credential codes) hoặc UpstreamError (HTTP status của AWS)."""
    err = error.response.get("Error", {}) if isinstance(error.response, dict) else {}
    code = err.get("Code") or "Unknown"
    message = err.get("Message") or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 500
    text = f"{PROVIDER_LABEL} request failed ({code}): {message}"
    if code in AUTH_ERROR_CODES:
        return AuthError(PROVIDER_LABEL, text[:400], status_code=status)
    return UpstreamError(PROVIDER_LABEL, status, message, message=text[:400])


def cost_rows_from_results(results_by_time: List[Dict[str, Any]], region: str, fallback_day: date) -> List[CostRow]:
    """Chỉ giữ group có amount > 0. projectId bedrock:<region>, lineItem bedrock:<usage type>."""
    rows: List[CostRow] = []
    for result in results_by_time:
        start = (result.get("TimePeriod") or {}).get("Start")
        day = date.fromisoformat(start) if start else fallback_day
        for group in result.get("Groups") or []:
            keys = group.get("Keys") or []
            usage_type = keys[1] if len(keys) > 1 else "unknown"
            metric = (group.get("Metrics") or {}).get("UnblendedCost") or {}
            amount = to_decimal(metric.get("Amount", "0"))
            if amount <= 0:
                continue
            rows.append(
                CostRow(
                    date=day,
                    project_id=f"bedrock:{region}",
                    line_item=f"bedrock:{usage_type}",
                    currency=str(metric.get("Unit") or "USD").lower(),
                    value=amount,
                )
            )
    return rows


class BedrockCostClient:
    """Static access key client over AWS Cost Explorer."""

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[CostExplorerFactory] = None,
    ) -> None:
        self._timeout = settings.provider_http_timeout_seconds
        self._max_pages = settings.bedrock_max_pages
        self._client_factory = client_factory or default_cost_explorer

    async def fetch_cost_and_usage(
        self,
        credentials: BedrockCredentials,
        window_start: datetime,
        window_end: datetime,
    ) -> FetchResult:
        # TimePeriod.End is exclusive: midnight after today keeps today in range
        start_date = window_start.date().isoformat()
        end_date = window_end.date().isoformat()
        results = await asyncio.to_thread(self._fetch_all, credentials, start_date, end_date)
        return FetchResult(
            cost_rows=cost_rows_from_results(results, credentials.region, window_start.date()),
        )

    def _fetch_all(self, credentials: BedrockCredentials, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        try:
            client = self._client_factory(credentials, self._timeout)
            results: List[Dict[str, Any]] = []
            next_token: Optional[str] = None
            for _ in range(self._max_pages):
                kwargs: Dict[str, Any] = {
                    "TimePeriod": {"Start": start_date, "End": end_date},
                    "Granularity": "DAILY",
                    "Metrics": ["UnblendedCost"],
                    "Filter": {"Dimensions": {"Key": "SERVICE", "Values": SERVICES}},
                    "GroupBy": [
                        {"Type": "DIMENSION", "Key": "SERVICE"},
                        {"Type": "DIMENSION", "Key": "USAGE_TYPE"},
                    ],
                }
                if next_token:
                    kwargs["NextPageToken"] = next_token
                resp = client.get_cost_and_usage(**kwargs)
                results.extend(resp.get("ResultsByTime") or [])
                next_token = resp.get("NextPageToken")
                if not next_token:
                    return results
        except ClientError as e:
            raise map_client_error(e) from e
        except BotoCoreError as e:
            raise ProviderError(PROVIDER_LABEL, f"{PROVIDER_LABEL} request error: {e}") from e
        logger.warning("bedrock.page_cap_reached", region=credentials.region, max_pages=self._max_pages)
        return results
