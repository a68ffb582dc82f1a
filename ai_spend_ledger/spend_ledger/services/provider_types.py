"""
Normalized output of every provider client + the credential shapes they accept.
Orchestrator và ledger writer chỉ thấy các kiểu này, không thấy JSON của provider.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Protocol, Union

from spend_ledger.models.enums import OpenAIMode


@dataclass(frozen=True)
class CostRow:
    date: date
    project_id: str
    line_item: str
    currency: str
    value: Decimal


@dataclass(frozen=True)
class UsageRow:
    date: date
    project_id: str
    user_id: str
    api_key_id: str
    model: str
    batch: str
    service_tier: str
    input_tokens: int
    output_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class CreditSnapshot:
    """OpenAI personal-mode credit_grants reading (cumulative, not daily)."""

    total_granted: Decimal
    total_used: Decimal
    total_available: Decimal
    currency: str = "usd"


@dataclass
class FetchResult:
    cost_rows: List[CostRow] = field(default_factory=list)
    usage_rows: List[UsageRow] = field(default_factory=list)
    credit: Optional[CreditSnapshot] = None


@dataclass(frozen=True)
class OpenAICredentials:
    api_key: str
    mode: OpenAIMode = OpenAIMode.ORGANIZATION

    def __repr__(self) -> str:
        return f"OpenAICredentials(mode={self.mode.value}, api_key=***)"


@dataclass(frozen=True)
class AnthropicCredentials:
    api_key: str

    def __repr__(self) -> str:
        return "AnthropicCredentials(api_key=***)"


@dataclass(frozen=True)
class VertexCredentials:
    service_account_json: str
    billing_account_id: str
    region: str

    def __repr__(self) -> str:
        return f"VertexCredentials(billing_account_id={self.billing_account_id}, region={self.region})"


@dataclass(frozen=True)
class BedrockCredentials:
    access_key_id: str
    secret_access_key: str
    region: str

    def __repr__(self) -> str:
        return f"BedrockCredentials(region={self.region}, keys=***)"


Credentials = Union[OpenAICredentials, AnthropicCredentials, VertexCredentials, BedrockCredentials]


class ProviderClient(Protocol):
    """One capability: fetch a window of cost (and usage) rows for one workspace."""

    async def fetch_cost_and_usage(
        self,
        credentials: Any,
        window_start: datetime,
        window_end: datetime,
    ) -> FetchResult:
        ...


def to_decimal(value: Any) -> Decimal:
    """Number or numeric string -> Decimal; anything else (bool, None, garbage) -> 0."""
    if isinstance(value, bool) or value is None:
        return Decimal("0")
    if isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return Decimal("0")
        return parsed if parsed.is_finite() else Decimal("0")
    return Decimal("0")


def to_int(value: Any) -> int:
    """Token counts: missing/None -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
