"""Pydantic request/response schemas."""
from spend_ledger.schemas.alerts import AlertRuleCreate, AlertRuleOut, AlertRulePatch
from spend_ledger.schemas.budgets import BudgetOut, BudgetUpsertRequest
from spend_ledger.schemas.common import ErrorResponse, SuccessResponse
from spend_ledger.schemas.connections import (
    AnthropicConnectRequest,
    BedrockConnectRequest,
    ConnectResponse,
    OpenAIConnectRequest,
    VertexConnectRequest,
)
from spend_ledger.schemas.forecast import ForecastOut
from spend_ledger.schemas.notifications import NotificationOut, ReadAllResponse
from spend_ledger.schemas.scheduler import SchedulerStatusResponse
from spend_ledger.schemas.sync import CronSyncResponse, SyncRequest

__all__ = [
    "AlertRuleCreate",
    "AlertRuleOut",
    "AlertRulePatch",
    "AnthropicConnectRequest",
    "BedrockConnectRequest",
    "BudgetOut",
    "BudgetUpsertRequest",
    "ConnectResponse",
    "CronSyncResponse",
    "ErrorResponse",
    "ForecastOut",
    "NotificationOut",
    "OpenAIConnectRequest",
    "ReadAllResponse",
    "SchedulerStatusResponse",
    "SuccessResponse",
    "SyncRequest",
    "VertexConnectRequest",
]
