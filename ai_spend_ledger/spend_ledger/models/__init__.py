"""SQLAlchemy models for the AI spend ledger."""
from spend_ledger.models.workspace import Workspace, WorkspaceMember
from spend_ledger.models.connection import (
    AnthropicConnection,
    BedrockConnection,
    OpenAIConnection,
    VertexAIConnection,
)
from spend_ledger.models.ledger import DailyCost, DailyUsageCompletions
from spend_ledger.models.alerting import AlertRule, Budget, Notification

__all__ = [
    "Workspace",
    "WorkspaceMember",
    "OpenAIConnection",
    "AnthropicConnection",
    "VertexAIConnection",
    "BedrockConnection",
    "DailyCost",
    "DailyUsageCompletions",
    "Budget",
    "AlertRule",
    "Notification",
]
