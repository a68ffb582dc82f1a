"""String enums stored as plain text columns."""
from enum import Enum


class ProviderName(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    VERTEX = "vertex"
    BEDROCK = "bedrock"


class ConnectionStatus(str, Enum):
    OK = "OK"
    DEGRADED = "DEGRADED"
    DISCONNECTED = "DISCONNECTED"


class OpenAIMode(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    PERSONAL = "PERSONAL"


class WorkspaceRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class AlertType(str, Enum):
    BUDGET_THRESHOLD = "BUDGET_THRESHOLD"
    COST_SPIKE = "COST_SPIKE"
    CONNECTION_STATUS = "CONNECTION_STATUS"


class AlertChannel(str, Enum):
    IN_APP = "IN_APP"
    WEBHOOK = "WEBHOOK"
