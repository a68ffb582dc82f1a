"""Schemas for alert rules."""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from spend_ledger.models.enums import AlertChannel, AlertType


class AlertRuleCreate(BaseModel):
    """Request body for POST /alerts. WEBHOOK channel bắt buộc webhookUrl."""

    workspace_id: UUID = Field(..., alias="workspaceId")
    type: AlertType
    channel: AlertChannel = AlertChannel.IN_APP
    config: Dict[str, Any] = Field(default_factory=dict, description='{"thresholdPercent": 80} | {"spikeMultiplier": 2}')
    webhook_url: Optional[str] = Field(None, alias="webhookUrl", max_length=2048)
    enabled: bool = True

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _webhook_needs_url(self) -> "AlertRuleCreate":
        if self.channel == AlertChannel.WEBHOOK and not (self.webhook_url or "").strip():
            raise ValueError("webhookUrl is required for WEBHOOK channel")
        return self


class AlertRulePatch(BaseModel):
    """Request body for PATCH /alerts/{id}; chỉ field được gửi mới đổi."""

    channel: Optional[AlertChannel] = None
    config: Optional[Dict[str, Any]] = None
    webhook_url: Optional[str] = Field(None, alias="webhookUrl", max_length=2048)
    enabled: Optional[bool] = None

    model_config = {"populate_by_name": True}


class AlertRuleOut(BaseModel):
    id: UUID
    workspace_id: UUID = Field(..., serialization_alias="workspaceId")
    type: str
    channel: str
    config: Dict[str, Any]
    webhook_url: Optional[str] = Field(None, serialization_alias="webhookUrl")
    enabled: bool
    created_by: Optional[str] = Field(None, serialization_alias="createdBy")
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = {"from_attributes": True}
