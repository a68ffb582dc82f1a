"""Schemas for in-app notifications."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: UUID
    workspace_id: UUID = Field(..., serialization_alias="workspaceId")
    title: str
    body: str
    type: str
    read: bool
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = {"from_attributes": True}


class ReadAllResponse(BaseModel):
    success: bool = True
    updated: int = Field(..., ge=0)
