"""Schemas for manual sync and cron sync."""
from uuid import UUID

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    """Request body for POST /openai/sync (Sync Now: cả bốn provider)."""

    workspace_id: UUID = Field(..., alias="workspaceId", description="Workspace UUID")

    model_config = {"populate_by_name": True}


class FleetTotal(BaseModel):
    total: int = Field(..., ge=0, description="Workspaces attempted for this provider")


class CronSyncResponse(BaseModel):
    """Response for GET/POST /cron/sync."""

    success: bool = True
    openai: FleetTotal = Field(..., alias="openAI")
    anthropic: FleetTotal
    vertex: FleetTotal
    bedrock: FleetTotal

    model_config = {"populate_by_name": True}
