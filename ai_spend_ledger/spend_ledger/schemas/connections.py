"""Schemas for provider connect endpoints. Credentials chỉ nằm trong request, không bao giờ trong response."""
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class _ConnectBase(BaseModel):
    workspace_id: UUID = Field(..., alias="workspaceId", description="Workspace UUID")

    model_config = {"populate_by_name": True}


# --- POST /openai/connect ---
class OpenAIConnectRequest(_ConnectBase):
    """Admin key (organization) hoặc user key (personal, chỉ credit grants)."""

    api_key: str = Field(..., alias="apiKey", min_length=20, max_length=512)
    mode: Literal["organization", "personal"] = Field("organization")


# --- POST /anthropic/connect ---
class AnthropicConnectRequest(_ConnectBase):
    api_key: str = Field(..., alias="apiKey", min_length=20, max_length=512)


# --- POST /vertex/connect ---
class VertexConnectRequest(_ConnectBase):
    """service account JSON phải có client_email + private_key; projectId là billing account id."""

    service_account_json: str = Field(..., alias="serviceAccountJson", min_length=2)
    project_id: str = Field(..., alias="projectId", min_length=1, max_length=128)
    region: str = Field("us-central1", min_length=1, max_length=64)


# --- POST /bedrock/connect ---
class BedrockConnectRequest(_ConnectBase):
    access_key_id: str = Field(..., alias="accessKeyId", min_length=16, max_length=128)
    secret_access_key: str = Field(..., alias="secretAccessKey", min_length=16, max_length=256)
    region: str = Field("us-east-1", min_length=1, max_length=64)


class ConnectResponse(BaseModel):
    """Response for all connect endpoints."""

    success: bool = True
    sync: str = Field("queued", description="First sync runs in the background after the response")
