"""Schemas for monthly budgets."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class BudgetUpsertRequest(BaseModel):
    """Request body for POST /budgets (upsert theo workspace + month)."""

    workspace_id: UUID = Field(..., alias="workspaceId")
    month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM")
    amount: Decimal = Field(..., gt=0, max_digits=16, decimal_places=2)
    currency: str = Field("usd", min_length=3, max_length=3)

    model_config = {"populate_by_name": True}


class BudgetOut(BaseModel):
    id: UUID
    workspace_id: UUID = Field(..., serialization_alias="workspaceId")
    month: str
    amount: float
    currency: str
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = {"from_attributes": True}
