"""Schema for GET /scheduler/status."""
from typing import Dict, Optional

from pydantic import BaseModel, Field


class SchedulerStatusResponse(BaseModel):
    enabled: bool
    interval_seconds: int
    last_tick_at: Optional[str] = None
    last_totals: Optional[Dict[str, int]] = Field(
        None, description="Workspaces attempted per provider in the last fleet sync tick"
    )
