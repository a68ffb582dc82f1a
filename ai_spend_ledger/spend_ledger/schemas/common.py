"""Common schemas (errors, success flag)."""
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response ({"detail": ...})."""

    detail: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Optional error code")


class SuccessResponse(BaseModel):
    """Simple {"success": true} response."""

    success: bool = True
