"""
Canonical ledger: daily cost and daily token usage per workspace.
Natural keys are unique constraints; sync writes them with INSERT .. ON CONFLICT DO UPDATE.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from spend_ledger.db import Base

DAILY_COST_KEY = ("workspace_id", "date", "project_id", "line_item")
DAILY_USAGE_KEY = (
    "workspace_id",
    "date",
    "project_id",
    "user_id",
    "api_key_id",
    "model",
    "batch",
    "service_tier",
)

# OpenAI personal mode: synthetic row fed from credit_grants deltas.
PERSONAL_PROJECT_ID = "__personal__"
PERSONAL_LINE_ITEM = "credit_estimate"


class DailyCost(Base):
    """Cost attributed to a workspace on a UTC day by (project_id, line_item)."""

    __tablename__ = "daily_costs"
    __table_args__ = (
        UniqueConstraint(*DAILY_COST_KEY, name="ux_daily_costs_key"),
        Index("ix_daily_costs_workspace_date", "workspace_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    project_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    line_item: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="usd")
    value: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class DailyUsageCompletions(Base):
    """Token usage per UTC day by (project, user, api key, model, batch, service tier)."""

    __tablename__ = "daily_usage_completions"
    __table_args__ = (
        UniqueConstraint(*DAILY_USAGE_KEY, name="ux_daily_usage_completions_key"),
        Index("ix_daily_usage_completions_workspace_date", "workspace_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    project_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    api_key_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    model: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    batch: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    service_tier: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    input_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
