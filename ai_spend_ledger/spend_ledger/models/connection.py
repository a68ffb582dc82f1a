"""
Provider connections: one row per (workspace, provider).
Credentials are stored encrypted (SecretBox); status OK | DEGRADED | DISCONNECTED.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from spend_ledger.db import Base
from spend_ledger.models.enums import ConnectionStatus, OpenAIMode


class ConnectionMixin:
    """Columns shared by every provider connection table."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    @declared_attr
    def workspace_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ConnectionStatus.DISCONNECTED.value,
    )
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class OpenAIConnection(ConnectionMixin, Base):
    """OpenAI admin (organization) or personal key + last credit snapshot (personal mode)."""

    __tablename__ = "openai_connections"

    admin_key_enc: Mapped[str] = mapped_column(Text, nullable=False)
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default=OpenAIMode.ORGANIZATION.value)
    credit_total_granted: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)
    credit_total_used: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)
    credit_total_available: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)
    credit_currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)


class AnthropicConnection(ConnectionMixin, Base):
    """Anthropic admin API key."""

    __tablename__ = "anthropic_connections"

    admin_key_enc: Mapped[str] = mapped_column(Text, nullable=False)


class VertexAIConnection(ConnectionMixin, Base):
    """Google service account JSON. project_id is the billing account queried in costs:list."""

    __tablename__ = "vertex_connections"

    service_account_enc: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[str] = mapped_column(String(128), nullable=False)
    region: Mapped[str] = mapped_column(String(64), nullable=False, default="us-central1")


class BedrockConnection(ConnectionMixin, Base):
    """AWS access key pair (encrypted separately) + Cost Explorer region."""

    __tablename__ = "bedrock_connections"

    access_key_enc: Mapped[str] = mapped_column(Text, nullable=False)
    secret_key_enc: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(String(64), nullable=False, default="us-east-1")
