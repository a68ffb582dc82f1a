"""Async database session and engine (SQLAlchemy 2.0 + asyncpg)."""
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from spend_ledger.config import Settings

SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    """Declarative base for all models."""

    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """Async engine; same URL as Alembic (postgresql+asyncpg://...)."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Session factory shared by request handlers, the sync orchestrator and the scheduler."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an async session; close after request."""
    session_factory: SessionFactory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
