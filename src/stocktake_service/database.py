"""Database initialization helpers."""
from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import Settings, get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create a configured SQLAlchemy async engine."""

    settings = settings or get_settings()
    return create_async_engine(settings.database_url, echo=settings.echo_sql)


def create_session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


engine = create_engine()
SessionFactory = create_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield an :class:`AsyncSession` for FastAPI dependencies."""

    async with SessionFactory() as session:
        yield session


__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "engine",
    "SessionFactory",
    "get_session",
]
