"""Engine and session factories for the application database.

The DSN comes from ``database_url`` in :func:`config.get_settings`, for
example::

    postgresql+asyncpg://u:p@host:5432/tablepoints

Use :func:`create_sessionmaker` to build an ``async_sessionmaker`` and
:func:`init_models` to create missing tables.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import get_settings

from ..models import Base
from .transaction import run_transaction


def get_engine(dsn: str | None = None) -> AsyncEngine:
    """Create and return an :class:`AsyncEngine` for ``dsn``.

    Falls back to the configured ``database_url`` when ``dsn`` is omitted.
    """

    return create_async_engine(dsn or get_settings().database_url)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory that keeps loaded attributes after commit."""

    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = ["get_engine", "create_sessionmaker", "init_models", "run_transaction"]
