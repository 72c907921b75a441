"""Database engine and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from filecatalog.config import Settings


def _is_memory_url(database_url: str) -> bool:
    return database_url.startswith("sqlite") and (
        ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+aiosqlite:")
    )


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    Returns (engine, session_factory) tuple. In-memory SQLite URLs share a
    single connection so that every session sees the same database.
    """
    engine_kwargs: dict[str, Any] = {"echo": settings.debug}
    if _is_memory_url(settings.database_url):
        engine_kwargs["poolclass"] = StaticPool
    engine = create_async_engine(settings.database_url, **engine_kwargs)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


async def init_schema(engine: AsyncEngine) -> None:
    """Create all catalog tables that do not exist yet."""
    from filecatalog.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
