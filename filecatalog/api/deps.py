"""Shared API dependencies: DB session and catalog handle."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from filecatalog.catalog import Catalog


def get_catalog(request: Request) -> Catalog:
    """Get the catalog handle from app state."""
    catalog: Catalog = request.app.state.catalog
    return catalog


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session
