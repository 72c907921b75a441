"""Health check endpoint: database reachability and catalog size."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filecatalog import __version__
from filecatalog.api.deps import get_catalog, get_session
from filecatalog.catalog import Catalog
from filecatalog.models.entry import CatalogEntry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    entries: int | None = None
    scan_root: str | None = None


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    session: Annotated[AsyncSession, Depends(get_session)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> HealthResponse:
    """Report whether the catalog table answers and the default scan root exists.

    ``scan_root`` is ``None`` when no default scan path is configured,
    otherwise ``"ok"`` or ``"missing"``.
    """
    entries: int | None = None
    try:
        entries = await session.scalar(select(func.count()).select_from(CatalogEntry))
    except SQLAlchemyError:
        logger.warning("Health check could not count catalog entries", exc_info=True)

    scan_root: str | None = None
    root = catalog.settings.default_scan_path
    if root is not None:
        exists = await asyncio.to_thread(catalog.filesystem.is_directory, str(root))
        scan_root = "ok" if exists else "missing"

    healthy = entries is not None and scan_root != "missing"
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=__version__,
        database="ok" if entries is not None else "error",
        entries=entries,
        scan_root=scan_root,
    )
