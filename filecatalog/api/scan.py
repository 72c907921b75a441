"""Scan API endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from filecatalog.api.deps import get_catalog
from filecatalog.catalog import Catalog
from filecatalog.schemas.scan import ScanRequest, ScanResponse
from filecatalog.services.identity_service import absolute_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scan", tags=["scan"])


@router.post("", response_model=ScanResponse)
async def scan_directory(
    body: ScanRequest,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> ScanResponse:
    """Synchronize the catalog with a directory (optionally its whole subtree)."""
    result = await catalog.synchronize(body.path, recursive=body.recursive)
    return ScanResponse.from_result(absolute_path(body.path), result)
