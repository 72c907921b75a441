"""Catalog entry API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from filecatalog.api.deps import get_catalog
from filecatalog.catalog import Catalog
from filecatalog.schemas.entry import (
    EntryCreate,
    EntryDeleteResponse,
    EntryRename,
    EntryResponse,
    MetadataUpdate,
)
from filecatalog.schemas.scan import CategoryResponse
from filecatalog.services.category_service import Category, category_extensions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["entries"])


@router.get("/entries", response_model=list[EntryResponse])
async def list_entries(
    catalog: Annotated[Catalog, Depends(get_catalog)],
    parent_path: str = Query(min_length=1),
) -> list[EntryResponse]:
    """List the entries recorded directly inside a directory."""
    entries = await catalog.list_children(parent_path)
    return [EntryResponse.from_entry(e) for e in entries]


@router.get("/entries/search", response_model=list[EntryResponse])
async def search_entries(
    catalog: Annotated[Catalog, Depends(get_catalog)],
    q: str = Query(min_length=1, max_length=500),
    limit: int | None = Query(None, ge=1),
) -> list[EntryResponse]:
    """Search entry names and tags."""
    entries = await catalog.search(q, limit=limit)
    return [EntryResponse.from_entry(e) for e in entries]


@router.get("/entries/category/{category}", response_model=list[EntryResponse])
async def category_entries(
    category: str,
    catalog: Annotated[Catalog, Depends(get_catalog)],
    scope: str | None = Query(None),
) -> list[EntryResponse]:
    """List files of one category, optionally only inside *scope*."""
    entries = await catalog.filter_by_category(category, scope)
    return [EntryResponse.from_entry(e) for e in entries]


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories() -> list[CategoryResponse]:
    """List the known categories and their extensions."""
    return [
        CategoryResponse(name=c.value, extensions=category_extensions(c)) for c in Category
    ]


@router.get("/entries/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: str,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> EntryResponse:
    """Get a single entry by id."""
    return EntryResponse.from_entry(await catalog.get_entry(entry_id))


@router.patch("/entries/{entry_id}/metadata", response_model=EntryResponse)
async def update_entry_metadata(
    entry_id: str,
    body: MetadataUpdate,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> EntryResponse:
    """Set tags and/or importance on an entry."""
    entry = await catalog.update_metadata(entry_id, tags=body.tags, importance=body.importance)
    return EntryResponse.from_entry(entry)


@router.post("/entries", response_model=EntryResponse, status_code=201)
async def create_entry(
    body: EntryCreate,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> EntryResponse:
    """Create an empty file or directory."""
    entry = await catalog.create(body.parent_path, body.name, body.kind)
    return EntryResponse.from_entry(entry)


@router.post("/entries/{entry_id}/rename", response_model=EntryResponse)
async def rename_entry(
    entry_id: str,
    body: EntryRename,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> EntryResponse:
    """Rename an entry. The response carries the entry's new id."""
    entry = await catalog.rename(entry_id, body.new_name)
    return EntryResponse.from_entry(entry)


@router.delete("/entries/{entry_id}", response_model=EntryDeleteResponse)
async def delete_entry(
    entry_id: str,
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> EntryDeleteResponse:
    """Delete an entry from disk and from the catalog."""
    removed = await catalog.delete(entry_id)
    return EntryDeleteResponse(id=entry_id, removed_entries=removed)
