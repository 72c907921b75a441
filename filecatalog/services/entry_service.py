"""Entry service: catalog queries and user metadata updates."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import case, func, or_, select

from filecatalog.exceptions import EntryNotFoundError
from filecatalog.models.entry import IMPORTANCE_RANK, CatalogEntry, EntryKind, Importance
from filecatalog.services.category_service import CATEGORY_EXTENSIONS, parse_category
from filecatalog.services.tag_service import normalize_tags, parse_importance

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

    from filecatalog.services.category_service import Category

logger = logging.getLogger(__name__)


def _directories_first() -> ColumnElement[int]:
    return case((CatalogEntry.kind == EntryKind.DIRECTORY, 0), else_=1)


def _importance_rank() -> ColumnElement[int]:
    return case(IMPORTANCE_RANK, value=CatalogEntry.importance, else_=0)


async def list_children(session: AsyncSession, parent_path: str) -> list[CatalogEntry]:
    """Entries directly inside the canonical *parent_path*, directories first, then by name."""
    stmt = (
        select(CatalogEntry)
        .where(CatalogEntry.parent_path == parent_path)
        .order_by(_directories_first(), CatalogEntry.name)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def search_entries(session: AsyncSession, query: str, *, limit: int) -> list[CatalogEntry]:
    """Case-insensitive substring search over names and tags.

    Ordered by importance (high first), then directories before files, then
    most recently modified. A blank query matches nothing. Case folding is
    SQLite's ``lower()``, which only folds ASCII letters; other characters must
    match exactly.
    """
    needle = query.strip()
    if not needle:
        return []
    stmt = (
        select(CatalogEntry)
        .where(
            or_(
                CatalogEntry.name.icontains(needle, autoescape=True),
                CatalogEntry.tags.icontains(needle, autoescape=True),
            )
        )
        .order_by(
            _importance_rank().desc(),
            _directories_first(),
            CatalogEntry.modified_at.desc().nulls_last(),
            CatalogEntry.name,
        )
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def filter_by_category(
    session: AsyncSession,
    category: str | Category,
    *,
    scope_path: str | None = None,
    limit: int,
) -> list[CatalogEntry]:
    """Files whose name ends with one of the category's extensions.

    Raises CatalogValidationError for an unknown category.
    """
    resolved = parse_category(category)
    lowered_name = func.lower(CatalogEntry.name)
    stmt = select(CatalogEntry).where(
        CatalogEntry.kind == EntryKind.FILE,
        or_(
            *(
                lowered_name.endswith(ext, autoescape=True)
                for ext in sorted(CATEGORY_EXTENSIONS[resolved])
            )
        ),
    )
    if scope_path is not None:
        stmt = stmt.where(CatalogEntry.parent_path == scope_path)
    stmt = stmt.order_by(CatalogEntry.name).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_entry(session: AsyncSession, entry_id: str) -> CatalogEntry:
    """Point lookup by id. Raises EntryNotFoundError if absent."""
    entry = await session.get(CatalogEntry, entry_id)
    if entry is None:
        raise EntryNotFoundError(f"Entry not found: {entry_id}")
    return entry


async def update_metadata(
    session: AsyncSession,
    entry_id: str,
    *,
    tags: str | None = None,
    importance: str | Importance | None = None,
) -> CatalogEntry:
    """Set tags and/or importance on an entry; ``None`` leaves a field unchanged.

    Input is validated before the lookup, so invalid input raises
    CatalogValidationError even for unknown ids.
    """
    normalized_tags = normalize_tags(tags) if tags is not None else None
    level = parse_importance(importance) if importance is not None else None

    entry = await get_entry(session, entry_id)
    if normalized_tags is not None:
        entry.tags = normalized_tags
    if level is not None:
        entry.importance = level
    await session.flush()
    logger.info(
        "Updated metadata of %s (tags=%r, importance=%s)", entry.path, entry.tags, entry.importance
    )
    return entry
