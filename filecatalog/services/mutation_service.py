"""Mutation service: create, rename, and delete entries on disk and in the catalog.

Each function runs inside the caller's transaction. The filesystem change
happens first; if the catalog update that follows fails, create and rename
undo their filesystem change before re-raising so disk and catalog agree.
Delete cannot be undone; a catalog failure after removal leaves stale rows
that the next synchronize of the parent directory sweeps.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_, select, update

from filecatalog.config import RenamePolicy
from filecatalog.exceptions import (
    CatalogValidationError,
    EntryConflictError,
    EntryNotFoundError,
)
from filecatalog.models.entry import CatalogEntry, EntryKind, Importance
from filecatalog.services.entry_service import get_entry
from filecatalog.services.identity_service import (
    absolute_path,
    descendant_prefix,
    join_child,
    parent_of,
    resolve_id,
)
from filecatalog.services.sync_service import next_pass_marker, path_is_under

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filecatalog.filesystem.local_fs import EntryStat, LocalFileSystem

logger = logging.getLogger(__name__)

_FORBIDDEN_NAME_CHARS = frozenset('/\\\x00')


def validate_entry_name(name: str) -> str:
    """Check that *name* is a single path component. Returns it unchanged."""
    if not name or not name.strip():
        raise CatalogValidationError("Name must not be empty")
    if name in {".", ".."}:
        raise CatalogValidationError(f"Invalid name: {name!r}")
    if any(ch in _FORBIDDEN_NAME_CHARS for ch in name):
        raise CatalogValidationError(f"Name must not contain path separators: {name!r}")
    return name


def _parse_kind(kind: str | EntryKind) -> EntryKind:
    try:
        return EntryKind(kind)
    except ValueError as exc:
        raise CatalogValidationError(
            f"Invalid kind {kind!r}; expected 'file' or 'directory'"
        ) from exc


def _stat_or_none(fs: LocalFileSystem, path: str) -> EntryStat | None:
    try:
        return fs.stat_entry(path)
    except OSError as exc:
        logger.warning("Cannot stat %s: %s", path, exc)
        return None


async def create_entry(
    session: AsyncSession,
    fs: LocalFileSystem,
    parent_path: str,
    name: str,
    kind: str | EntryKind,
) -> CatalogEntry:
    """Create an empty file or directory and record it with default metadata.

    Raises CatalogValidationError for a bad name or kind, EntryNotFoundError
    if the parent directory does not exist, and EntryConflictError if the
    target already exists.
    """
    validate_entry_name(name)
    entry_kind = _parse_kind(kind)
    parent = absolute_path(parent_path)
    if not await asyncio.to_thread(fs.is_directory, parent):
        raise EntryNotFoundError(f"Directory not found: {parent}")

    target = join_child(parent, name)
    if await asyncio.to_thread(fs.exists, target):
        raise EntryConflictError(f"Already exists: {target}")

    make = fs.make_directory if entry_kind is EntryKind.DIRECTORY else fs.make_file
    try:
        await asyncio.to_thread(make, target)
    except FileExistsError as exc:
        raise EntryConflictError(f"Already exists: {target}") from exc
    entry_stat = await asyncio.to_thread(_stat_or_none, fs, target)

    try:
        # A stale row may survive from before an out-of-band delete.
        await session.execute(delete(CatalogEntry).where(CatalogEntry.path == target))
        entry = CatalogEntry(
            id=resolve_id(target),
            path=target,
            name=name,
            kind=entry_kind,
            size=entry_stat.size if entry_stat is not None else None,
            modified_at=entry_stat.modified_at if entry_stat is not None else None,
            created_at=entry_stat.created_at if entry_stat is not None else None,
            parent_path=parent,
            tags="",
            importance=Importance.NORMAL,
            last_scanned=next_pass_marker(),
        )
        session.add(entry)
        await session.flush()
    except Exception:
        logger.error("Catalog insert failed for %s; removing it from disk", target)
        try:
            await asyncio.to_thread(fs.remove_path, target)
        except OSError as rollback_exc:
            logger.error("Failed to roll back creation of %s: %s", target, rollback_exc)
        raise

    logger.info("Created %s %s", entry_kind.value, target)
    return entry


async def _rewrite_descendants(session: AsyncSession, old_path: str, new_path: str) -> int:
    """Move every row below *old_path* under *new_path*, re-deriving ids."""
    old_prefix = descendant_prefix(old_path)
    new_prefix = descendant_prefix(new_path)
    rows = (
        await session.execute(
            select(CatalogEntry.id, CatalogEntry.path).where(path_is_under(old_prefix))
        )
    ).all()
    for row_id, row_path in rows:
        moved = new_prefix + row_path[len(old_prefix) :]
        await session.execute(
            update(CatalogEntry)
            .where(CatalogEntry.id == row_id)
            .values(id=resolve_id(moved), path=moved, parent_path=parent_of(moved))
            .execution_options(synchronize_session=False)
        )
    return len(rows)


async def rename_entry(
    session: AsyncSession,
    fs: LocalFileSystem,
    entry_id: str,
    new_name: str,
    *,
    policy: RenamePolicy = RenamePolicy.RECURSIVE,
) -> CatalogEntry:
    """Rename an entry in place, re-keying it to the id of its new path.

    Tags and importance travel with the row. For directories, *policy*
    decides whether descendant rows are rewritten now (``recursive``) or left
    for the next rescan (``stale``).

    Raises EntryNotFoundError, EntryConflictError, CatalogValidationError, or
    the filesystem's ``OSError``.
    """
    validate_entry_name(new_name)
    entry = await get_entry(session, entry_id)
    old_path = entry.path
    new_path = join_child(entry.parent_path, new_name)
    if new_path == old_path:
        return entry
    if await asyncio.to_thread(fs.exists, new_path):
        raise EntryConflictError(f"Already exists: {new_path}")

    await asyncio.to_thread(fs.rename_path, old_path, new_path)
    try:
        await session.execute(
            delete(CatalogEntry)
            .where(or_(CatalogEntry.path == new_path, path_is_under(descendant_prefix(new_path))))
            .execution_options(synchronize_session=False)
        )
        entry.id = resolve_id(new_path)
        entry.path = new_path
        entry.name = new_name
        await session.flush()
        moved = 0
        if entry.kind is EntryKind.DIRECTORY and policy is RenamePolicy.RECURSIVE:
            moved = await _rewrite_descendants(session, old_path, new_path)
    except Exception:
        logger.error("Catalog update failed while renaming %s; reverting on disk", old_path)
        try:
            await asyncio.to_thread(fs.rename_path, new_path, old_path)
        except OSError as rollback_exc:
            logger.error(
                "Failed to rollback rename %s -> %s: %s", new_path, old_path, rollback_exc
            )
        raise

    logger.info("Renamed %s -> %s (%d descendants moved)", old_path, new_path, moved)
    return entry


async def delete_entry(session: AsyncSession, fs: LocalFileSystem, entry_id: str) -> int:
    """Remove an entry from disk (recursively) and drop it and its descendants.

    Returns the number of catalog rows removed. An object that is already
    missing on disk only loses its catalog rows.
    """
    entry = await get_entry(session, entry_id)
    target = entry.path
    try:
        await asyncio.to_thread(fs.remove_path, target)
    except FileNotFoundError:
        logger.warning("%s was already removed from disk; dropping catalog rows", target)

    result = await session.execute(
        delete(CatalogEntry)
        .where(or_(CatalogEntry.id == entry.id, path_is_under(descendant_prefix(target))))
        .execution_options(synchronize_session=False)
    )
    session.expunge(entry)
    logger.info("Deleted %s (%d catalog rows)", target, result.rowcount)
    return result.rowcount
