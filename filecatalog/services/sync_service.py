"""Sync service: mark-and-sweep reconciliation of one directory level.

A synchronization pass makes the catalog rows whose ``parent_path`` is the
target directory match the directory's live listing exactly:

1. Mark: every known child row gets ``last_scanned = 0`` (unconfirmed).
2. List: read the immediate children from the filesystem.
3. Upsert: insert unseen children with default metadata; for known children
   refresh size, timestamps and kind and stamp the pass marker. Tags and
   importance are never part of the update set.
4. Sweep: delete rows still marked unconfirmed; their objects are gone.
   Rows below a child directory that vanished (or became a file) go too.

The caller owns the transaction, so a failure at any step rolls back to the
state before the mark.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from filecatalog.exceptions import EntryNotFoundError
from filecatalog.models.entry import UNCONFIRMED, CatalogEntry, EntryKind, Importance
from filecatalog.services.identity_service import descendant_prefix, join_child, resolve_id

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from filecatalog.filesystem.local_fs import DirEntry, EntryStat, LocalFileSystem

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Counters of one synchronization (one level, or a summed tree walk)."""

    files_seen: int = 0
    directories_seen: int = 0
    errors: int = 0
    subdirectories: list[str] = field(default_factory=list, repr=False)

    def add(self, other: SyncResult) -> None:
        """Accumulate another result's counters into this one."""
        self.files_seen += other.files_seen
        self.directories_seen += other.directories_seen
        self.errors += other.errors


@dataclass
class ScannedChild:
    """A listed child together with its stat outcome."""

    path: str
    entry: DirEntry
    stat: EntryStat | None
    error: str | None = None


@dataclass
class DirectoryListing:
    """Children of one directory, plus names that cannot be stored."""

    children: list[ScannedChild] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def next_pass_marker() -> int:
    """Return a fresh pass marker, always distinct from UNCONFIRMED."""
    return max(time.time_ns(), UNCONFIRMED + 1)


def path_is_under(prefix: str) -> ColumnElement[bool]:
    """Case-sensitive ``path`` prefix test (SQLite LIKE folds ASCII case)."""
    return func.substr(CatalogEntry.path, 1, len(prefix)) == prefix


def _is_storable(name: str) -> bool:
    # Undecodable bytes come back from scandir as lone surrogates.
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def read_directory(fs: LocalFileSystem, directory: str) -> DirectoryListing:
    """List *directory* and stat each child.

    A failing listing raises ``OSError``. A failing per-child stat is recorded
    on the child and does not stop the listing. Children whose names are not
    valid UTF-8 are skipped and reported in ``skipped``.
    """
    listing = DirectoryListing()
    for dir_entry in fs.list_directory(directory):
        if not _is_storable(dir_entry.name):
            logger.warning(
                "Skipping %r in %s: name is not valid UTF-8", dir_entry.name, directory
            )
            listing.skipped.append(dir_entry.name)
            continue
        path = join_child(directory, dir_entry.name)
        try:
            entry_stat = fs.stat_entry(path)
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            listing.children.append(
                ScannedChild(path=path, entry=dir_entry, stat=None, error=str(exc))
            )
            continue
        listing.children.append(ScannedChild(path=path, entry=dir_entry, stat=entry_stat))
    return listing


def _upsert_statement(directory: str, child: ScannedChild, marker: int) -> Any:
    """Build the INSERT .. ON CONFLICT DO UPDATE for one scanned child."""
    kind = EntryKind.DIRECTORY if child.entry.is_directory else EntryKind.FILE
    stmt = sqlite_insert(CatalogEntry).values(
        id=resolve_id(child.path),
        path=child.path,
        name=child.entry.name,
        kind=kind,
        size=child.stat.size if child.stat is not None else None,
        modified_at=child.stat.modified_at if child.stat is not None else None,
        created_at=child.stat.created_at if child.stat is not None else None,
        parent_path=directory,
        tags="",
        importance=Importance.NORMAL,
        last_scanned=marker,
    )
    refreshed: dict[str, Any] = {
        "kind": stmt.excluded.kind,
        "last_scanned": stmt.excluded.last_scanned,
    }
    if child.stat is not None:
        refreshed["size"] = stmt.excluded.size
        refreshed["modified_at"] = stmt.excluded.modified_at
        refreshed["created_at"] = stmt.excluded.created_at
    return stmt.on_conflict_do_update(index_elements=[CatalogEntry.id], set_=refreshed)


async def _evict_orphaned_descendants(session: AsyncSession, directories: set[str]) -> int:
    """Drop every row below *directories*; their subtrees no longer exist."""
    removed = 0
    for path in sorted(directories):
        result = await session.execute(
            delete(CatalogEntry)
            .where(path_is_under(descendant_prefix(path)))
            .execution_options(synchronize_session=False)
        )
        removed += result.rowcount
    return removed


async def synchronize_directory(
    session: AsyncSession, fs: LocalFileSystem, directory: str
) -> SyncResult:
    """Reconcile the catalog rows under the canonical *directory* with the filesystem.

    Raises EntryNotFoundError if *directory* is not an existing directory (no
    mutation happens) and propagates ``OSError`` if it cannot be listed.
    """
    if not await asyncio.to_thread(fs.is_directory, directory):
        raise EntryNotFoundError(f"Directory not found: {directory}")

    known_directories = set(
        (
            await session.execute(
                select(CatalogEntry.path)
                .where(CatalogEntry.parent_path == directory)
                .where(CatalogEntry.kind == EntryKind.DIRECTORY)
            )
        ).scalars()
    )
    await session.execute(
        update(CatalogEntry)
        .where(CatalogEntry.parent_path == directory)
        .values(last_scanned=UNCONFIRMED)
        .execution_options(synchronize_session=False)
    )

    try:
        listing = await asyncio.to_thread(read_directory, fs, directory)
    except OSError as exc:
        logger.error("Error scanning %s: %s", directory, exc)
        raise

    result = SyncResult(errors=len(listing.skipped))
    marker = next_pass_marker()
    for child in listing.children:
        await session.execute(_upsert_statement(directory, child, marker))
        if child.error is not None:
            result.errors += 1
        if child.entry.is_directory:
            result.directories_seen += 1
            result.subdirectories.append(child.path)
        else:
            result.files_seen += 1

    # Directories that vanished or turned into files take their subtrees along.
    orphaned = await _evict_orphaned_descendants(
        session, known_directories - set(result.subdirectories)
    )
    swept = await session.execute(
        delete(CatalogEntry)
        .where(CatalogEntry.parent_path == directory)
        .where(CatalogEntry.last_scanned == UNCONFIRMED)
        .execution_options(synchronize_session=False)
    )
    logger.info(
        "Synchronized %s: %d files, %d directories, %d errors, %d stale entries removed",
        directory,
        result.files_seen,
        result.directories_seen,
        result.errors,
        swept.rowcount + orphaned,
    )
    return result
