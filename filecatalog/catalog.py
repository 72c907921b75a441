"""Catalog handle: the one object through which all catalog operations run."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from filecatalog.config import Settings
from filecatalog.exceptions import EntryNotFoundError
from filecatalog.filesystem.local_fs import LocalFileSystem
from filecatalog.services import entry_service, mutation_service, sync_service
from filecatalog.services.identity_service import absolute_path
from filecatalog.services.lock_service import PathLockTable

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from filecatalog.models.entry import CatalogEntry, EntryKind, Importance
    from filecatalog.services.category_service import Category
    from filecatalog.services.sync_service import SyncResult

logger = logging.getLogger(__name__)


class Catalog:
    """Bundle the session factory, filesystem adapter, settings, and lock table.

    Construct one per application (or per test) and pass it by reference.
    Every mutating operation runs in its own transaction; synchronize,
    create, rename and delete also hold the lock of the directory whose
    children they change, so a sweep never interleaves with another
    mark phase or mutation of the same directory.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        filesystem: LocalFileSystem | None = None,
        locks: PathLockTable | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.filesystem = (
            filesystem
            if filesystem is not None
            else LocalFileSystem(follow_symlinks=self.settings.follow_symlinks)
        )
        self.locks = locks if locks is not None else PathLockTable()
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncSession]:
        async with self._session_factory() as session, session.begin():
            yield session

    @asynccontextmanager
    async def _reader(self) -> AsyncGenerator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    # ── Synchronization ──────────────────────────────────

    async def _synchronize_level(self, directory: str) -> SyncResult:
        async with self.locks.hold(directory), self._transaction() as session:
            return await sync_service.synchronize_directory(session, self.filesystem, directory)

    async def synchronize(self, directory_path: str, *, recursive: bool = False) -> SyncResult:
        """Reconcile the catalog with one directory (and optionally its subtree).

        Each directory level is reconciled in its own transaction. In
        recursive mode a subdirectory that vanishes or cannot be read counts
        as one error and the walk continues; descent stops below
        ``Settings.max_scan_depth``.
        """
        directory = absolute_path(directory_path)
        total = await self._synchronize_level(directory)
        if not recursive:
            return total

        pending = [(path, 1) for path in total.subdirectories]
        while pending:
            path, depth = pending.pop()
            if depth > self.settings.max_scan_depth:
                logger.debug("Not descending into %s: depth limit reached", path)
                continue
            try:
                level = await self._synchronize_level(path)
            except (EntryNotFoundError, OSError) as exc:
                logger.warning("Skipping %s during recursive scan: %s", path, exc)
                total.errors += 1
                continue
            total.add(level)
            pending.extend((child, depth + 1) for child in level.subdirectories)
        total.subdirectories = []
        return total

    # ── Queries ──────────────────────────────────────────

    async def list_children(self, parent_path: str) -> list[CatalogEntry]:
        """Entries recorded directly inside *parent_path*."""
        async with self._reader() as session:
            return await entry_service.list_children(session, absolute_path(parent_path))

    async def search(self, query: str, *, limit: int | None = None) -> list[CatalogEntry]:
        """Substring search over names and tags, capped at the configured limit."""
        cap = self.settings.search_result_limit
        effective = cap if limit is None else max(1, min(limit, cap))
        async with self._reader() as session:
            return await entry_service.search_entries(session, query, limit=effective)

    async def filter_by_category(
        self, category: str | Category, scope_path: str | None = None
    ) -> list[CatalogEntry]:
        """Files of a semantic category, optionally only those directly inside *scope_path*."""
        scope = absolute_path(scope_path) if scope_path else None
        async with self._reader() as session:
            return await entry_service.filter_by_category(
                session,
                category,
                scope_path=scope,
                limit=self.settings.category_result_limit,
            )

    async def get_entry(self, entry_id: str) -> CatalogEntry:
        """Point lookup by id."""
        async with self._reader() as session:
            return await entry_service.get_entry(session, entry_id)

    # ── Mutations ────────────────────────────────────────

    async def update_metadata(
        self,
        entry_id: str,
        *,
        tags: str | None = None,
        importance: str | Importance | None = None,
    ) -> CatalogEntry:
        """Set user tags and/or importance on an entry."""
        async with self._transaction() as session:
            return await entry_service.update_metadata(
                session, entry_id, tags=tags, importance=importance
            )

    async def create(
        self, parent_path: str, name: str, kind: str | EntryKind
    ) -> CatalogEntry:
        """Create a file or directory inside *parent_path* and record it."""
        parent = absolute_path(parent_path)
        async with self.locks.hold(parent), self._transaction() as session:
            return await mutation_service.create_entry(
                session, self.filesystem, parent, name, kind
            )

    async def rename(self, entry_id: str, new_name: str) -> CatalogEntry:
        """Rename an entry; the returned entry carries the new id."""
        parent = (await self.get_entry(entry_id)).parent_path
        async with self.locks.hold(parent), self._transaction() as session:
            return await mutation_service.rename_entry(
                session,
                self.filesystem,
                entry_id,
                new_name,
                policy=self.settings.rename_policy,
            )

    async def delete(self, entry_id: str) -> int:
        """Delete an entry and its descendants. Returns the number of rows removed."""
        parent = (await self.get_entry(entry_id)).parent_path
        async with self.locks.hold(parent), self._transaction() as session:
            return await mutation_service.delete_entry(session, self.filesystem, entry_id)
