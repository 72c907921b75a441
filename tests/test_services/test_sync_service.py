"""Tests for mark-and-sweep directory synchronization."""

from __future__ import annotations

import asyncio
import os
import shutil
import threading
import time
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from filecatalog.catalog import Catalog
from filecatalog.config import Settings
from filecatalog.exceptions import EntryNotFoundError
from filecatalog.models.entry import UNCONFIRMED, CatalogEntry, EntryKind, Importance
from filecatalog.services import sync_service
from filecatalog.services.identity_service import absolute_path, resolve_id

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from filecatalog.filesystem.local_fs import EntryStat, LocalFileSystem


async def _rows(session_factory: async_sessionmaker[AsyncSession]) -> list[CatalogEntry]:
    async with session_factory() as session:
        result = await session.execute(select(CatalogEntry).order_by(CatalogEntry.path))
        return list(result.scalars().all())


def _snapshot(rows: list[CatalogEntry]) -> list[tuple[object, ...]]:
    return [
        (r.id, r.path, r.name, r.kind, r.size, r.modified_at, r.parent_path, r.tags, r.importance)
        for r in rows
    ]


def _by_name(rows: list[CatalogEntry]) -> dict[str, CatalogEntry]:
    return {r.name: r for r in rows}


class TestSynchronize:
    async def test_first_scan_counts_and_records_children(
        self, catalog: Catalog, tree: Path
    ) -> None:
        result = await catalog.synchronize(str(tree))

        assert result.files_seen == 3
        assert result.directories_seen == 1
        assert result.errors == 0

        children = await catalog.list_children(str(tree))
        assert [c.name for c in children] == ["docs", "clip.mp4", "notes.txt", "photo.jpg"]
        notes = _by_name(children)["notes.txt"]
        assert notes.id == resolve_id(str(tree / "notes.txt"))
        assert notes.parent_path == absolute_path(str(tree))
        assert notes.size == 5
        assert notes.kind is EntryKind.FILE
        assert notes.modified_at is not None
        assert notes.tags == ""
        assert notes.importance is Importance.NORMAL
        assert _by_name(children)["docs"].size is None

    async def test_rescan_is_idempotent(
        self,
        catalog: Catalog,
        tree: Path,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        first = await catalog.synchronize(str(tree))
        before = _snapshot(await _rows(session_factory))
        second = await catalog.synchronize(str(tree))
        after = _snapshot(await _rows(session_factory))

        assert before == after
        assert (first.files_seen, first.directories_seen) == (
            second.files_seen,
            second.directories_seen,
        )
        assert first.errors == second.errors == 0

    async def test_rescan_preserves_tags_and_importance(
        self, catalog: Catalog, tree: Path
    ) -> None:
        await catalog.synchronize(str(tree))
        photo_id = resolve_id(str(tree / "photo.jpg"))
        await catalog.update_metadata(photo_id, tags="x,y", importance="high")

        (tree / "photo.jpg").write_bytes(b"changed")
        await catalog.synchronize(str(tree))

        photo = await catalog.get_entry(photo_id)
        assert photo.tags == "x,y"
        assert photo.importance is Importance.HIGH
        assert photo.size == len(b"changed")

    async def test_out_of_band_delete_is_evicted(self, catalog: Catalog, tree: Path) -> None:
        await catalog.synchronize(str(tree))
        clip_id = resolve_id(str(tree / "clip.mp4"))
        notes_before = await catalog.get_entry(resolve_id(str(tree / "notes.txt")))

        (tree / "clip.mp4").unlink()
        result = await catalog.synchronize(str(tree))

        names = [c.name for c in await catalog.list_children(str(tree))]
        assert "clip.mp4" not in names
        assert "notes.txt" in names
        assert result.files_seen == 2
        with pytest.raises(EntryNotFoundError):
            await catalog.get_entry(clip_id)
        notes_after = await catalog.get_entry(notes_before.id)
        assert notes_after.size == notes_before.size
        assert notes_after.tags == notes_before.tags

    async def test_emptied_directory_sweeps_all_children(
        self, catalog: Catalog, tree: Path
    ) -> None:
        await catalog.synchronize(str(tree))
        for child in tree.iterdir():
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()

        result = await catalog.synchronize(str(tree))

        assert (result.files_seen, result.directories_seen, result.errors) == (0, 0, 0)
        assert await catalog.list_children(str(tree)) == []

    async def test_no_row_left_unconfirmed(
        self,
        catalog: Catalog,
        tree: Path,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await catalog.synchronize(str(tree), recursive=True)
        (tree / "notes.txt").unlink()
        await catalog.synchronize(str(tree))

        rows = await _rows(session_factory)
        assert rows
        assert all(r.last_scanned != UNCONFIRMED for r in rows)

    async def test_sweep_is_scoped_to_target_directory(self, catalog: Catalog, tree: Path) -> None:
        await catalog.synchronize(str(tree), recursive=True)
        await catalog.synchronize(str(tree))

        docs_children = await catalog.list_children(str(tree / "docs"))
        assert [c.name for c in docs_children] == ["report.docx"]

    async def test_replaced_file_changes_kind_but_keeps_metadata(
        self, catalog: Catalog, tree: Path
    ) -> None:
        await catalog.synchronize(str(tree))
        notes_id = resolve_id(str(tree / "notes.txt"))
        await catalog.update_metadata(notes_id, tags="keep")

        (tree / "notes.txt").unlink()
        (tree / "notes.txt").mkdir()
        await catalog.synchronize(str(tree))

        notes = await catalog.get_entry(notes_id)
        assert notes.kind is EntryKind.DIRECTORY
        assert notes.tags == "keep"

    async def test_vanished_subdirectory_takes_its_subtree(
        self, catalog: Catalog, tree: Path
    ) -> None:
        (tree / "docs" / "drafts").mkdir()
        (tree / "docs" / "drafts" / "outline.md").write_text("outline")
        (tree / "docs-old").mkdir()
        (tree / "docs-old" / "memo.txt").write_text("memo")
        await catalog.synchronize(str(tree), recursive=True)
        shutil.rmtree(tree / "docs")

        await catalog.synchronize(str(tree))

        assert await catalog.search("report") == []
        assert await catalog.search("outline") == []
        assert await catalog.list_children(str(tree / "docs" / "drafts")) == []
        with pytest.raises(EntryNotFoundError):
            await catalog.get_entry(resolve_id(str(tree / "docs" / "report.docx")))
        assert [e.name for e in await catalog.search("memo")] == ["memo.txt"]

    async def test_directory_replaced_by_file_drops_subtree(
        self, catalog: Catalog, tree: Path
    ) -> None:
        await catalog.synchronize(str(tree), recursive=True)
        docs_id = resolve_id(str(tree / "docs"))
        await catalog.update_metadata(docs_id, tags="keep")
        shutil.rmtree(tree / "docs")
        (tree / "docs").write_text("now a file")

        await catalog.synchronize(str(tree))

        docs = await catalog.get_entry(docs_id)
        assert docs.kind is EntryKind.FILE
        assert docs.tags == "keep"
        assert await catalog.list_children(str(tree / "docs")) == []

    async def test_undecodable_name_is_skipped_and_counted(
        self, catalog: Catalog, tree: Path
    ) -> None:
        raw = os.path.join(os.fsencode(tree), b"bad\xff.txt")
        try:
            with open(raw, "wb") as fh:
                fh.write(b"x")
        except OSError:
            pytest.skip("filesystem rejects non-UTF-8 names")

        result = await catalog.synchronize(str(tree))

        assert result.errors == 1
        assert result.files_seen == 3
        names = [c.name for c in await catalog.list_children(str(tree))]
        assert names == ["docs", "clip.mp4", "notes.txt", "photo.jpg"]

    async def test_trailing_separator_addresses_same_directory(
        self, catalog: Catalog, tree: Path
    ) -> None:
        await catalog.synchronize(str(tree) + "/")
        children = await catalog.list_children(str(tree))
        assert len(children) == 4


class TestSynchronizeErrors:
    async def test_missing_directory_raises_not_found_without_mutation(
        self,
        catalog: Catalog,
        tree: Path,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await catalog.synchronize(str(tree), recursive=True)
        before = await _rows(session_factory)
        shutil.rmtree(tree / "docs")

        with pytest.raises(EntryNotFoundError):
            await catalog.synchronize(str(tree / "docs"))

        after = await _rows(session_factory)
        assert _snapshot(after) == _snapshot(before)
        assert all(r.last_scanned != UNCONFIRMED for r in after)

    async def test_file_path_is_not_a_directory(self, catalog: Catalog, tree: Path) -> None:
        with pytest.raises(EntryNotFoundError):
            await catalog.synchronize(str(tree / "notes.txt"))

    async def test_listing_failure_rolls_back_mark(
        self,
        catalog: Catalog,
        tree: Path,
        session_factory: async_sessionmaker[AsyncSession],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await catalog.synchronize(str(tree))

        def deny(path: str) -> list[object]:
            raise PermissionError(13, "Permission denied", path)

        monkeypatch.setattr(catalog.filesystem, "list_directory", deny)
        with pytest.raises(PermissionError):
            await catalog.synchronize(str(tree))

        rows = await _rows(session_factory)
        assert len(rows) == 4
        assert all(r.last_scanned != UNCONFIRMED for r in rows)

    async def test_stat_failure_is_counted_and_entry_still_visible(
        self, catalog: Catalog, tree: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fs: LocalFileSystem = catalog.filesystem
        real_stat = fs.stat_entry

        def flaky_stat(path: str) -> EntryStat:
            if path.endswith("notes.txt"):
                raise PermissionError(13, "Permission denied", path)
            return real_stat(path)

        monkeypatch.setattr(fs, "stat_entry", flaky_stat)
        result = await catalog.synchronize(str(tree))

        assert result.errors == 1
        assert result.files_seen == 3
        notes = await catalog.get_entry(resolve_id(str(tree / "notes.txt")))
        assert notes.size is None
        assert notes.modified_at is None

    async def test_stat_failure_keeps_previous_stats(
        self, catalog: Catalog, tree: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await catalog.synchronize(str(tree))
        fs: LocalFileSystem = catalog.filesystem
        real_stat = fs.stat_entry

        def flaky_stat(path: str) -> EntryStat:
            if path.endswith("notes.txt"):
                raise OSError(5, "I/O error", path)
            return real_stat(path)

        monkeypatch.setattr(fs, "stat_entry", flaky_stat)
        result = await catalog.synchronize(str(tree))

        assert result.errors == 1
        notes = await catalog.get_entry(resolve_id(str(tree / "notes.txt")))
        assert notes.size == 5
        assert notes.modified_at is not None


class TestRecursiveSynchronize:
    async def test_recursive_scan_descends(self, catalog: Catalog, tree: Path) -> None:
        result = await catalog.synchronize(str(tree), recursive=True)

        assert result.files_seen == 4
        assert result.directories_seen == 1
        docs = await catalog.list_children(str(tree / "docs"))
        assert [d.name for d in docs] == ["report.docx"]
        assert docs[0].parent_path == absolute_path(str(tree / "docs"))

    async def test_depth_limit_stops_descent(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        test_settings: Settings,
        tree: Path,
    ) -> None:
        shallow = Catalog(
            session_factory, test_settings.model_copy(update={"max_scan_depth": 0})
        )
        result = await shallow.synchronize(str(tree), recursive=True)

        assert result.files_seen == 3
        assert await shallow.list_children(str(tree / "docs")) == []


class TestSynchronizeConcurrency:
    async def test_same_directory_is_serialized(
        self, catalog: Catalog, tree: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        active = 0
        peak = 0
        guard = threading.Lock()
        real_read = sync_service.read_directory

        def slow_read(fs: LocalFileSystem, directory: str) -> sync_service.DirectoryListing:
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            try:
                time.sleep(0.05)
                return real_read(fs, directory)
            finally:
                with guard:
                    active -= 1

        monkeypatch.setattr(sync_service, "read_directory", slow_read)
        results = await asyncio.gather(
            catalog.synchronize(str(tree)),
            catalog.synchronize(str(tree)),
            catalog.synchronize(str(tree)),
        )

        assert peak == 1
        assert all(r.files_seen == 3 for r in results)
        assert len(await catalog.list_children(str(tree))) == 4
        assert len(catalog.locks) == 0
