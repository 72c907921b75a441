"""Local filesystem adapter: directory listing, stat, and entry mutations.

These are thin synchronous wrappers over ``os``/``shutil``. The catalog runs
them in worker threads and never touches the filesystem directly.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from filecatalog.services.datetime_service import from_timestamp

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirEntry:
    """One child returned by a directory listing."""

    name: str
    is_directory: bool


@dataclass(frozen=True)
class EntryStat:
    """Size and timestamps of a filesystem object."""

    size: int | None
    modified_at: datetime | None
    created_at: datetime | None


def _created_timestamp(st: os.stat_result) -> float:
    """Birth time where the platform reports it, otherwise the inode change time."""
    birth = getattr(st, "st_birthtime", None)
    return birth if birth is not None else st.st_ctime


@dataclass
class LocalFileSystem:
    """Filesystem primitives consumed by the catalog.

    ``stub_writers`` maps a lower-cased file extension (with the dot) to a
    callable that writes the initial content of a new file of that type, e.g.
    an office document template. Files without a registered writer are
    created empty.
    """

    follow_symlinks: bool = False
    stub_writers: dict[str, Callable[[str], None]] = field(default_factory=dict)

    def is_directory(self, path: str) -> bool:
        """Return True if *path* exists and is a directory."""
        return os.path.isdir(path)

    def exists(self, path: str) -> bool:
        """Return True if anything (including a dangling symlink) exists at *path*."""
        return os.path.lexists(path)

    def list_directory(self, path: str) -> list[DirEntry]:
        """List the immediate children of *path*, sorted by name."""
        with os.scandir(path) as it:
            entries = [
                DirEntry(name=e.name, is_directory=e.is_dir(follow_symlinks=self.follow_symlinks))
                for e in it
            ]
        entries.sort(key=lambda e: e.name)
        return entries

    def stat_entry(self, path: str) -> EntryStat:
        """Stat *path*. Directories report no size."""
        st = os.stat(path, follow_symlinks=self.follow_symlinks)
        is_dir = stat.S_ISDIR(st.st_mode)
        return EntryStat(
            size=None if is_dir else st.st_size,
            modified_at=from_timestamp(st.st_mtime),
            created_at=from_timestamp(_created_timestamp(st)),
        )

    def make_directory(self, path: str) -> None:
        """Create an empty directory; fails if anything exists at *path*."""
        os.mkdir(path)

    def make_file(self, path: str) -> None:
        """Create a new file, using the stub writer registered for its extension."""
        extension = os.path.splitext(path)[1].lower()
        writer = self.stub_writers.get(extension)
        # "x" mode refuses to clobber an existing file.
        with open(path, "x", encoding="utf-8"):
            pass
        if writer is not None:
            logger.debug("Writing %s document stub to %s", extension, path)
            writer(path)

    def rename_path(self, source: str, destination: str) -> None:
        """Rename *source* to *destination* within the same filesystem."""
        os.rename(source, destination)

    def remove_path(self, path: str) -> None:
        """Remove a file, symlink, or a whole directory tree."""
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.unlink(path)
