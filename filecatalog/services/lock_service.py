"""Per-path asyncio locks serializing catalog work on one directory."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


class PathLockTable:
    """Hand out one ``asyncio.Lock`` per canonical directory path.

    Locks are created on first use and dropped once no task holds or waits
    for them, so the table only grows with the number of directories under
    concurrent work.

    Thread-safety: safe under asyncio's single-threaded cooperative model.
    Table bookkeeping happens with no await point between read and mutation.
    Do NOT share one table between event loops.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, path: str) -> bool:
        """Return True if some task currently holds the lock for *path*."""
        lock = self._locks.get(path)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *paths: str) -> AsyncGenerator[None]:
        """Acquire the locks for *paths* (deduplicated, in sorted order)."""
        ordered = sorted(set(paths))
        for path in ordered:
            if path not in self._locks:
                self._locks[path] = asyncio.Lock()
                self._users[path] = 0
            self._users[path] += 1
        acquired: list[str] = []
        try:
            for path in ordered:
                await self._locks[path].acquire()
                acquired.append(path)
            yield
        finally:
            for path in reversed(acquired):
                self._locks[path].release()
            for path in ordered:
                self._users[path] -= 1
                if self._users[path] == 0:
                    del self._users[path]
                    del self._locks[path]
