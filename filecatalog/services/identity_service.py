"""Path canonicalization and path-derived entry identifiers.

Every catalog row is keyed by ``resolve_id(path)``: the SHA-256 digest of the
canonical spelling of its absolute path. Canonicalization is a pure string
transformation so the same physical location always hashes to the same id,
regardless of which host produced the string:

- A path is Windows-style when it starts with a drive letter (``C:``) or a
  backslash. Windows-style paths use backslash separators, an upper-case
  drive letter, and a bare drive (``C:``) means the drive root (``C:\\``).
- Anything else is a POSIX path, where a backslash is an ordinary character.
- Redundant separators and ``.``/``..`` segments are collapsed, and trailing
  separators are dropped except at a root.
"""

from __future__ import annotations

import hashlib
import ntpath
import os
import posixpath
import re
from types import ModuleType

from filecatalog.exceptions import CatalogValidationError

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")
_BARE_DRIVE = re.compile(r"^[A-Za-z]:$")


def is_windows_style(path: str) -> bool:
    """Return True if *path* should be normalized with Windows rules."""
    return bool(_DRIVE_PREFIX.match(path)) or path.startswith("\\")


def canonical_path(path: str) -> str:
    """Return the canonical spelling of *path* without touching the filesystem."""
    if not path:
        raise CatalogValidationError("Path must not be empty")
    if is_windows_style(path):
        candidate = path.replace("/", "\\")
        if _BARE_DRIVE.match(candidate):
            candidate += "\\"
        normalized = ntpath.normpath(candidate)
        if _DRIVE_PREFIX.match(normalized):
            normalized = normalized[0].upper() + normalized[1:]
        return normalized
    normalized = posixpath.normpath(path)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def absolute_path(path: str | os.PathLike[str]) -> str:
    """Expand ``~``, make *path* absolute, and canonicalize it."""
    raw = os.fspath(path)
    if is_windows_style(raw):
        return canonical_path(raw)
    return canonical_path(os.path.abspath(os.path.expanduser(raw)))


def resolve_id(path: str) -> str:
    """Derive the catalog id for *path*: SHA-256 hex of its canonical form."""
    return hashlib.sha256(canonical_path(path).encode("utf-8")).hexdigest()


def _flavour(path: str) -> ModuleType:
    return ntpath if is_windows_style(path) else posixpath


def parent_of(path: str) -> str:
    """Return the canonical parent directory of a canonical path."""
    return canonical_path(_flavour(path).dirname(path))


def join_child(parent: str, name: str) -> str:
    """Return the canonical path of *name* inside the canonical directory *parent*."""
    return canonical_path(_flavour(parent).join(parent, name))


def descendant_prefix(path: str) -> str:
    """Return the string every descendant path of *path* starts with."""
    separator = "\\" if is_windows_style(path) else "/"
    return path if path.endswith(separator) else path + separator
