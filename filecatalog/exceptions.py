"""Application-level exception types.

Convention:
- ``EntryNotFoundError`` -- a path or catalog id does not exist (HTTP 404).
- ``EntryConflictError`` -- a create or rename target already exists (HTTP 409).
- ``CatalogValidationError`` -- bad caller input such as an unknown importance
  level or malformed tags. It subclasses ``ValueError`` so the global
  ``ValueError`` handler forwards ``str(exc)`` as the 422 detail.
- ``OSError`` -- filesystem access failures are never wrapped; they propagate
  verbatim and the global handler maps them to 403/500.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog operation failures."""


class EntryNotFoundError(CatalogError):
    """Raised when a catalog id or a filesystem path does not exist."""


class EntryConflictError(CatalogError):
    """Raised when the target of a create or rename already exists."""


class CatalogValidationError(ValueError):
    """Raised for invalid caller input (tags, importance, names, categories)."""

