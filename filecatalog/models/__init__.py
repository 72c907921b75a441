"""SQLAlchemy ORM models for FileCatalog."""

from filecatalog.models.base import Base
from filecatalog.models.entry import CatalogEntry, EntryKind, Importance

__all__ = [
    "Base",
    "CatalogEntry",
    "EntryKind",
    "Importance",
]
