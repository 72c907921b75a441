"""Catalog entry schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from filecatalog.models.entry import EntryKind, Importance
from filecatalog.services.datetime_service import format_iso
from filecatalog.services.tag_service import split_tags

if TYPE_CHECKING:
    from filecatalog.models.entry import CatalogEntry


class EntryResponse(BaseModel):
    """Catalog entry as returned by the API."""

    id: str
    path: str
    name: str
    kind: EntryKind
    size: int | None = None
    modified_at: str | None = None
    created_at: str | None = None
    parent_path: str
    tags: str = ""
    tag_list: list[str] = Field(default_factory=list)
    importance: Importance = Importance.NORMAL

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> EntryResponse:
        """Build a response from an ORM row."""
        return cls(
            id=entry.id,
            path=entry.path,
            name=entry.name,
            kind=entry.kind,
            size=entry.size,
            modified_at=format_iso(entry.modified_at) if entry.modified_at else None,
            created_at=format_iso(entry.created_at) if entry.created_at else None,
            parent_path=entry.parent_path,
            tags=entry.tags,
            tag_list=split_tags(entry.tags),
            importance=entry.importance,
        )


class MetadataUpdate(BaseModel):
    """Request to change an entry's user metadata. Omitted fields stay unchanged."""

    tags: str | None = Field(default=None, max_length=4096)
    importance: Importance | None = None


class EntryCreate(BaseModel):
    """Request to create a file or directory."""

    parent_path: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=255)
    kind: EntryKind = EntryKind.FILE


class EntryRename(BaseModel):
    """Request to rename an entry."""

    new_name: str = Field(min_length=1, max_length=255)


class EntryDeleteResponse(BaseModel):
    """Response after deleting an entry."""

    id: str
    deleted: bool = True
    removed_entries: int = Field(default=0, ge=0)
