"""Catalog entry model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from filecatalog.models.base import Base

# Marker value for rows flagged during the mark phase of a synchronization.
UNCONFIRMED = 0


class EntryKind(StrEnum):
    """Type of filesystem object."""

    FILE = "file"
    DIRECTORY = "directory"


class Importance(StrEnum):
    """User-assigned importance level."""

    NORMAL = "normal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Search ordering, highest first.
IMPORTANCE_RANK: dict[Importance, int] = {
    Importance.HIGH: 3,
    Importance.MEDIUM: 2,
    Importance.NORMAL: 1,
    Importance.LOW: 0,
}


def _string_enum(enum_cls: type[StrEnum]) -> Enum:
    """Store a StrEnum by value in a plain VARCHAR column."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


class CatalogEntry(Base):
    """One filesystem object observed by a scan or created through the catalog."""

    __tablename__ = "catalog_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[EntryKind] = mapped_column(_string_enum(EntryKind), nullable=False)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    parent_path: Mapped[str] = mapped_column(Text, nullable=False)
    # Scan-invariant user metadata: only update_metadata writes these.
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="")
    importance: Mapped[Importance] = mapped_column(
        _string_enum(Importance), nullable=False, default=Importance.NORMAL
    )
    last_scanned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=UNCONFIRMED)

    __table_args__ = (
        Index("idx_entries_parent_path", "parent_path"),
        Index("idx_entries_name", "name"),
    )

    def __repr__(self) -> str:
        return f"CatalogEntry(id={self.id[:12]!r}, path={self.path!r}, kind={self.kind.value!r})"
