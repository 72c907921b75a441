"""Scan request and result schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from filecatalog.services.sync_service import SyncResult


class ScanRequest(BaseModel):
    """Request to synchronize a directory with the catalog."""

    path: str = Field(min_length=1)
    recursive: bool = False


class ScanResponse(BaseModel):
    """Counters of a completed synchronization."""

    path: str
    files_seen: int = Field(ge=0)
    directories_seen: int = Field(ge=0)
    errors: int = Field(ge=0)

    @classmethod
    def from_result(cls, path: str, result: SyncResult) -> ScanResponse:
        """Build a response from a service result."""
        return cls(
            path=path,
            files_seen=result.files_seen,
            directories_seen=result.directories_seen,
            errors=result.errors,
        )


class CategoryResponse(BaseModel):
    """One category and its extensions."""

    name: str
    extensions: list[str]
