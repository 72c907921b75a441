"""Application configuration loaded from environment variables."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RenamePolicy(StrEnum):
    """What happens to catalog rows below a renamed directory."""

    RECURSIVE = "recursive"
    STALE = "stale"


class Settings(BaseSettings):
    """FileCatalog application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/filecatalog.db"

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)

    # Catalog behaviour
    search_result_limit: int = Field(default=1000, ge=1)
    category_result_limit: int = Field(default=1000, ge=1)
    rename_policy: RenamePolicy = RenamePolicy.RECURSIVE
    max_scan_depth: int = Field(default=16, ge=0)
    follow_symlinks: bool = False
    default_scan_path: Path | None = None
