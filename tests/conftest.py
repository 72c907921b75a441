"""Shared test fixtures for FileCatalog."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from filecatalog.catalog import Catalog
from filecatalog.config import Settings
from filecatalog.main import create_app
from filecatalog.models.base import Base

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (engine, schema,
    catalog handle) because ASGITransport does not trigger it.
    """
    from filecatalog.database import create_engine as create_db_engine
    from filecatalog.database import init_schema

    app = create_app(settings)

    engine, session_factory = create_db_engine(settings)
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.settings = settings
    await init_schema(engine)
    app.state.catalog = Catalog(session_factory, settings)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await engine.dispose()


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Create a small directory tree to scan.

    tree/
      docs/
        report.docx
      photo.jpg
      clip.mp4
      notes.txt
    """
    root = tmp_path / "tree"
    root.mkdir()
    (root / "docs").mkdir()
    (root / "docs" / "report.docx").write_bytes(b"PK\x03\x04")
    (root / "photo.jpg").write_bytes(b"\xff\xd8\xff" + b"0" * 97)
    (root / "clip.mp4").write_bytes(b"\x00" * 10)
    (root / "notes.txt").write_text("hello")
    return root


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with a temporary database."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
    )


@pytest.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Create a test database engine with the catalog schema."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog(
    session_factory: async_sessionmaker[AsyncSession], test_settings: Settings
) -> Catalog:
    """Create an isolated catalog handle for one test."""
    return Catalog(session_factory, test_settings)


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create test HTTP client with the app state initialized."""
    async with create_test_client(test_settings) as ac:
        yield ac
