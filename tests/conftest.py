"""
SheetServer — Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures (function-scoped, fresh for each test):
    ├── make_cell:          builds a Cell from "B2", "=1+2"
    ├── memory_engine:      a real MemorySpreadsheetEngine
    ├── mock_engine:        MagicMock(spec=SpreadsheetEngine), widths 100 / heights 30
    ├── mock_label_store:   AsyncMock(spec=LabelStore), no labels
    ├── label_session:      AsyncSession on an in-memory aiosqlite database
    └── test_client:        HTTPX AsyncClient against a fresh app with the
                            engine and label store dependencies overridden
"""

import os

# Override settings for testing BEFORE any sheetserver imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from sheetserver.database import Base
from sheetserver.models.delta import Cell, Delta, Formula
from sheetserver.models.reference import CellReference
from sheetserver.services.engine_base import SpreadsheetEngine
from sheetserver.services.label_store import LabelStore
from sheetserver.services.memory_engine import MemorySpreadsheetEngine


@pytest.fixture
def make_cell():
    """
    Usage:
        cell = make_cell("B2", "=1+2")
    """
    def _make(reference: str, text: str = "1", value=None) -> Cell:
        return Cell(CellReference.parse(reference), Formula(text, value))
    return _make


@pytest.fixture
def memory_engine():
    return MemorySpreadsheetEngine("test-sheet")


@pytest.fixture
def mock_engine():
    """
    Engine mock with positive default sizes and empty loads.

    Usage:
        mock_engine.load_cell.return_value = Delta.with_cells([...])
    """
    engine = MagicMock(spec=SpreadsheetEngine)
    engine.column_width.return_value = 100.0
    engine.row_height.return_value = 30.0
    for name in (
        "load_cell", "load_cells", "save_cell", "delete_cell", "fill_cells",
        "insert_columns", "delete_columns", "insert_rows", "delete_rows", "clear_cells",
    ):
        getattr(engine, name).return_value = Delta.EMPTY
    return engine


@pytest.fixture
def mock_label_store():
    store = AsyncMock(spec=LabelStore)
    store.resolve.return_value = None
    store.load.return_value = None
    store.find_similar.return_value = ()
    store.delete.return_value = None
    return store


@pytest_asyncio.fixture
async def label_session():
    """
    Provides an AsyncSession on a private in-memory SQLite database.

    The label_mappings table is created from Base.metadata; nothing leaks
    between tests because each test gets its own engine.
    """
    from sheetserver.models import label  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def test_client(memory_engine, mock_label_store):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from sheetserver.main import create_app
    from sheetserver.routes.spreadsheet import get_engine, get_label_store

    app = create_app()
    app.dependency_overrides[get_engine] = lambda: memory_engine
    app.dependency_overrides[get_label_store] = lambda: mock_label_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
