"""
SheetServer — Application Package Initializer
===============================================

What: Hypermedia request routing and response shaping for a spreadsheet engine.
Who:  Imported by uvicorn (sheetserver.main:app), Alembic and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP ⇄ DispatchRequest / JSON
    ├─────────────────────────────────────┤
    │  Services (dispatch, selection,     │  ← parse → validate → execute
    │  window, metadata, batch loading)   │    → post-process
    ├─────────────────────────────────────┤
    │  Engine + Label Store contracts     │  ← in-memory engine, SQL labels
    ├─────────────────────────────────────┤
    │  Models & Schemas (Data)            │  ← immutable values + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
