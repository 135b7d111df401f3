"""
SheetServer — Database Session Management
===========================================

What:  Async SQLAlchemy engine, session factory and declarative Base for the
       label store.
How:   One async engine per process. Pool sizing applies to server databases
       only; SQLite URLs get SQLAlchemy's default pool for the driver.
Who:   SqlLabelStore opens sessions from `async_session_factory`; the health
       route pings `engine`; the lifespan handler calls init_models() and
       dispose_engine().
When:  Engine is created at module import; sessions are created per operation.

Connection Pooling Strategy (PostgreSQL via asyncpg):
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from sheetserver.config import settings


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    # SQLite pools (StaticPool / NullPool) reject sizing arguments
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: rows stay readable after commit, outside the session
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Models register with Base.metadata, which Alembic autogenerate and
    init_models() both read.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provides a session that commits on success and rolls back on error.

    Usage:
        async with async_session_factory() as session: ...   # inside services
        db: AsyncSession = Depends(get_db_session)           # inside routes
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def init_models(bind: AsyncEngine = engine) -> None:
    """
    What:  Creates missing tables from Base.metadata.
    When:  Called during application startup for SQLite databases; server
           databases are migrated with Alembic instead.
    """
    # Import registers LabelMappingRow with Base.metadata
    from sheetserver.models import label  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
