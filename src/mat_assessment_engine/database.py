"""Async SQLAlchemy engine, session factory and request-scoped session dependency.

The service keeps one process-wide engine created by ``init_database`` at
startup. Each request gets its own AsyncSession from ``get_db_session``; the
whole request runs in one transaction that is committed when the handler
returns and rolled back when it raises, so an answer write and its score
update, or a deactivate/activate swap, are never partially visible.
"""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all mat_ tables."""


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL.

    For SQLite the driver's implicit transaction handling is switched off and
    BEGIN is emitted explicitly, which SQLAlchemy needs for SAVEPOINT
    (``begin_nested``) to behave transactionally.

    Args:
        database_url: SQLAlchemy async URL (postgresql+asyncpg://, sqlite+aiosqlite://).
        echo: Log every SQL statement.

    Returns:
        Configured AsyncEngine.
    """
    engine = create_async_engine(database_url, echo=echo)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):  # type: ignore[no-untyped-def]
            conn.exec_driver_sql("BEGIN")

    return engine


def init_database(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the process-wide engine and session factory.

    Args:
        database_url: SQLAlchemy async URL.
        echo: Log every SQL statement.

    Returns:
        The created engine.
    """
    global _engine, _session_factory

    _engine = create_engine(database_url, echo=echo)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    logger.info("Database initialised", dialect=_engine.dialect.name)
    return _engine


async def create_schema(engine: AsyncEngine) -> None:
    """Create all mat_ tables that do not exist yet (development and tests)."""
    # Imported for its side effect of registering the ORM tables on Base.metadata.
    from mat_assessment_engine.core import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_database() -> None:
    """Dispose the process-wide engine, if any."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session wrapped in a single transaction.

    Yields:
        AsyncSession bound to the process-wide engine.

    Raises:
        RuntimeError: If ``init_database`` has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("init_database() must be called before requesting a session")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
