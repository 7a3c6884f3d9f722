"""
Database — declarative base, engine setup and dialect helpers.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


type SessionFactory = async_sessionmaker[AsyncSession]


SQLITE_BUSY_TIMEOUT_MS = 30_000


def _sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Writers wait for the lock instead of failing with 'database is locked'."""
    cursor = dbapi_connection.cursor()
    cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


def open_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Async engine for `url`; SQLite connections get a busy timeout."""
    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _sqlite_pragmas)
    return engine


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    echo: bool = False,
) -> tuple[SessionFactory, AsyncEngine]:
    """
    Create the schema and return (session_factory, engine).

    Note: concurrent checkouts need a file or server database; every
    connection to sqlite ':memory:' is a separate database.
    """
    engine = open_engine(url, echo=echo)
    await create_schema(engine)
    return async_sessionmaker(engine, expire_on_commit=False), engine


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def insert_if_absent(session: AsyncSession, table: Any, values: dict[str, Any], *keys: str) -> Any:
    """
    INSERT ... ON CONFLICT DO NOTHING for the session's dialect.

    `rowcount` of the executed statement tells whether the row was inserted.
    """
    dialect = session.get_bind().dialect.name
    match dialect:
        case "postgresql":
            stmt: Any = postgresql.insert(table).values(**values)
        case "sqlite":
            stmt = sqlite.insert(table).values(**values)
        case _:
            raise NotImplementedError(f"insert-if-absent is not available for {dialect}")
    return stmt.on_conflict_do_nothing(index_elements=list(keys))


__all__ = (
    "Base",
    "SessionFactory",
    "open_engine",
    "create_database",
    "create_schema",
    "insert_if_absent",
)
