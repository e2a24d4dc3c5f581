from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import Insert, Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.exceptions import DatabaseError

# Module-level engine; tests build their own engine and session factory.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Borrow one session from *session_factory* for the duration of a single
    repository operation.

    Everything issued on the yielded session runs in one transaction that
    commits on normal exit and rolls back on any exception.  The session is
    returned to the pool on every exit path.  SQLAlchemy failures (including
    a failed COMMIT) are re-raised as ``DatabaseError``; every other
    exception propagates unchanged.
    """
    factory = session_factory or async_session
    async with factory() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as exc:
            raise DatabaseError(str(exc)) from exc


def insert_ignoring_conflicts(db: AsyncSession, table: Table, **values) -> Insert:
    """
    Build ``INSERT ... ON CONFLICT DO NOTHING`` for *table* in the dialect
    *db* is bound to.

    The result's ``rowcount`` is 1 when the row was written and 0 when a
    unique or primary key already held it.  Other constraint violations
    still raise.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table)
    else:
        raise NotImplementedError(f"No conflict-tolerant insert for dialect {dialect!r}")
    return stmt.values(**values).on_conflict_do_nothing()
