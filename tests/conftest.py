"""
Test infrastructure for the Conduit persistence layer.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces every session to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- A fresh engine is built for each test and all tables are created before
  and dropped after it, giving each test a clean isolated state.
- The Repository under test receives the test session factory, exactly as
  production code would hand it the module-level ``async_session``.
"""
import uuid

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from conduit import models
from conduit.database import Base
from conduit.repository import Repository
from conduit.schemas import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    """Create all tables on a private in-memory engine, drop them afterwards."""
    engine_test = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine_test
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine_test.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """
    Yield a live AsyncSession for tests that drive the storage adapters
    directly (e.g. seeding data, asserting row state).
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def repository(session_factory) -> Repository:
    return Repository(session_factory)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def create_user(session_factory, repository):
    """
    Factory fixture: insert a user row (registration is not part of this
    package) and return it as a domain ``User``.
    """

    async def _create_user(
        username: str,
        email: str | None = None,
        user_id: uuid.UUID | None = None,
        bio: str | None = None,
    ) -> User:
        row = models.User(
            id=user_id or uuid.uuid4(),
            username=username,
            email=email or f"{username}@example.com",
            bio=bio,
        )
        async with session_factory() as session:
            session.add(row)
            await session.commit()
        return await repository.get_by_id(row.id)

    return _create_user


@pytest_asyncio.fixture
async def alice(create_user) -> User:
    return await create_user(
        "alice", user_id=uuid.UUID("11111111-1111-1111-1111-111111111111"), bio="Writes things"
    )


@pytest_asyncio.fixture
async def bob(create_user) -> User:
    return await create_user("bob")


@pytest_asyncio.fixture
async def viewer(create_user) -> User:
    return await create_user("victor")
