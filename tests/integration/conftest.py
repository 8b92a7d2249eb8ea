"""Integration test fixtures with a real SQLite database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ee_payroll.database import create_schema
from ee_payroll.persistence.sqlalchemy_store import SqlAlchemyStore


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with the schema in place."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}", echo=False)

    # pysqlite's implicit BEGIN breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for integration tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def store(db_session) -> SqlAlchemyStore:
    """Replace the in-memory store so the shared service fixtures hit the database."""
    return SqlAlchemyStore(db_session)
