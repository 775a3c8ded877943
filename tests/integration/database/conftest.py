# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Runs against an in-memory SQLite database through aiosqlite, or against
TEST_DATABASE_URL when it is set.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.infrastructure.database.models.base import Base
from src.infrastructure.database.models.tenant.user import Profile, UserRole


@pytest.fixture(scope="session")
def test_db_url() -> str:
    """Get database URL for tests."""
    return os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let pysqlite hand transaction control to SQLAlchemy.

    Without this the driver's own BEGIN handling breaks SAVEPOINT.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def db_engine(test_db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine with a fresh schema."""
    if test_db_url.startswith("sqlite"):
        engine = create_async_engine(test_db_url, echo=False, poolclass=StaticPool)
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(test_db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def shared_engine(test_db_url: str, tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine whose sessions use separate connections.

    SQLite runs from a file here so one session cannot see another's
    uncommitted writes.
    """
    if test_db_url.startswith("sqlite"):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shared.db'}", echo=False)
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(test_db_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for database tests."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def organization_id() -> str:
    return "org-1"


@pytest_asyncio.fixture
async def roster(db_session: AsyncSession, organization_id: str) -> dict[str, str]:
    """Two students (a@x.com, b@x.com) and a teacher.

    Returns:
        Email to user id for the seeded profiles.
    """
    people = [
        ("u-ada", "a@x.com", "Ada Lovelace", "student"),
        ("u-bob", "b@x.com", "Bob Byte", "student"),
        ("u-tom", "t@x.com", "Tom Teacher", "teacher"),
    ]
    for user_id, email, name, role in people:
        db_session.add(Profile(id=user_id, organization_id=organization_id, email=email, full_name=name))
    await db_session.flush()
    for user_id, _, _, role in people:
        db_session.add(UserRole(organization_id=organization_id, user_id=user_id, role=role))
    await db_session.commit()
    return {email: user_id for user_id, email, _, _ in people}
