# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers use multiple threads (--threads N) to process tasks
    concurrently. SQLAlchemy async engines and asyncpg connections are
    bound to specific event loops and cannot be used across different loops.

    This module keeps one persistent event loop and one engine per worker
    thread, and recreates the engine whenever the thread gets a new loop.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Thread-local storage for event loops and engines
_thread_local = threading.local()


def _clear_thread_db_connections() -> None:
    """Forget the current thread's engine.

    The engine belonged to a closed loop, so it is dropped without dispose.
    """
    _thread_local.engine = None
    _thread_local.sessionmaker = None


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the current thread."""
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.event_loop = loop
        _clear_thread_db_connections()

        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def _get_thread_sessionmaker() -> async_sessionmaker[AsyncSession]:
    sessionmaker = getattr(_thread_local, "sessionmaker", None)
    if sessionmaker is None:
        settings = get_settings()
        engine = create_async_engine(settings.database.url, pool_pre_ping=True)
        sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        _thread_local.engine = engine
        _thread_local.sessionmaker = sessionmaker
    return sessionmaker


@asynccontextmanager
async def worker_session() -> AsyncIterator[AsyncSession]:
    """Session for task code, bound to the worker thread's engine.

    Commits when the block exits normally and rolls back otherwise.
    """
    async with _get_thread_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async coroutine in sync Dramatiq worker context.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of coroutine.

    Example:
        @dramatiq.actor
        def my_task(organization_id: str):
            async def _process():
                async with worker_session() as session:
                    ...
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)
