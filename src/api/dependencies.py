# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Example:
    @router.get("")
    async def list_integrations(
        db: AsyncSession = Depends(get_db),
        auth: AuthContext = Depends(require_admin),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import AuthContext, get_auth_context
from src.core.config import get_settings
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)
from src.infrastructure.database.migrations.runner import run_migrations

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize database connections, migrating first when configured."""
    settings = get_settings()
    if settings.database.auto_migrate:
        applied = await run_migrations(settings.database.url)
        logger.info("Applied %d schema migrations", len(applied))
    await init_database(settings)


async def close_db() -> None:
    """Close database connections."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits when the request succeeds.

    Yields:
        AsyncSession.
    """
    async with get_session() as session:
        yield session


def require_auth(request: Request) -> AuthContext:
    """Require an auth context.

    Raises:
        HTTPException: If the request carries no auth context.
    """
    auth = get_auth_context(request)
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return auth


def require_admin(request: Request) -> AuthContext:
    """Require an organization admin.

    Raises:
        HTTPException: If not authenticated or not admin.
    """
    auth = require_auth(request)
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return auth
