# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Gateway authentication middleware.

Authentication happens upstream. The gateway forwards the verified identity
as trusted headers, which this middleware turns into request.state.auth:

    X-Organization-Id: 3f0c...
    X-User-Roles: admin,teacher
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = "X-Organization-Id"
ROLES_HEADER = "X-User-Roles"

# Paths that don't carry an auth context
PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})


class AuthContext:
    """Pre-validated caller context.

    Attributes:
        organization_id: Organization the caller acts for.
        roles: Role codes held by the caller.
    """

    def __init__(self, organization_id: str, roles: list[str] | tuple[str, ...]) -> None:
        self.organization_id = organization_id
        self.roles = tuple(roles)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        """Check if the caller is an organization admin."""
        return self.has_role("admin")

    def __repr__(self) -> str:
        return f"<AuthContext(organization_id={self.organization_id}, roles={list(self.roles)})>"


class AuthMiddleware(BaseHTTPMiddleware):
    """Populate request.state.auth from gateway headers.

    Requests without the headers continue with request.state.auth = None;
    endpoints decide whether that is acceptable.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.auth = None

        if request.url.path not in PUBLIC_PATHS:
            request.state.auth = parse_auth_headers(
                request.headers.get(ORGANIZATION_HEADER),
                request.headers.get(ROLES_HEADER),
            )
            if request.state.auth is not None:
                logger.debug("Request for organization %s", request.state.auth.organization_id)

        return await call_next(request)


def parse_auth_headers(organization_id: str | None, roles: str | None) -> AuthContext | None:
    """Build an AuthContext from raw header values, or None if absent."""
    if not organization_id or not organization_id.strip():
        return None
    role_list = [role.strip().lower() for role in (roles or "").split(",") if role.strip()]
    return AuthContext(organization_id.strip(), role_list)


def get_auth_context(request: Request) -> AuthContext | None:
    """Get the auth context from request state."""
    return getattr(request.state, "auth", None)
