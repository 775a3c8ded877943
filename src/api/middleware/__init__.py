# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware."""

from src.api.middleware.auth import AuthContext, AuthMiddleware, get_auth_context

__all__ = ["AuthContext", "AuthMiddleware", "get_auth_context"]
