# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Organization-owned models."""

from src.infrastructure.database.models.tenant.integration import (
    ExternalEnrollment,
    ExternalProgress,
    PlatformConfig,
)
from src.infrastructure.database.models.tenant.user import Profile, UserRole

__all__ = [
    "ExternalEnrollment",
    "ExternalProgress",
    "PlatformConfig",
    "Profile",
    "UserRole",
]
