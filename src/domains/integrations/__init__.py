# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External learning-platform integrations domain.

This package provides:
- Vendor adapters (Coursera, Pluralsight, Udemy Business) and their registry
- Connection testing before credentials are saved
- Identity reconciliation by email
- The sync service that writes external enrollments and progress
"""

from src.domains.integrations.exceptions import (
    IntegrationConfigurationError,
    IntegrationError,
    InvalidCredentialsError,
    PlatformDisabledError,
    PlatformNotConfiguredError,
    SyncInProgressError,
    SyncTimeoutError,
    UnsupportedPlatformError,
    VendorAPIError,
)
from src.domains.integrations.registry import get_adapter, reset_adapters
from src.domains.integrations.service import IntegrationService
from src.domains.integrations.sync_service import PlatformSyncService, SyncResult
from src.domains.integrations.types import (
    PLATFORM_METADATA,
    EnrollmentRef,
    ExternalPlatform,
    VendorEnrollment,
    VendorProgress,
)

__all__ = [
    "EnrollmentRef",
    "ExternalPlatform",
    "IntegrationConfigurationError",
    "IntegrationError",
    "IntegrationService",
    "InvalidCredentialsError",
    "PLATFORM_METADATA",
    "PlatformDisabledError",
    "PlatformNotConfiguredError",
    "PlatformSyncService",
    "SyncInProgressError",
    "SyncResult",
    "SyncTimeoutError",
    "UnsupportedPlatformError",
    "VendorAPIError",
    "VendorEnrollment",
    "VendorProgress",
    "get_adapter",
    "reset_adapters",
]
