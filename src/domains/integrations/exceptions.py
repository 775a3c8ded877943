# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the integrations domain."""


class IntegrationError(Exception):
    """Base exception for external platform integration errors."""

    pass


class IntegrationConfigurationError(IntegrationError):
    """Raised for configuration problems. These are never retried."""

    pass


class UnsupportedPlatformError(IntegrationConfigurationError):
    """Raised when a platform identifier is not one of the supported vendors."""

    def __init__(self, platform: object) -> None:
        super().__init__(f"Unsupported platform: {platform!r}")
        self.platform = platform


class PlatformNotConfiguredError(IntegrationConfigurationError):
    """Raised when an organization has no config for the platform."""

    pass


class PlatformDisabledError(IntegrationConfigurationError):
    """Raised when syncing a platform whose config is disabled."""

    pass


class InvalidCredentialsError(IntegrationConfigurationError):
    """Raised when stored credentials fail validation."""

    pass


class SyncInProgressError(IntegrationError):
    """Raised when another sync run already holds the platform config."""

    pass


class SyncTimeoutError(IntegrationError):
    """Raised when a sync run exceeds its deadline."""

    pass


class VendorAPIError(IntegrationError):
    """Raised inside adapters for a vendor response that cannot be used.

    Attributes:
        status_code: HTTP status returned by the vendor, if any.
        body: Leading part of the response body.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body[:200]
