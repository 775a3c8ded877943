# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared types for external learning-platform integrations.

Adapters translate each vendor's wire format into the records defined here.
The records are transient: they reach storage only through the sync
service's reconciliation step.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping, Protocol, runtime_checkable

from src.domains.integrations.exceptions import UnsupportedPlatformError

Credentials = Mapping[str, str]


class ExternalPlatform(str, Enum):
    """Supported external learning platforms."""

    COURSERA = "coursera"
    PLURALSIGHT = "pluralsight"
    UDEMY = "udemy"

    @classmethod
    def parse(cls, value: "str | ExternalPlatform") -> "ExternalPlatform":
        """Convert a raw identifier into a platform.

        Raises:
            UnsupportedPlatformError: If the value names no supported platform.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedPlatformError(value) from None


class SyncStatus(str, Enum):
    """PlatformConfig sync status."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


class ProgressStatus(str, Enum):
    """Course progress status."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class PlatformInfo:
    """Static description of a platform for admin screens."""

    name: str
    auth_type: str
    required_keys: tuple[str, ...]
    color: str


PLATFORM_METADATA: dict[ExternalPlatform, PlatformInfo] = {
    ExternalPlatform.COURSERA: PlatformInfo(
        name="Coursera",
        auth_type="oauth2",
        required_keys=("client_id", "client_secret", "org_slug"),
        color="#0056D2",
    ),
    ExternalPlatform.PLURALSIGHT: PlatformInfo(
        name="Pluralsight",
        auth_type="api_key",
        required_keys=("api_token", "plan_id"),
        color="#E80A89",
    ),
    ExternalPlatform.UDEMY: PlatformInfo(
        name="Udemy Business",
        auth_type="basic",
        required_keys=("api_key", "account_id"),
        color="#A435F0",
    ),
}


def missing_credential_keys(platform: ExternalPlatform, credentials: Credentials | None) -> list[str]:
    """Return the required credential keys that are absent or blank."""
    credentials = credentials or {}
    return [
        key
        for key in PLATFORM_METADATA[platform].required_keys
        if not str(credentials.get(key) or "").strip()
    ]


@dataclass(frozen=True)
class VendorEnrollment:
    """An enrollment as reported by a vendor, normalized.

    Attributes:
        external_course_id: Vendor course identifier.
        course_title: Course title as the vendor names it.
        email: Learner email, spelled as on the organization roster.
        enrolled_at: Enrollment time if the vendor reports one.
    """

    external_course_id: str
    course_title: str
    email: str
    enrolled_at: datetime | None = None


@dataclass(frozen=True)
class VendorProgress:
    """Progress on one course as reported by a vendor, normalized.

    Attributes:
        external_course_id: Vendor course identifier.
        email: Learner email, spelled as on the organization roster.
        percentage: Whole percent in [0, 100].
        status: completed or in_progress.
        completed_at: Completion time if reported.
        minutes_spent: Time spent in minutes if reported.
        last_activity_at: Last learner activity if reported.
    """

    external_course_id: str
    email: str
    percentage: int
    status: ProgressStatus
    completed_at: datetime | None = None
    minutes_spent: int | None = None
    last_activity_at: datetime | None = None


@dataclass(frozen=True)
class EnrollmentRef:
    """An (email, course) pair used to filter progress feeds."""

    external_course_id: str
    email: str


@runtime_checkable
class PlatformAdapter(Protocol):
    """Capability set every vendor adapter provides."""

    platform: ExternalPlatform

    async def validate_credentials(self, credentials: Credentials | None) -> bool:
        ...

    async def fetch_enrollments(
        self,
        credentials: Credentials | None,
        known_emails: list[str],
        issues: list[str] | None = None,
    ) -> list[VendorEnrollment]:
        ...

    async def fetch_progress(
        self,
        credentials: Credentials | None,
        enrollments: list[EnrollmentRef] | list[VendorEnrollment],
        issues: list[str] | None = None,
    ) -> list[VendorProgress]:
        ...
