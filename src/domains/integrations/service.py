# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration service for the admin integrations screen.

Wraps config management, connection tests and progress reporting. Sync runs
themselves live in PlatformSyncService.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.integrations import connection_test
from src.domains.integrations.connection_test import ConnectionTestResult
from src.domains.integrations.exceptions import PlatformNotConfiguredError
from src.domains.integrations.repository import (
    DEFAULT_PROGRESS_LIMIT,
    IntegrationRepository,
    ProgressRow,
)
from src.domains.integrations.types import ExternalPlatform, ProgressStatus
from src.infrastructure.database.models.tenant.integration import PlatformConfig

logger = logging.getLogger(__name__)


@dataclass
class ProgressSummary:
    """Aggregate figures over a set of progress rows."""

    total_courses: int = 0
    completed_courses: int = 0
    completion_rate: int = 0
    platform_counts: dict[str, int] = field(default_factory=dict)
    most_active_platform: str | None = None

    @classmethod
    def from_rows(cls, rows: list[ProgressRow]) -> "ProgressSummary":
        total = len(rows)
        completed = sum(1 for row in rows if row.status == ProgressStatus.COMPLETED.value)
        counts = Counter(row.platform for row in rows)
        return cls(
            total_courses=total,
            completed_courses=completed,
            completion_rate=round(completed / total * 100) if total else 0,
            platform_counts=dict(counts),
            most_active_platform=counts.most_common(1)[0][0] if counts else None,
        )


@dataclass
class ProgressReport:
    rows: list[ProgressRow]
    summary: ProgressSummary


class IntegrationService:
    """Service for managing external platform integrations.

    Attributes:
        _db: Async database session.
        _repo: Integration repository.
    """

    def __init__(self, db: AsyncSession, repository: IntegrationRepository | None = None) -> None:
        self._db = db
        self._repo = repository or IntegrationRepository(db)

    async def list_configs(self, organization_id: str) -> list[PlatformConfig]:
        return await self._repo.get_platform_configs(organization_id)

    async def save_config(
        self,
        organization_id: str,
        platform: str | ExternalPlatform,
        credentials: Mapping[str, str],
        sync_frequency_minutes: int | None = None,
        is_enabled: bool | None = None,
    ) -> PlatformConfig:
        """Create or update a platform config.

        Raises:
            UnsupportedPlatformError: If the platform is not supported.
            ValueError: If the frequency is out of range.
        """
        return await self._repo.upsert_platform_config(
            organization_id,
            ExternalPlatform.parse(platform),
            credentials,
            sync_frequency_minutes=sync_frequency_minutes,
            is_enabled=is_enabled,
        )

    async def test_stored_connection(
        self,
        organization_id: str,
        platform: str | ExternalPlatform,
    ) -> ConnectionTestResult:
        """Run a connection test with the organization's saved credentials.

        Raises:
            UnsupportedPlatformError: If the platform is not supported.
            PlatformNotConfiguredError: If no config has been saved.
        """
        key = ExternalPlatform.parse(platform)
        config = await self._repo.get_platform_config(organization_id, key)
        if config is None:
            raise PlatformNotConfiguredError(f"Platform {key.value} is not configured")
        result = await connection_test.test_connection(key, config.credentials)
        logger.info(
            "Connection test for %s (organization %s): success=%s",
            key.value,
            organization_id,
            result.success,
        )
        return result

    async def test_credentials(
        self,
        platform: str | ExternalPlatform,
        credentials: Mapping[str, str],
    ) -> ConnectionTestResult:
        """Run a connection test with credentials that are not saved yet."""
        return await connection_test.test_connection(platform, credentials)

    async def get_progress_report(
        self,
        organization_id: str,
        platform: str | ExternalPlatform | None = None,
        user_id: str | None = None,
        limit: int = DEFAULT_PROGRESS_LIMIT,
        offset: int = 0,
    ) -> ProgressReport:
        """Get progress rows and a summary computed over them.

        Raises:
            UnsupportedPlatformError: If the platform filter is not supported.
        """
        key = ExternalPlatform.parse(platform) if platform else None
        rows = await self._repo.list_external_progress(
            organization_id,
            platform=key,
            user_id=user_id,
            limit=limit,
            offset=offset,
        )
        return ProgressReport(rows=rows, summary=ProgressSummary.from_rows(rows))
