# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External platform sync service.

Drives one platform's end-to-end sync for one organization.

The sync process:
1. Load the organization's student roster and their emails
2. Fetch enrollments from the vendor adapter for roster emails
3. Reconcile vendor emails to local users and upsert enrollments
4. Fetch progress for the fetched enrollments and upsert it

Enrollment fetching always completes before progress fetching starts, since
progress is filtered by the enrollment list. Platforms are never synced in
parallel, to stay within vendor rate limits.

Example:
    >>> sync = PlatformSyncService(db)
    >>> result = await sync.run_platform_sync(organization_id, "coursera")
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import IntegrationSettings, get_settings
from src.domains.integrations.exceptions import (
    InvalidCredentialsError,
    PlatformDisabledError,
    PlatformNotConfiguredError,
    SyncInProgressError,
    SyncTimeoutError,
    UnsupportedPlatformError,
)
from src.domains.integrations.reconciler import IdentityReconciler, enrollment_key
from src.domains.integrations.registry import get_adapter
from src.domains.integrations.repository import IntegrationRepository
from src.domains.integrations.types import (
    Credentials,
    ExternalPlatform,
    PlatformAdapter,
    SyncStatus,
)
from src.infrastructure.database.models.tenant.integration import PlatformConfig
from src.utils.datetime import format_iso, utc_now

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "Platform is disabled - skipped"


@dataclass
class SyncResult:
    """Result of one platform sync run.

    Attributes:
        platform: Platform that was synced.
        enrollments_synced: Enrollment rows written.
        progress_synced: Progress rows written.
        errors: Non-fatal problems (vendor issues, failed rows).
        started_at: When the run started.
        completed_at: When the run finished.
    """

    platform: str
    enrollments_synced: int = 0
    progress_synced: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_ms(self) -> int | None:
        """Get sync duration in milliseconds."""
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds() * 1000)
        return None

    @property
    def error_summary(self) -> str | None:
        """Summary stored on the config when a run finished with errors."""
        if not self.errors:
            return None
        return f"Completed with {len(self.errors)} error(s): {self.errors[0]}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "enrollments_synced": self.enrollments_synced,
            "progress_synced": self.progress_synced,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


@dataclass
class PlatformSyncStatus:
    """Projection of a PlatformConfig for status displays."""

    platform: str
    is_enabled: bool
    sync_status: str
    sync_error: str | None
    last_synced_at: datetime | None

    @classmethod
    def from_config(cls, config: PlatformConfig) -> "PlatformSyncStatus":
        return cls(
            platform=config.platform,
            is_enabled=config.is_enabled,
            sync_status=config.sync_status,
            sync_error=config.sync_error,
            last_synced_at=config.last_synced_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "is_enabled": self.is_enabled,
            "sync_status": self.sync_status,
            "sync_error": self.sync_error,
            "last_synced_at": format_iso(self.last_synced_at),
        }


class PlatformSyncService:
    """Service for syncing enrollments and progress from external platforms.

    Attributes:
        _db: Async database session.
        _repo: Integration repository bound to the same session.
        _settings: Integration settings.
        _adapter_lookup: Resolves a platform to its adapter.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: IntegrationSettings | None = None,
        adapter_lookup: Callable[[ExternalPlatform], PlatformAdapter] = get_adapter,
        repository: IntegrationRepository | None = None,
    ) -> None:
        self._db = db
        self._repo = repository or IntegrationRepository(db)
        self._settings = settings or get_settings().integrations
        self._adapter_lookup = adapter_lookup

    # =========================================================================
    # Core sync
    # =========================================================================

    async def sync_platform(
        self,
        organization_id: str,
        platform: str | ExternalPlatform,
        credentials: Credentials,
    ) -> SyncResult:
        """Sync one platform's enrollments and progress for an organization.

        Roster and adapter failures propagate. A failing row is recorded in
        ``errors`` and the loop continues; rows already written are kept.

        Args:
            organization_id: Organization to sync.
            platform: Platform identifier.
            credentials: Vendor credential map.

        Returns:
            SyncResult with the counts of rows written.

        Raises:
            UnsupportedPlatformError: If the platform is not supported.
        """
        platform = ExternalPlatform.parse(platform)
        result = SyncResult(platform=platform.value, started_at=utc_now())

        user_ids = await self._repo.get_student_user_ids(organization_id)
        if not user_ids:
            logger.info("No students in organization %s, nothing to sync", organization_id)
            result.completed_at = utc_now()
            return result

        reconciler = IdentityReconciler.from_profiles(await self._repo.get_profile_emails(user_ids))
        if not len(reconciler):
            logger.info("No student emails in organization %s, nothing to sync", organization_id)
            result.completed_at = utc_now()
            return result

        adapter = self._adapter_lookup(platform)
        enrollments = await adapter.fetch_enrollments(credentials, reconciler.emails, issues=result.errors)

        enrollment_ids: dict[str, str] = {}
        dropped = 0
        for record in enrollments:
            user_id = reconciler.match(record.email)
            if user_id is None:
                dropped += 1
                continue
            key = enrollment_key(record.email, record.external_course_id)
            if key in enrollment_ids:
                continue
            try:
                enrollment_ids[key] = await self._repo.upsert_enrollment(
                    organization_id, user_id, platform, record
                )
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to upsert %s enrollment %s for user %s: %s",
                    platform.value,
                    record.external_course_id,
                    user_id,
                    str(e),
                )
                result.errors.append(f"enrollment {record.external_course_id}: {e}")
                continue
            result.enrollments_synced += 1

        if dropped:
            logger.debug("Dropped %d %s enrollments outside the roster", dropped, platform.value)

        progress_records = await adapter.fetch_progress(credentials, enrollments, issues=result.errors)
        synced_at = utc_now()

        for record in progress_records:
            enrollment_id = enrollment_ids.get(enrollment_key(record.email, record.external_course_id))
            if enrollment_id is None:
                continue
            try:
                await self._repo.upsert_progress(enrollment_id, record, synced_at=synced_at)
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to upsert %s progress for enrollment %s: %s",
                    platform.value,
                    enrollment_id,
                    str(e),
                )
                result.errors.append(f"progress {record.external_course_id}: {e}")
                continue
            result.progress_synced += 1

        result.completed_at = utc_now()
        logger.info(
            "Synced %s for organization %s: %d enrollments, %d progress, %d errors",
            platform.value,
            organization_id,
            result.enrollments_synced,
            result.progress_synced,
            len(result.errors),
        )
        return result

    # =========================================================================
    # Status-managed runs
    # =========================================================================

    async def run_platform_sync(
        self,
        organization_id: str,
        platform: str | ExternalPlatform,
    ) -> SyncResult:
        """Run a sync using the stored config, tracking status on the config.

        Raises:
            UnsupportedPlatformError: Unknown platform identifier.
            PlatformNotConfiguredError: No config for this platform.
            PlatformDisabledError: Config is disabled.
            InvalidCredentialsError: Stored credentials failed validation.
            SyncInProgressError: Another run holds the config.
            SyncTimeoutError: The run exceeded its deadline.
        """
        platform = ExternalPlatform.parse(platform)
        config = await self._repo.get_platform_config(organization_id, platform)
        if config is None:
            raise PlatformNotConfiguredError(f"Platform {platform.value} is not configured")
        if not config.is_enabled:
            raise PlatformDisabledError(f"Platform {platform.value} is disabled")

        credentials = dict(config.credentials or {})
        adapter = self._adapter_lookup(platform)
        if not await adapter.validate_credentials(credentials):
            await self._record_status(organization_id, platform, SyncStatus.ERROR, "Invalid credentials")
            raise InvalidCredentialsError(f"Invalid credentials for {platform.value}")

        stale_before = utc_now() - timedelta(minutes=self._settings.stale_sync_minutes)
        if not await self._repo.try_mark_syncing(organization_id, platform, stale_before):
            raise SyncInProgressError(f"A {platform.value} sync is already running")
        # Other sessions must see "syncing" while the run is in flight.
        await self._db.commit()

        timeout = self._settings.sync_timeout_seconds
        try:
            result = await asyncio.wait_for(
                self.sync_platform(organization_id, platform, credentials),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            message = f"Sync timed out after {timeout:g}s"
            logger.error("%s sync for organization %s: %s", platform.value, organization_id, message)
            await self._record_status(organization_id, platform, SyncStatus.ERROR, message)
            raise SyncTimeoutError(message) from None
        except Exception as e:
            logger.error("%s sync for organization %s failed: %s", platform.value, organization_id, str(e))
            await self._record_status(
                organization_id, platform, SyncStatus.ERROR, str(e) or type(e).__name__
            )
            raise

        await self._record_status(organization_id, platform, SyncStatus.IDLE, result.error_summary)
        return result

    async def _record_status(
        self,
        organization_id: str,
        platform: ExternalPlatform,
        status: SyncStatus,
        error: str | None,
    ) -> None:
        """Write and commit the outcome of a run.

        An error outcome that cannot be stored is logged so the caller still
        sees the original failure.
        """
        try:
            await self._repo.update_sync_status(organization_id, platform, status, error)
            await self._db.commit()
        except SQLAlchemyError as e:
            if status != SyncStatus.ERROR:
                raise
            logger.error("Failed to record %s sync error status: %s", platform.value, str(e))
            await self._db.rollback()

    async def sync_all_platforms(self, organization_id: str) -> list[SyncResult]:
        """Sync every configured platform of an organization, one at a time.

        A failing platform is recorded in its result and does not stop the
        others.
        """
        results: list[SyncResult] = []
        for config in await self._repo.get_platform_configs(organization_id):
            if not config.is_enabled:
                results.append(SyncResult(platform=config.platform, errors=[DISABLED_MESSAGE]))
                continue
            try:
                results.append(await self.run_platform_sync(organization_id, config.platform))
            except UnsupportedPlatformError as e:
                logger.warning("Skipping config with unsupported platform %s", config.platform)
                results.append(SyncResult(platform=config.platform, errors=[str(e)]))
            except Exception as e:
                logger.error("Failed to sync %s: %s", config.platform, str(e))
                results.append(SyncResult(platform=config.platform, errors=[str(e)]))
        return results

    async def get_sync_statuses(self, organization_id: str) -> list[PlatformSyncStatus]:
        """Get sync status for every config of an organization."""
        configs = await self._repo.get_platform_configs(organization_id)
        return [PlatformSyncStatus.from_config(config) for config in configs]

    async def get_sync_status(
        self,
        organization_id: str,
        platform: str | ExternalPlatform,
    ) -> PlatformSyncStatus | None:
        """Get sync status for one platform, or None if it is not configured."""
        config = await self._repo.get_platform_config(organization_id, ExternalPlatform.parse(platform))
        if config is None:
            return None
        return PlatformSyncStatus.from_config(config)
