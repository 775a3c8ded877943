# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Persistence for external platform integrations.

Upserts look rows up by their natural composite keys and update them in
place, so re-running a sync never duplicates rows. Each row upsert runs in
its own savepoint: a failing row is rolled back alone and earlier writes of
the same run are kept.

Example:
    >>> repo = IntegrationRepository(db)
    >>> configs = await repo.get_platform_configs(organization_id)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.integrations.types import (
    ExternalPlatform,
    ProgressStatus,
    SyncStatus,
    VendorEnrollment,
    VendorProgress,
)
from src.infrastructure.database.models.tenant.integration import (
    ExternalEnrollment,
    ExternalProgress,
    PlatformConfig,
)
from src.infrastructure.database.models.tenant.user import Profile, UserRole
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

STUDENT_ROLE = "student"
DEFAULT_SYNC_FREQUENCY_MINUTES = 60
MIN_SYNC_FREQUENCY_MINUTES = 15
MAX_SYNC_FREQUENCY_MINUTES = 1440
DEFAULT_PROGRESS_LIMIT = 50
MAX_PROGRESS_LIMIT = 200


@dataclass
class ProgressRow:
    """One row of the unified progress report."""

    user_id: str
    full_name: str
    email: str
    platform: str
    course_title: str
    progress_percentage: int
    status: str
    last_activity_at: datetime | None


def _same(current: Any, new: Any) -> bool:
    if isinstance(current, datetime) or isinstance(new, datetime):
        return ensure_utc(current) == ensure_utc(new)
    return current == new


def _assign(row: Any, values: Mapping[str, Any]) -> bool:
    """Set only attributes whose value changed. Returns True if any did."""
    changed = False
    for name, value in values.items():
        if not _same(getattr(row, name), value):
            setattr(row, name, value)
            changed = True
    return changed


class IntegrationRepository:
    """Data access for platform configs, external enrollments and progress.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # =========================================================================
    # Roster
    # =========================================================================

    async def get_student_user_ids(self, organization_id: str) -> list[str]:
        """Get ids of users holding the student role in the organization."""
        result = await self._db.execute(
            select(UserRole.user_id)
            .where(UserRole.organization_id == organization_id)
            .where(UserRole.role == STUDENT_ROLE)
            .distinct()
        )
        return list(result.scalars().all())

    async def get_profile_emails(self, user_ids: list[str]) -> list[tuple[str, str | None]]:
        """Get (user_id, email) pairs for the given users."""
        if not user_ids:
            return []
        result = await self._db.execute(
            select(Profile.id, Profile.email).where(Profile.id.in_(user_ids)).order_by(Profile.id)
        )
        return [(row.id, row.email) for row in result.all()]

    # =========================================================================
    # Platform configs
    # =========================================================================

    async def get_platform_configs(self, organization_id: str) -> list[PlatformConfig]:
        """List the organization's platform configs ordered by platform."""
        result = await self._db.execute(
            select(PlatformConfig)
            .where(PlatformConfig.organization_id == organization_id)
            .order_by(PlatformConfig.platform)
        )
        return list(result.scalars().all())

    async def get_platform_config(
        self,
        organization_id: str,
        platform: ExternalPlatform,
    ) -> PlatformConfig | None:
        result = await self._db.execute(
            select(PlatformConfig)
            .where(PlatformConfig.organization_id == organization_id)
            .where(PlatformConfig.platform == platform.value)
        )
        return result.scalar_one_or_none()

    async def upsert_platform_config(
        self,
        organization_id: str,
        platform: ExternalPlatform,
        credentials: Mapping[str, str],
        sync_frequency_minutes: int | None = None,
        is_enabled: bool | None = None,
    ) -> PlatformConfig:
        """Create the (organization, platform) config or update it.

        Args:
            organization_id: Owning organization.
            platform: Platform being configured.
            credentials: Credential map, stored as given.
            sync_frequency_minutes: Cadence, 15 to 1440 minutes (default 60).
            is_enabled: Enablement flag (default True).

        Returns:
            The saved config.

        Raises:
            ValueError: If the frequency is outside the allowed range.
        """
        frequency = (
            DEFAULT_SYNC_FREQUENCY_MINUTES if sync_frequency_minutes is None else sync_frequency_minutes
        )
        if not MIN_SYNC_FREQUENCY_MINUTES <= frequency <= MAX_SYNC_FREQUENCY_MINUTES:
            raise ValueError(
                f"sync_frequency_minutes must be between {MIN_SYNC_FREQUENCY_MINUTES} "
                f"and {MAX_SYNC_FREQUENCY_MINUTES}"
            )

        config = await self.get_platform_config(organization_id, platform)
        values = {
            "credentials": dict(credentials),
            "sync_frequency_minutes": frequency,
            "is_enabled": True if is_enabled is None else is_enabled,
        }
        if config is None:
            config = PlatformConfig(
                organization_id=organization_id,
                platform=platform.value,
                sync_status=SyncStatus.IDLE.value,
                **values,
            )
            self._db.add(config)
            logger.info("Created %s config for organization %s", platform.value, organization_id)
        else:
            _assign(config, values)
            logger.info("Updated %s config for organization %s", platform.value, organization_id)

        await self._db.flush()
        return config

    async def update_sync_status(
        self,
        organization_id: str,
        platform: ExternalPlatform,
        status: SyncStatus,
        error: str | None = None,
    ) -> PlatformConfig | None:
        """Record a sync status change.

        ``idle`` stamps ``last_synced_at``; other statuses leave it untouched.
        ``sync_error`` is replaced by ``error`` (cleared when it is empty).
        """
        config = await self.get_platform_config(organization_id, platform)
        if config is None:
            return None

        config.sync_status = status.value
        config.sync_error = error or None
        if status is SyncStatus.IDLE:
            config.last_synced_at = utc_now()
        await self._db.flush()
        return config

    async def try_mark_syncing(
        self,
        organization_id: str,
        platform: ExternalPlatform,
        stale_before: datetime,
    ) -> bool:
        """Atomically move a config to ``syncing``.

        Succeeds when the config is not already syncing, or when its syncing
        mark was last touched before ``stale_before`` (a run that died).

        Returns:
            True if this caller now owns the run.
        """
        result = await self._db.execute(
            update(PlatformConfig)
            .where(PlatformConfig.organization_id == organization_id)
            .where(PlatformConfig.platform == platform.value)
            .where(
                or_(
                    PlatformConfig.sync_status != SyncStatus.SYNCING.value,
                    PlatformConfig.updated_at < stale_before,
                )
            )
            .values(
                sync_status=SyncStatus.SYNCING.value,
                sync_error=None,
                updated_at=utc_now(),
            )
            .returning(PlatformConfig.id)
            .execution_options(synchronize_session=False)
        )
        config_id = result.scalar_one_or_none()
        if config_id is None:
            return False

        # Reload a copy already in the session so later status writes diff
        # against "syncing".
        await self._db.execute(
            select(PlatformConfig)
            .where(PlatformConfig.id == config_id)
            .execution_options(populate_existing=True)
        )
        return True

    async def get_due_platform_configs(self, now: datetime | None = None) -> list[PlatformConfig]:
        """List enabled, non-syncing configs whose cadence has elapsed."""
        now = ensure_utc(now) or utc_now()
        result = await self._db.execute(
            select(PlatformConfig)
            .where(PlatformConfig.is_enabled.is_(True))
            .where(PlatformConfig.sync_status != SyncStatus.SYNCING.value)
            .order_by(PlatformConfig.organization_id, PlatformConfig.platform)
        )
        due = []
        for config in result.scalars().all():
            last = ensure_utc(config.last_synced_at)
            if last is None or last + timedelta(minutes=config.sync_frequency_minutes) <= now:
                due.append(config)
        return due

    # =========================================================================
    # Enrollments and progress
    # =========================================================================

    async def upsert_enrollment(
        self,
        organization_id: str,
        user_id: str,
        platform: ExternalPlatform,
        record: VendorEnrollment,
    ) -> str:
        """Upsert an enrollment keyed by (organization, user, platform, course).

        Returns:
            The enrollment id (existing or newly generated).
        """
        async with self._db.begin_nested():
            result = await self._db.execute(
                select(ExternalEnrollment)
                .where(ExternalEnrollment.organization_id == organization_id)
                .where(ExternalEnrollment.user_id == user_id)
                .where(ExternalEnrollment.platform == platform.value)
                .where(ExternalEnrollment.external_course_id == record.external_course_id)
            )
            enrollment = result.scalar_one_or_none()

            if enrollment is None:
                enrollment = ExternalEnrollment(
                    organization_id=organization_id,
                    user_id=user_id,
                    platform=platform.value,
                    external_course_id=record.external_course_id,
                    external_course_title=record.course_title,
                    enrolled_at=record.enrolled_at,
                )
                self._db.add(enrollment)
            else:
                values: dict[str, Any] = {"external_course_title": record.course_title}
                # A vendor feed without enrollment dates must not erase a known one.
                if record.enrolled_at is not None:
                    values["enrolled_at"] = record.enrolled_at
                _assign(enrollment, values)

            await self._db.flush()
            return enrollment.id

    async def upsert_progress(
        self,
        enrollment_id: str,
        record: VendorProgress,
        synced_at: datetime | None = None,
    ) -> str:
        """Upsert the single progress row of an enrollment.

        Returns:
            The progress row id.
        """
        values: dict[str, Any] = {
            "progress_percentage": max(0, min(100, record.percentage)),
            "status": ProgressStatus(record.status).value,
            "completed_at": record.completed_at,
            "time_spent_minutes": record.minutes_spent,
            "last_activity_at": record.last_activity_at,
            "synced_at": synced_at or utc_now(),
        }

        async with self._db.begin_nested():
            result = await self._db.execute(
                select(ExternalProgress).where(ExternalProgress.external_enrollment_id == enrollment_id)
            )
            progress = result.scalar_one_or_none()

            if progress is None:
                progress = ExternalProgress(external_enrollment_id=enrollment_id, **values)
                self._db.add(progress)
            else:
                _assign(progress, values)

            await self._db.flush()
            return progress.id

    async def list_external_progress(
        self,
        organization_id: str,
        platform: ExternalPlatform | None = None,
        user_id: str | None = None,
        limit: int = DEFAULT_PROGRESS_LIMIT,
        offset: int = 0,
    ) -> list[ProgressRow]:
        """List unified progress rows (enrollment, progress and profile).

        Args:
            organization_id: Organization to report on.
            platform: Optional platform filter.
            user_id: Optional user filter.
            limit: Page size, capped at 200.
            offset: Rows to skip.

        Returns:
            Progress rows; enrollments without progress report 0% in progress.
        """
        limit = max(1, min(limit, MAX_PROGRESS_LIMIT))
        offset = max(0, offset)

        query = (
            select(ExternalEnrollment, ExternalProgress, Profile.full_name, Profile.email)
            .join(Profile, Profile.id == ExternalEnrollment.user_id)
            .outerjoin(
                ExternalProgress,
                ExternalProgress.external_enrollment_id == ExternalEnrollment.id,
            )
            .where(ExternalEnrollment.organization_id == organization_id)
        )
        if platform is not None:
            query = query.where(ExternalEnrollment.platform == platform.value)
        if user_id is not None:
            query = query.where(ExternalEnrollment.user_id == user_id)

        query = query.order_by(
            ExternalEnrollment.platform,
            ExternalEnrollment.external_course_title,
            ExternalEnrollment.id,
        ).limit(limit).offset(offset)

        result = await self._db.execute(query)
        rows = []
        for enrollment, progress, full_name, email in result.all():
            rows.append(
                ProgressRow(
                    user_id=enrollment.user_id,
                    full_name=full_name or "Unknown",
                    email=email or "",
                    platform=enrollment.platform,
                    course_title=enrollment.external_course_title,
                    progress_percentage=progress.progress_percentage if progress else 0,
                    status=progress.status if progress else ProgressStatus.IN_PROGRESS.value,
                    last_activity_at=ensure_utc(progress.last_activity_at) if progress else None,
                )
            )
        return rows

    async def count_enrollments(self, organization_id: str, platform: ExternalPlatform | None = None) -> int:
        """Count stored enrollments for an organization."""
        query = select(func.count(ExternalEnrollment.id)).where(
            ExternalEnrollment.organization_id == organization_id
        )
        if platform is not None:
            query = query.where(ExternalEnrollment.platform == platform.value)
        result = await self._db.execute(query)
        return int(result.scalar_one())
