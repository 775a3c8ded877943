# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the platform sync service."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from src.core.config.settings import IntegrationSettings
from src.domains.integrations.exceptions import (
    InvalidCredentialsError,
    PlatformDisabledError,
    PlatformNotConfiguredError,
    SyncInProgressError,
    SyncTimeoutError,
    UnsupportedPlatformError,
)
from src.domains.integrations.repository import IntegrationRepository
from src.domains.integrations.sync_service import (
    DISABLED_MESSAGE,
    PlatformSyncService,
    SyncResult,
)
from src.domains.integrations.types import (
    ExternalPlatform,
    ProgressStatus,
    SyncStatus,
    VendorEnrollment,
    VendorProgress,
)
from src.infrastructure.database.models.tenant.integration import PlatformConfig

ORG = "org-1"


class FakeAdapter:
    """Adapter double returning canned records and recording calls."""

    platform = ExternalPlatform.COURSERA

    def __init__(self, enrollments=None, progress=None, valid=True, issues=None, delay=0.0):
        self.enrollments = enrollments or []
        self.progress = progress or []
        self.valid = valid
        self.issues = issues or []
        self.delay = delay
        self.enrollment_calls: list = []
        self.progress_calls: list = []

    async def validate_credentials(self, credentials):
        return self.valid

    async def fetch_enrollments(self, credentials, known_emails, issues=None):
        self.enrollment_calls.append(list(known_emails))
        if self.delay:
            await asyncio.sleep(self.delay)
        if issues is not None:
            issues.extend(self.issues)
        return list(self.enrollments)

    async def fetch_progress(self, credentials, enrollments, issues=None):
        self.progress_calls.append(list(enrollments))
        return list(self.progress)


def enrollment(email: str, course: str) -> VendorEnrollment:
    return VendorEnrollment(external_course_id=course, course_title=f"Course {course}", email=email)


def progress(email: str, course: str, pct: int = 50) -> VendorProgress:
    status = ProgressStatus.COMPLETED if pct >= 100 else ProgressStatus.IN_PROGRESS
    return VendorProgress(external_course_id=course, email=email, percentage=pct, status=status)


def make_config(platform: str = "coursera", enabled: bool = True) -> PlatformConfig:
    return PlatformConfig(
        id=f"cfg-{platform}",
        organization_id=ORG,
        platform=platform,
        is_enabled=enabled,
        credentials={"client_id": "cid", "client_secret": "s", "org_slug": "acme"},
        sync_frequency_minutes=60,
        sync_status="idle",
    )


@pytest.fixture
def mock_repo():
    """Create mock repository with a two-student roster."""
    repo = AsyncMock(spec=IntegrationRepository)
    repo.get_student_user_ids.return_value = ["u1", "u2"]
    repo.get_profile_emails.return_value = [("u1", "a@x.com"), ("u2", "b@x.com")]
    repo.upsert_enrollment.side_effect = lambda org, user_id, platform, record: (
        f"enr-{user_id}-{record.external_course_id}"
    )
    repo.upsert_progress.return_value = "prog-1"
    repo.try_mark_syncing.return_value = True
    repo.get_platform_config.return_value = make_config()
    return repo


def make_service(repo, adapter, settings=None) -> PlatformSyncService:
    return PlatformSyncService(
        db=AsyncMock(),
        settings=settings or IntegrationSettings(),
        adapter_lookup=lambda platform: adapter,
        repository=repo,
    )


class TestSyncPlatform:
    """Tests for sync_platform."""

    @pytest.mark.asyncio
    async def test_reconciles_and_counts(self, mock_repo):
        adapter = FakeAdapter(
            enrollments=[enrollment("a@x.com", "C1"), enrollment("c@x.com", "C2")],
            progress=[progress("a@x.com", "C1", 40), progress("c@x.com", "C2", 90)],
        )

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.enrollments_synced == 1
        assert result.progress_synced == 1
        assert result.errors == []
        mock_repo.upsert_enrollment.assert_awaited_once()
        _, user_id, platform, record = mock_repo.upsert_enrollment.await_args.args
        assert (user_id, platform, record.external_course_id) == ("u1", ExternalPlatform.COURSERA, "C1")
        assert mock_repo.upsert_progress.await_args.args[0] == "enr-u1-C1"

    @pytest.mark.asyncio
    async def test_roster_emails_passed_to_adapter(self, mock_repo):
        adapter = FakeAdapter()

        await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert sorted(adapter.enrollment_calls[0]) == ["a@x.com", "b@x.com"]

    @pytest.mark.asyncio
    async def test_progress_filtered_by_fetched_enrollments(self, mock_repo):
        fetched = [enrollment("a@x.com", "C1")]
        adapter = FakeAdapter(enrollments=fetched)

        await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert adapter.progress_calls == [fetched]

    @pytest.mark.asyncio
    async def test_mixed_case_vendor_email(self, mock_repo):
        mock_repo.get_profile_emails.return_value = [("u1", "Alice@Example.com")]
        adapter = FakeAdapter(
            enrollments=[enrollment("alice@example.com", "C1")],
            progress=[progress("ALICE@example.com", "C1")],
        )

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.enrollments_synced == 1
        assert result.progress_synced == 1

    @pytest.mark.asyncio
    async def test_duplicate_enrollments_written_once(self, mock_repo):
        adapter = FakeAdapter(enrollments=[enrollment("a@x.com", "C1"), enrollment("A@x.com", "C1")])

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.enrollments_synced == 1
        assert mock_repo.upsert_enrollment.await_count == 1

    @pytest.mark.asyncio
    async def test_no_students_skips_vendor(self, mock_repo):
        mock_repo.get_student_user_ids.return_value = []
        lookup = MagicMock()
        service = PlatformSyncService(
            db=AsyncMock(), settings=IntegrationSettings(), adapter_lookup=lookup, repository=mock_repo
        )

        result = await service.sync_platform(ORG, "udemy", {})

        assert (result.enrollments_synced, result.progress_synced) == (0, 0)
        lookup.assert_not_called()
        mock_repo.get_profile_emails.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_students_without_emails_skip_vendor(self, mock_repo):
        mock_repo.get_profile_emails.return_value = [("u1", None)]
        lookup = MagicMock()
        service = PlatformSyncService(
            db=AsyncMock(), settings=IntegrationSettings(), adapter_lookup=lookup, repository=mock_repo
        )

        result = await service.sync_platform(ORG, "udemy", {})

        assert result.enrollments_synced == 0
        lookup.assert_not_called()

    @pytest.mark.asyncio
    async def test_row_failure_isolated(self, mock_repo):
        mock_repo.upsert_enrollment.side_effect = [SQLAlchemyError("constraint"), "enr-2"]
        adapter = FakeAdapter(
            enrollments=[enrollment("a@x.com", "C1"), enrollment("b@x.com", "C2")],
            progress=[progress("a@x.com", "C1"), progress("b@x.com", "C2")],
        )

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.enrollments_synced == 1
        assert result.progress_synced == 1
        assert len(result.errors) == 1
        assert "C1" in result.errors[0]
        mock_repo.upsert_progress.assert_awaited_once()
        assert mock_repo.upsert_progress.await_args.args[0] == "enr-2"

    @pytest.mark.asyncio
    async def test_progress_failure_isolated(self, mock_repo):
        mock_repo.upsert_progress.side_effect = SQLAlchemyError("check constraint")
        adapter = FakeAdapter(
            enrollments=[enrollment("a@x.com", "C1")],
            progress=[progress("a@x.com", "C1")],
        )

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.enrollments_synced == 1
        assert result.progress_synced == 0
        assert len(result.errors) == 1

    @pytest.mark.asyncio
    async def test_vendor_issues_collected(self, mock_repo):
        adapter = FakeAdapter(issues=["coursera: skipped program p2: boom"])

        result = await make_service(mock_repo, adapter).sync_platform(ORG, "coursera", {})

        assert result.errors == ["coursera: skipped program p2: boom"]

    @pytest.mark.asyncio
    async def test_roster_failure_propagates(self, mock_repo):
        mock_repo.get_student_user_ids.side_effect = SQLAlchemyError("db down")

        with pytest.raises(SQLAlchemyError):
            await make_service(mock_repo, FakeAdapter()).sync_platform(ORG, "coursera", {})

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, mock_repo):
        with pytest.raises(UnsupportedPlatformError):
            await make_service(mock_repo, FakeAdapter()).sync_platform(ORG, "moodle", {})


class TestRunPlatformSync:
    """Tests for status-managed sync runs."""

    @pytest.mark.asyncio
    async def test_success_sets_idle(self, mock_repo):
        adapter = FakeAdapter(enrollments=[enrollment("a@x.com", "C1")])

        result = await make_service(mock_repo, adapter).run_platform_sync(ORG, "coursera")

        assert result.enrollments_synced == 1
        mock_repo.try_mark_syncing.assert_awaited_once()
        mock_repo.update_sync_status.assert_awaited_once_with(
            ORG, ExternalPlatform.COURSERA, SyncStatus.IDLE, None
        )

    @pytest.mark.asyncio
    async def test_syncing_mark_committed_before_vendor_calls(self, mock_repo):
        db = AsyncMock()
        commits_at_fetch: list[int] = []
        adapter = FakeAdapter(enrollments=[enrollment("a@x.com", "C1")])
        original_fetch = adapter.fetch_enrollments

        async def fetch_enrollments(credentials, known_emails, issues=None):
            commits_at_fetch.append(db.commit.await_count)
            return await original_fetch(credentials, known_emails, issues=issues)

        adapter.fetch_enrollments = fetch_enrollments
        service = PlatformSyncService(
            db=db,
            settings=IntegrationSettings(),
            adapter_lookup=lambda platform: adapter,
            repository=mock_repo,
        )

        await service.run_platform_sync(ORG, "coursera")

        assert commits_at_fetch == [1]
        assert db.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_unstorable_error_status_keeps_original_failure(self, mock_repo):
        mock_repo.get_student_user_ids.side_effect = RuntimeError("vendor exploded")
        mock_repo.update_sync_status.side_effect = SQLAlchemyError("db gone")

        with pytest.raises(RuntimeError, match="vendor exploded"):
            await make_service(mock_repo, FakeAdapter()).run_platform_sync(ORG, "coursera")

    @pytest.mark.asyncio
    async def test_row_errors_summarized(self, mock_repo):
        adapter = FakeAdapter(issues=["coursera: skipped program p2: boom", "coursera: other"])

        await make_service(mock_repo, adapter).run_platform_sync(ORG, "coursera")

        mock_repo.update_sync_status.assert_awaited_once_with(
            ORG,
            ExternalPlatform.COURSERA,
            SyncStatus.IDLE,
            "Completed with 2 error(s): coursera: skipped program p2: boom",
        )

    @pytest.mark.asyncio
    async def test_not_configured(self, mock_repo):
        mock_repo.get_platform_config.return_value = None

        with pytest.raises(PlatformNotConfiguredError):
            await make_service(mock_repo, FakeAdapter()).run_platform_sync(ORG, "coursera")

    @pytest.mark.asyncio
    async def test_disabled(self, mock_repo):
        mock_repo.get_platform_config.return_value = make_config(enabled=False)

        with pytest.raises(PlatformDisabledError):
            await make_service(mock_repo, FakeAdapter()).run_platform_sync(ORG, "coursera")

        mock_repo.try_mark_syncing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, mock_repo):
        with pytest.raises(InvalidCredentialsError):
            await make_service(mock_repo, FakeAdapter(valid=False)).run_platform_sync(ORG, "coursera")

        mock_repo.update_sync_status.assert_awaited_once_with(
            ORG, ExternalPlatform.COURSERA, SyncStatus.ERROR, "Invalid credentials"
        )
        mock_repo.try_mark_syncing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_syncing(self, mock_repo):
        mock_repo.try_mark_syncing.return_value = False
        adapter = FakeAdapter()

        with pytest.raises(SyncInProgressError):
            await make_service(mock_repo, adapter).run_platform_sync(ORG, "coursera")

        assert adapter.enrollment_calls == []
        mock_repo.update_sync_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_threshold_passed(self, mock_repo):
        settings = IntegrationSettings(stale_sync_minutes=30)
        before = datetime.now(timezone.utc)

        await make_service(mock_repo, FakeAdapter(), settings=settings).run_platform_sync(ORG, "coursera")

        stale_before = mock_repo.try_mark_syncing.await_args.args[2]
        assert stale_before <= before - timedelta(minutes=29)

    @pytest.mark.asyncio
    async def test_timeout_sets_error(self, mock_repo):
        settings = IntegrationSettings(sync_timeout_seconds=0.01)
        adapter = FakeAdapter(delay=1.0)

        with pytest.raises(SyncTimeoutError):
            await make_service(mock_repo, adapter, settings=settings).run_platform_sync(ORG, "coursera")

        status_call = mock_repo.update_sync_status.await_args
        assert status_call.args[2] == SyncStatus.ERROR
        assert "timed out" in status_call.args[3]

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_reraises(self, mock_repo):
        mock_repo.get_student_user_ids.side_effect = SQLAlchemyError("db down")

        with pytest.raises(SQLAlchemyError):
            await make_service(mock_repo, FakeAdapter()).run_platform_sync(ORG, "coursera")

        mock_repo.update_sync_status.assert_awaited_once_with(
            ORG, ExternalPlatform.COURSERA, SyncStatus.ERROR, "db down"
        )


class TestSyncAllPlatforms:
    @pytest.mark.asyncio
    async def test_runs_each_config_and_isolates_failures(self, mock_repo):
        mock_repo.get_platform_configs.return_value = [
            make_config("coursera"),
            make_config("pluralsight", enabled=False),
            make_config("udemy"),
        ]
        mock_repo.try_mark_syncing.side_effect = [False, True]
        service = make_service(mock_repo, FakeAdapter())

        results = await service.sync_all_platforms(ORG)

        assert [r.platform for r in results] == ["coursera", "pluralsight", "udemy"]
        assert "already running" in results[0].errors[0]
        assert results[1].errors == [DISABLED_MESSAGE]
        assert results[2].errors == []


class TestSyncStatus:
    @pytest.mark.asyncio
    async def test_statuses_project_configs(self, mock_repo):
        config = make_config()
        config.sync_status = "error"
        config.sync_error = "Invalid credentials"
        mock_repo.get_platform_configs.return_value = [config]

        statuses = await make_service(mock_repo, FakeAdapter()).get_sync_statuses(ORG)

        assert statuses[0].to_dict() == {
            "platform": "coursera",
            "is_enabled": True,
            "sync_status": "error",
            "sync_error": "Invalid credentials",
            "last_synced_at": None,
        }

    @pytest.mark.asyncio
    async def test_status_for_unconfigured_platform(self, mock_repo):
        mock_repo.get_platform_config.return_value = None

        assert await make_service(mock_repo, FakeAdapter()).get_sync_status(ORG, "udemy") is None


class TestSyncResult:
    def test_duration_and_summary(self):
        started = datetime(2024, 1, 1, tzinfo=timezone.utc)
        result = SyncResult(
            platform="udemy",
            enrollments_synced=2,
            errors=["a", "b"],
            started_at=started,
            completed_at=started + timedelta(milliseconds=1500),
        )

        assert result.duration_ms == 1500
        assert result.error_summary == "Completed with 2 error(s): a"
        assert result.to_dict()["enrollments_synced"] == 2

    def test_no_errors_no_summary(self):
        assert SyncResult(platform="udemy").error_summary is None
