# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for integration request and response models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.domains.integrations.repository import ProgressRow
from src.domains.integrations.service import ProgressSummary
from src.domains.integrations.types import PLATFORM_METADATA, ExternalPlatform
from src.infrastructure.database.models.tenant.integration import PlatformConfig
from src.models.integration import (
    MASK,
    PlatformConfigRequest,
    PlatformConfigResponse,
    PlatformInfoResponse,
    ProgressRowResponse,
    ProgressSummaryResponse,
    SyncRequest,
    mask_secret,
)


class TestPlatformConfigRequest:
    def test_valid_request(self):
        request = PlatformConfigRequest(
            platform="udemy",
            credentials={" api_key ": " key ", "account_id": "acme"},
            sync_frequency_minutes=30,
        )

        assert request.platform == ExternalPlatform.UDEMY
        assert request.credentials == {"api_key": "key", "account_id": "acme"}
        assert request.is_enabled is None

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValidationError):
            PlatformConfigRequest(platform="moodle", credentials={})

    @pytest.mark.parametrize("minutes", [5, 14, 1441])
    def test_frequency_out_of_range(self, minutes):
        with pytest.raises(ValidationError):
            PlatformConfigRequest(platform="udemy", credentials={}, sync_frequency_minutes=minutes)

    def test_sync_request(self):
        assert SyncRequest(platform="coursera").platform is ExternalPlatform.COURSERA


class TestMasking:
    def test_keeps_last_four(self):
        assert mask_secret("supersecret1234") == f"{MASK}1234"

    def test_short_values_fully_masked(self):
        assert mask_secret("abc") == MASK

    def test_config_response_masks_every_value(self):
        config = PlatformConfig(
            id="cfg-1",
            organization_id="org-1",
            platform="pluralsight",
            is_enabled=True,
            credentials={"api_token": "tok-abcdef", "plan_id": "plan-9876"},
            sync_frequency_minutes=60,
            sync_status="idle",
        )

        response = PlatformConfigResponse.from_config(config)

        assert response.credentials == {"api_token": f"{MASK}cdef", "plan_id": f"{MASK}9876"}
        assert "tok-abcdef" not in response.model_dump_json()


class TestProgressModels:
    def test_row_from_dataclass(self):
        row = ProgressRow(
            user_id="u1",
            full_name="Ada",
            email="a@x.com",
            platform="coursera",
            course_title="ML",
            progress_percentage=40,
            status="in_progress",
            last_activity_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )

        response = ProgressRowResponse.from_row(row)

        assert response.progress_percentage == 40
        assert response.course_title == "ML"

    def test_summary_from_rows(self):
        rows = [
            ProgressRow("u1", "Ada", "a@x.com", "coursera", "A", 100, "completed", None),
            ProgressRow("u1", "Ada", "a@x.com", "coursera", "B", 20, "in_progress", None),
            ProgressRow("u2", "Bo", "b@x.com", "udemy", "C", 100, "completed", None),
        ]

        summary = ProgressSummaryResponse.from_summary(ProgressSummary.from_rows(rows))

        assert summary.total_courses == 3
        assert summary.completed_courses == 2
        assert summary.completion_rate == 67
        assert summary.platform_counts == {"coursera": 2, "udemy": 1}
        assert summary.most_active_platform == "coursera"

    def test_empty_summary(self):
        summary = ProgressSummary.from_rows([])

        assert summary.completion_rate == 0
        assert summary.most_active_platform is None


class TestPlatformInfoResponse:
    def test_from_metadata(self):
        info = PlatformInfoResponse.from_info(
            ExternalPlatform.UDEMY, PLATFORM_METADATA[ExternalPlatform.UDEMY]
        )

        assert info.id == "udemy"
        assert info.name == "Udemy Business"
        assert info.required_keys == ["api_key", "account_id"]
