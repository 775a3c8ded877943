# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the integrations API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.domains.integrations.connection_test import ConnectionTestResult
from src.domains.integrations.repository import (
    MAX_SYNC_FREQUENCY_MINUTES,
    MIN_SYNC_FREQUENCY_MINUTES,
    ProgressRow,
)
from src.domains.integrations.service import ProgressSummary
from src.domains.integrations.sync_service import PlatformSyncStatus, SyncResult
from src.domains.integrations.types import ExternalPlatform, PlatformInfo
from src.infrastructure.database.models.tenant.integration import PlatformConfig

MASK = "••••••••"


def mask_secret(value: str) -> str:
    """Keep the last four characters of a credential value."""
    if len(value) <= 4:
        return MASK
    return f"{MASK}{value[-4:]}"


# =============================================================================
# Request DTOs
# =============================================================================


class PlatformConfigRequest(BaseModel):
    """Create or update a platform config."""

    platform: ExternalPlatform = Field(description="Platform identifier")
    credentials: dict[str, str] = Field(description="Vendor credential map")
    sync_frequency_minutes: int | None = Field(
        default=None,
        ge=MIN_SYNC_FREQUENCY_MINUTES,
        le=MAX_SYNC_FREQUENCY_MINUTES,
        description="Sync cadence in minutes (default 60)",
    )
    is_enabled: bool | None = Field(default=None, description="Enable syncing (default true)")

    @field_validator("credentials")
    @classmethod
    def strip_credentials(cls, value: dict[str, str]) -> dict[str, str]:
        return {key.strip(): val.strip() for key, val in value.items() if key.strip()}


class SyncRequest(BaseModel):
    """Trigger a sync for one platform."""

    platform: ExternalPlatform = Field(description="Platform to sync")


class ConnectionTestRequest(BaseModel):
    """Test credentials before saving them."""

    platform: ExternalPlatform = Field(description="Platform identifier")
    credentials: dict[str, str] = Field(default_factory=dict, description="Credentials to test")


# =============================================================================
# Response DTOs
# =============================================================================


class PlatformConfigResponse(BaseModel):
    """Platform config with credential values masked."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    platform: str
    is_enabled: bool
    credentials: dict[str, str] = Field(description="Masked credential values")
    sync_frequency_minutes: int
    last_synced_at: datetime | None = None
    sync_status: str
    sync_error: str | None = None

    @classmethod
    def from_config(cls, config: PlatformConfig) -> "PlatformConfigResponse":
        return cls(
            id=config.id,
            platform=config.platform,
            is_enabled=config.is_enabled,
            credentials={key: mask_secret(str(val)) for key, val in (config.credentials or {}).items()},
            sync_frequency_minutes=config.sync_frequency_minutes,
            last_synced_at=config.last_synced_at,
            sync_status=config.sync_status,
            sync_error=config.sync_error,
        )


class ProgressRowResponse(BaseModel):
    """One unified progress row."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    full_name: str
    email: str
    platform: str
    course_title: str
    progress_percentage: int = Field(ge=0, le=100)
    status: str
    last_activity_at: datetime | None = None

    @classmethod
    def from_row(cls, row: ProgressRow) -> "ProgressRowResponse":
        return cls.model_validate(row)


class ProgressSummaryResponse(BaseModel):
    """Aggregates over the returned progress rows."""

    model_config = ConfigDict(from_attributes=True)

    total_courses: int
    completed_courses: int
    completion_rate: int = Field(description="Completed share, rounded percent")
    platform_counts: dict[str, int]
    most_active_platform: str | None = None

    @classmethod
    def from_summary(cls, summary: ProgressSummary) -> "ProgressSummaryResponse":
        return cls.model_validate(summary)


class ProgressReportResponse(BaseModel):
    progress: list[ProgressRowResponse]
    summary: ProgressSummaryResponse


class IntegrationsOverviewResponse(BaseModel):
    """Configs and the first page of progress."""

    configs: list[PlatformConfigResponse]
    progress: list[ProgressRowResponse]


class SyncResultResponse(BaseModel):
    """Outcome of a sync run."""

    model_config = ConfigDict(from_attributes=True)

    platform: str
    enrollments_synced: int
    progress_synced: int
    errors: list[str] = Field(default_factory=list)
    duration_ms: int | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResultResponse":
        return cls.model_validate(result)


class SyncStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    platform: str
    is_enabled: bool
    sync_status: str
    sync_error: str | None = None
    last_synced_at: datetime | None = None

    @classmethod
    def from_status(cls, status: PlatformSyncStatus) -> "SyncStatusResponse":
        return cls.model_validate(status)


class SyncStatusListResponse(BaseModel):
    statuses: list[SyncStatusResponse]


class ConnectionTestResponse(BaseModel):
    """Connection test outcome."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    message: str
    response_time_ms: int = 0

    @classmethod
    def from_result(cls, result: ConnectionTestResult) -> "ConnectionTestResponse":
        return cls.model_validate(result)


class PlatformInfoResponse(BaseModel):
    """Static description of a supported platform."""

    id: str
    name: str
    auth_type: str
    required_keys: list[str]
    color: str

    @classmethod
    def from_info(cls, platform: ExternalPlatform, info: PlatformInfo) -> "PlatformInfoResponse":
        return cls(
            id=platform.value,
            name=info.name,
            auth_type=info.auth_type,
            required_keys=list(info.required_keys),
            color=info.color,
        )


class PlatformListResponse(BaseModel):
    platforms: list[PlatformInfoResponse]
