# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External platform integration API endpoints.

This module provides endpoints for the admin integrations screen:
- GET / - List platform configs and recent progress
- POST / - Save a platform config
- POST /sync - Sync one platform now
- GET /sync/status - Sync status of every config
- POST /test - Test credentials before saving them
- POST /{platform}/test - Test the saved credentials of a platform
- GET /progress - Unified external progress with a summary
- GET /platforms - Supported platforms and their credential keys

All endpoints require organization admin access.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_admin
from src.api.middleware.auth import AuthContext
from src.domains.integrations.exceptions import (
    InvalidCredentialsError,
    PlatformDisabledError,
    PlatformNotConfiguredError,
    SyncInProgressError,
    UnsupportedPlatformError,
)
from src.domains.integrations.repository import DEFAULT_PROGRESS_LIMIT, MAX_PROGRESS_LIMIT
from src.domains.integrations.service import IntegrationService
from src.domains.integrations.sync_service import PlatformSyncService
from src.domains.integrations.types import PLATFORM_METADATA, ExternalPlatform
from src.models.integration import (
    ConnectionTestRequest,
    ConnectionTestResponse,
    IntegrationsOverviewResponse,
    PlatformConfigRequest,
    PlatformConfigResponse,
    PlatformInfoResponse,
    PlatformListResponse,
    ProgressReportResponse,
    ProgressRowResponse,
    ProgressSummaryResponse,
    SyncRequest,
    SyncResultResponse,
    SyncStatusListResponse,
    SyncStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> IntegrationService:
    """Get integration service instance."""
    return IntegrationService(db=db)


def _get_sync_service(db: AsyncSession) -> PlatformSyncService:
    """Get platform sync service instance."""
    return PlatformSyncService(db=db)


def _parse_platform(value: str) -> ExternalPlatform:
    try:
        return ExternalPlatform.parse(value)
    except UnsupportedPlatformError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get(
    "",
    response_model=IntegrationsOverviewResponse,
    summary="List integrations",
    description="List platform configs (credentials masked) and the first page of progress.",
)
async def list_integrations(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> IntegrationsOverviewResponse:
    service = _get_service(db)
    configs = await service.list_configs(auth.organization_id)
    report = await service.get_progress_report(auth.organization_id)

    return IntegrationsOverviewResponse(
        configs=[PlatformConfigResponse.from_config(config) for config in configs],
        progress=[ProgressRowResponse.from_row(row) for row in report.rows],
    )


@router.post(
    "",
    response_model=PlatformConfigResponse,
    summary="Save platform config",
    description="Create or update the organization's config for one platform.",
)
async def save_integration(
    data: PlatformConfigRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> PlatformConfigResponse:
    """Save a platform config.

    Raises:
        HTTPException: If the frequency is out of range.
    """
    logger.info("Saving %s config for organization %s", data.platform.value, auth.organization_id)
    service = _get_service(db)

    try:
        config = await service.save_config(
            auth.organization_id,
            data.platform,
            data.credentials,
            sync_frequency_minutes=data.sync_frequency_minutes,
            is_enabled=data.is_enabled,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    return PlatformConfigResponse.from_config(config)


@router.post(
    "/sync",
    response_model=SyncResultResponse,
    summary="Sync platform",
    description="Sync enrollments and progress for one platform now.",
)
async def sync_integration(
    data: SyncRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SyncResultResponse:
    """Run a status-managed sync.

    Raises:
        HTTPException: 404 not configured, 400 disabled or invalid
            credentials, 409 already syncing, 500 sync failure.
    """
    logger.info("Manual %s sync requested for organization %s", data.platform.value, auth.organization_id)
    service = _get_sync_service(db)

    try:
        result = await service.run_platform_sync(auth.organization_id, data.platform)
    except PlatformNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (PlatformDisabledError, InvalidCredentialsError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.exception("Sync failed for %s", data.platform.value)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Sync failed: {e}",
        )

    return SyncResultResponse.from_result(result)


@router.get(
    "/sync/status",
    response_model=SyncStatusListResponse,
    summary="Sync status",
    description="Sync status of every platform config of the organization.",
)
async def get_sync_status(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SyncStatusListResponse:
    statuses = await _get_sync_service(db).get_sync_statuses(auth.organization_id)
    return SyncStatusListResponse(statuses=[SyncStatusResponse.from_status(s) for s in statuses])


@router.post(
    "/test",
    response_model=ConnectionTestResponse,
    summary="Test credentials",
    description="Test credentials against the vendor before saving them.",
)
async def test_credentials(
    data: ConnectionTestRequest,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ConnectionTestResponse:
    result = await _get_service(db).test_credentials(data.platform, data.credentials)
    return ConnectionTestResponse.from_result(result)


@router.post(
    "/{platform}/test",
    response_model=ConnectionTestResponse,
    summary="Test saved connection",
    description="Test the organization's saved credentials for a platform.",
)
async def test_saved_connection(
    platform: str,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ConnectionTestResponse:
    """Test saved credentials.

    Raises:
        HTTPException: 400 unsupported platform, 404 not configured.
    """
    key = _parse_platform(platform)

    try:
        result = await _get_service(db).test_stored_connection(auth.organization_id, key)
    except PlatformNotConfiguredError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return ConnectionTestResponse.from_result(result)


@router.get(
    "/progress",
    response_model=ProgressReportResponse,
    summary="External progress",
    description="Unified external progress rows with a summary.",
)
async def get_progress(
    platform: Annotated[str | None, Query(description="Filter by platform")] = None,
    user_id: Annotated[str | None, Query(alias="userId", description="Filter by user")] = None,
    limit: Annotated[int, Query(ge=1, description="Page size (max 200)")] = DEFAULT_PROGRESS_LIMIT,
    offset: Annotated[int, Query(ge=0, description="Rows to skip")] = 0,
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ProgressReportResponse:
    """Get progress rows.

    Raises:
        HTTPException: If the platform filter is invalid.
    """
    key = None
    if platform:
        try:
            key = ExternalPlatform.parse(platform)
        except UnsupportedPlatformError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid platform parameter",
            )

    report = await _get_service(db).get_progress_report(
        auth.organization_id,
        platform=key,
        user_id=user_id,
        limit=min(limit, MAX_PROGRESS_LIMIT),
        offset=offset,
    )
    return ProgressReportResponse(
        progress=[ProgressRowResponse.from_row(row) for row in report.rows],
        summary=ProgressSummaryResponse.from_summary(report.summary),
    )


@router.get(
    "/platforms",
    response_model=PlatformListResponse,
    summary="Supported platforms",
    description="Supported platforms with their authentication type and credential keys.",
)
async def list_platforms(
    auth: AuthContext = Depends(require_admin),
) -> PlatformListResponse:
    return PlatformListResponse(
        platforms=[
            PlatformInfoResponse.from_info(platform, info)
            for platform, info in PLATFORM_METADATA.items()
        ]
    )
