# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External platform sync background tasks.

Tasks:
    - sync_platform_for_organization: Status-managed sync of one platform
    - sync_due_platforms: Dispatch a sync for every config whose cadence elapsed

Example:
    >>> from src.infrastructure.background.tasks import sync_platform_for_organization
    >>> sync_platform_for_organization.send("org-id", "udemy")
"""

import logging
from typing import Any

import dramatiq

from src.domains.integrations.exceptions import (
    IntegrationError,
    PlatformDisabledError,
    SyncInProgressError,
)
from src.domains.integrations.repository import IntegrationRepository
from src.domains.integrations.sync_service import PlatformSyncService
from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async, worker_session

setup_dramatiq()

logger = logging.getLogger(__name__)


@dramatiq.actor(
    queue_name=Queues.INTEGRATIONS,
    max_retries=0,
    time_limit=1200000,  # 20 minutes, above the service's own sync deadline
    priority=Priority.NORMAL,
)
def sync_platform_for_organization(organization_id: str, platform: str) -> dict[str, Any]:
    """Sync one platform's enrollments and progress for an organization.

    Sync status and errors are recorded on the platform config by the
    service; this actor only reports the outcome.

    Args:
        organization_id: Organization to sync.
        platform: Platform identifier.

    Returns:
        Sync result with counts and status.
    """
    logger.info("Starting %s sync for organization: %s", platform, organization_id)

    async def _sync() -> dict[str, Any]:
        async with worker_session() as session:
            service = PlatformSyncService(session)
            try:
                result = await service.run_platform_sync(organization_id, platform)
            except (PlatformDisabledError, SyncInProgressError) as e:
                logger.info("Skipping %s sync for %s: %s", platform, organization_id, str(e))
                return {
                    "status": "skipped",
                    "organization_id": organization_id,
                    "platform": platform,
                    "reason": str(e),
                }
            except IntegrationError as e:
                logger.warning("%s sync for %s failed: %s", platform, organization_id, str(e))
                return {
                    "status": "failed",
                    "organization_id": organization_id,
                    "platform": platform,
                    "error": str(e),
                }
            except Exception as e:
                logger.error(
                    "%s sync for %s failed: %s",
                    platform,
                    organization_id,
                    str(e),
                    exc_info=True,
                )
                return {
                    "status": "failed",
                    "organization_id": organization_id,
                    "platform": platform,
                    "error": str(e),
                }

            return {
                "status": "success",
                "organization_id": organization_id,
                **result.to_dict(),
            }

    try:
        result = run_async(_sync())
        logger.info(
            "%s sync completed for organization %s: %s",
            platform,
            organization_id,
            result.get("status"),
        )
        return result
    except Exception as e:
        logger.error(
            "%s sync task failed for organization %s: %s",
            platform,
            organization_id,
            str(e),
            exc_info=True,
        )
        return {
            "status": "failed",
            "organization_id": organization_id,
            "platform": platform,
            "error": str(e),
        }


@dramatiq.actor(
    queue_name=Queues.INTEGRATIONS,
    max_retries=1,
    time_limit=300000,  # 5 minutes (just schedules tasks)
    priority=Priority.LOW,
)
def sync_due_platforms() -> dict[str, Any]:
    """Dispatch sync_platform_for_organization for every due config.

    A config is due when it is enabled, not syncing, and its last sync is
    older than its sync frequency (or it never synced).

    Returns:
        Execution statistics.
    """
    logger.info("Looking for platform configs due for sync")

    async def _schedule() -> dict[str, Any]:
        async with worker_session() as session:
            configs = await IntegrationRepository(session).get_due_platform_configs()
            due = [(config.organization_id, config.platform) for config in configs]

        for organization_id, platform in due:
            sync_platform_for_organization.send(organization_id, platform)
            logger.debug("Scheduled %s sync for organization: %s", platform, organization_id)

        return {"status": "scheduled", "config_count": len(due)}

    try:
        result = run_async(_schedule())
        logger.info("Scheduled %d platform syncs", result.get("config_count", 0))
        return result
    except Exception as e:
        logger.error("Failed to schedule platform syncs: %s", str(e), exc_info=True)
        return {"status": "failed", "error": str(e)}


def get_integration_actors() -> list:
    """Get all integration sync actors."""
    return [sync_platform_for_organization, sync_due_platforms]
