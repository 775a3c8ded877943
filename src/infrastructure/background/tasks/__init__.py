# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors for LearnBridge.

- Integrations: External platform syncs and due-sync dispatch

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.integration_sync import (
    get_integration_actors,
    sync_due_platforms,
    sync_platform_for_organization,
)

# Re-export run_async for convenience
from src.infrastructure.background.tasks.base import run_async

__all__ = [
    "sync_platform_for_organization",
    "sync_due_platforms",
    "run_async",
    "get_all_actors",
]


def get_all_actors() -> list:
    """Get list of all defined actors."""
    actors = []
    actors.extend(get_integration_actors())
    return actors
