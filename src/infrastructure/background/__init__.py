# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure module for LearnBridge.

Provides background platform syncs with Dramatiq.

Quick Start:
    # Setup broker (call once at startup)
    from src.infrastructure.background import setup_dramatiq
    setup_dramatiq()

    # Send tasks
    from src.infrastructure.background.tasks import sync_platform_for_organization

    sync_platform_for_organization.send("org-id", "coursera")

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4

Periodic syncs:
    Something outside the worker (cron, a Kubernetes CronJob) must send
    sync_due_platforms on a fixed interval; the actor then dispatches one
    message per config whose cadence has elapsed.
"""

from src.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)

# Task actors are imported lazily to avoid circular imports.
# Use: from src.infrastructure.background.tasks import sync_due_platforms

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
]
