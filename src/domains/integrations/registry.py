# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adapter registry.

Maps a platform identifier to one shared adapter instance. Adding a vendor
means adding an adapter class and one entry in ``_ADAPTER_CLASSES``.

Example:
    >>> adapter = get_adapter("coursera")
    >>> adapter is get_adapter(ExternalPlatform.COURSERA)
    True
"""

import threading

from src.domains.integrations.adapters import (
    CourseraAdapter,
    PluralsightAdapter,
    UdemyAdapter,
    VendorAdapter,
)
from src.domains.integrations.types import ExternalPlatform, PlatformAdapter

_ADAPTER_CLASSES: dict[ExternalPlatform, type[VendorAdapter]] = {
    ExternalPlatform.COURSERA: CourseraAdapter,
    ExternalPlatform.PLURALSIGHT: PluralsightAdapter,
    ExternalPlatform.UDEMY: UdemyAdapter,
}

_instances: dict[ExternalPlatform, PlatformAdapter] = {}
_lock = threading.Lock()


def get_adapter(platform: str | ExternalPlatform) -> PlatformAdapter:
    """Get the adapter for a platform.

    Args:
        platform: Platform identifier.

    Returns:
        The singleton adapter for that platform.

    Raises:
        UnsupportedPlatformError: If the identifier is not supported.
    """
    key = ExternalPlatform.parse(platform)
    adapter = _instances.get(key)
    if adapter is None:
        with _lock:
            adapter = _instances.get(key)
            if adapter is None:
                adapter = _ADAPTER_CLASSES[key]()
                _instances[key] = adapter
    return adapter


def supported_platforms() -> list[ExternalPlatform]:
    """List platforms that have an adapter."""
    return list(_ADAPTER_CLASSES)


def reset_adapters() -> None:
    """Drop cached adapter instances (used after settings change and in tests)."""
    with _lock:
        _instances.clear()
