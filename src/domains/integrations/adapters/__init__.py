# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Vendor adapters for external learning platforms."""

from src.domains.integrations.adapters.base import Page, VendorAdapter, paginate
from src.domains.integrations.adapters.coursera import CourseraAdapter
from src.domains.integrations.adapters.pluralsight import PluralsightAdapter
from src.domains.integrations.adapters.udemy import UdemyAdapter

__all__ = [
    "CourseraAdapter",
    "Page",
    "PluralsightAdapter",
    "UdemyAdapter",
    "VendorAdapter",
    "paginate",
]
