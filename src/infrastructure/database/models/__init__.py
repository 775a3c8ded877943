# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models.

- base: Declarative base and shared mixins
- tenant: Organization-owned tables (roster, integrations)
"""

from src.infrastructure.database.models.base import Base, TimestampMixin

__all__ = ["Base", "TimestampMixin"]
