# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema: roster and external platform integration tables.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2025-01-15
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create roster and integration tables."""
    # =========================================================================
    # ROSTER TABLES
    # =========================================================================

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profiles_organization_id", "profiles", ["organization_id"])

    op.create_table(
        "user_roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(30), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "user_id", "role", name="uq_user_roles_org_user_role"),
    )
    op.create_index("ix_user_roles_org_role", "user_roles", ["organization_id", "role"])

    # =========================================================================
    # INTEGRATION TABLES
    # =========================================================================

    op.create_table(
        "platform_configs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column("platform", sa.String(30), nullable=False),
        sa.Column("is_enabled", sa.Boolean, nullable=False),
        sa.Column("credentials", JSON_TYPE, nullable=False),
        sa.Column("sync_frequency_minutes", sa.Integer, nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_status", sa.String(20), nullable=False),
        sa.Column("sync_error", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("organization_id", "platform", name="uq_platform_configs_org_platform"),
        sa.CheckConstraint(
            "sync_status IN ('idle', 'syncing', 'error')",
            name="ck_platform_configs_sync_status",
        ),
    )
    op.create_index("ix_platform_configs_organization_id", "platform_configs", ["organization_id"])

    op.create_table(
        "external_enrollments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("platform", sa.String(30), nullable=False),
        sa.Column("external_course_id", sa.String(255), nullable=False),
        sa.Column("external_course_title", sa.String(500), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id",
            "user_id",
            "platform",
            "external_course_id",
            name="uq_external_enrollments_org_user_platform_course",
        ),
    )
    op.create_index("ix_external_enrollments_user_id", "external_enrollments", ["user_id"])
    op.create_index(
        "ix_external_enrollments_org_platform",
        "external_enrollments",
        ["organization_id", "platform"],
    )

    op.create_table(
        "external_progress",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "external_enrollment_id",
            sa.String(36),
            sa.ForeignKey("external_enrollments.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("progress_percentage", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("time_spent_minutes", sa.Integer, nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_external_progress_percentage",
        ),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed')",
            name="ck_external_progress_status",
        ),
    )


def downgrade() -> None:
    """Drop all tables created by this revision."""
    # Reverse order for foreign keys
    op.drop_table("external_progress")
    op.drop_index("ix_external_enrollments_org_platform", table_name="external_enrollments")
    op.drop_index("ix_external_enrollments_user_id", table_name="external_enrollments")
    op.drop_table("external_enrollments")
    op.drop_index("ix_platform_configs_organization_id", table_name="platform_configs")
    op.drop_table("platform_configs")
    op.drop_index("ix_user_roles_org_role", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_index("ix_profiles_organization_id", table_name="profiles")
    op.drop_table("profiles")
