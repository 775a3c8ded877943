# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""External learning-platform integration models.

PlatformConfig holds one row per (organization, platform). ExternalEnrollment
and ExternalProgress are written by sync runs and keyed by their natural
composite keys so that repeated syncs update rows in place.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class PlatformConfig(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Per-organization configuration for one external platform.

    Attributes:
        organization_id: Owning organization.
        platform: Platform identifier (coursera, pluralsight, udemy).
        is_enabled: Disabled configs are never synced.
        credentials: Opaque string to string credential map.
        sync_frequency_minutes: Cadence for the background scheduler.
        last_synced_at: Set whenever a sync run finishes successfully.
        sync_status: idle, syncing or error.
        sync_error: Last error message, or a per-row error summary.
    """

    __tablename__ = "platform_configs"
    __table_args__ = (
        UniqueConstraint("organization_id", "platform", name="uq_platform_configs_org_platform"),
        CheckConstraint(
            "sync_status IN ('idle', 'syncing', 'error')",
            name="ck_platform_configs_sync_status",
        ),
    )

    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(30), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    credentials: Mapped[dict[str, str]] = mapped_column(JSONType, default=dict, nullable=False)
    sync_frequency_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_status: Mapped[str] = mapped_column(String(20), default="idle", nullable=False)
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PlatformConfig(org={self.organization_id}, platform={self.platform}, status={self.sync_status})>"


class ExternalEnrollment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A local user's enrollment in a course on an external platform."""

    __tablename__ = "external_enrollments"
    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "user_id",
            "platform",
            "external_course_id",
            name="uq_external_enrollments_org_user_platform_course",
        ),
        Index("ix_external_enrollments_org_platform", "organization_id", "platform"),
    )

    organization_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform: Mapped[str] = mapped_column(String(30), nullable=False)
    external_course_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_course_title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    enrolled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    progress: Mapped["ExternalProgress | None"] = relationship(
        back_populates="enrollment",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<ExternalEnrollment(user={self.user_id}, platform={self.platform}, course={self.external_course_id})>"


class ExternalProgress(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Latest known progress for one external enrollment (1:1)."""

    __tablename__ = "external_progress"
    __table_args__ = (
        CheckConstraint(
            "progress_percentage >= 0 AND progress_percentage <= 100",
            name="ck_external_progress_percentage",
        ),
        CheckConstraint(
            "status IN ('in_progress', 'completed')",
            name="ck_external_progress_status",
        ),
    )

    external_enrollment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("external_enrollments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="in_progress", nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_spent_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    enrollment: Mapped[ExternalEnrollment] = relationship(back_populates="progress", lazy="noload")

    def __repr__(self) -> str:
        return f"<ExternalProgress(enrollment={self.external_enrollment_id}, pct={self.progress_percentage})>"
