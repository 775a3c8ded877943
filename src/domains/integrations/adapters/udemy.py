# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Udemy Business adapter.

Required credentials:
    - api_key: sent as HTTP Basic when it has the "client_id:secret" form,
      as a bearer token otherwise
    - account_id: the organization subdomain

The bulk user-course-activity report serves both enrollments and progress.
When it fails or yields no roster matches, enrollments and progress are
collected user by user instead.
"""

import base64
import logging
from typing import Any, Awaitable, Callable

import httpx

from src.domains.integrations.adapters.base import (
    SUB_RESOURCE_ERRORS,
    EnrollmentFilter,
    Page,
    Roster,
    VendorAdapter,
    clamp_percentage,
    resolve_status,
    to_float,
    to_minutes,
)
from src.domains.integrations.types import (
    Credentials,
    ExternalPlatform,
    VendorEnrollment,
    VendorProgress,
)
from src.utils.datetime import parse_iso

logger = logging.getLogger(__name__)


def authorization_header(api_key: str) -> str:
    """Build the Authorization header value for a Udemy API key."""
    if ":" in api_key:
        encoded = base64.b64encode(api_key.encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"
    return f"Bearer {api_key}"


class UdemyAdapter(VendorAdapter):
    """Adapter for the Udemy Business organization API."""

    platform = ExternalPlatform.UDEMY
    page_delay_field = "udemy_page_delay"

    def _org_url(self, credentials: Credentials) -> str:
        account_id = credentials["account_id"]
        host = self.settings.udemy_host_template.format(account_id=account_id)
        return f"{host}/api-2.0/organizations/{account_id}"

    def _authorized_client(self, credentials: Credentials) -> httpx.AsyncClient:
        return self._client(headers={"Authorization": authorization_header(credentials["api_key"])})

    def _pages(self, client: httpx.AsyncClient, url: str) -> Callable[[int], Awaitable[Page]]:
        async def fetch_page(index: int) -> Page:
            data = await self._get_json(
                client,
                url,
                params={"page": index + 1, "page_size": self.page_size},
            )
            has_more = bool(data["next"]) if "next" in data else None
            return Page(items=data.get("results") or [], has_more=has_more)

        return fetch_page

    async def _check_credentials(self, credentials: Credentials) -> bool:
        async with self._authorized_client(credentials) as client:
            response = await client.get(f"{self._org_url(credentials)}/users/list/?page=1&page_size=1")
        return response.is_success

    def _activity(self, client: httpx.AsyncClient, credentials: Credentials):
        url = f"{self._org_url(credentials)}/analytics/user-course-activity/"
        return self._paginate(self._pages(client, url), "user course activity")

    async def _list_enrollments(
        self,
        credentials: Credentials,
        roster: Roster,
        issues: list[str] | None,
    ) -> list[VendorEnrollment]:
        records: list[VendorEnrollment] = []

        async with self._authorized_client(credentials) as client:
            try:
                async for row in self._activity(client, credentials):
                    email = roster.match(row.get("user_email"))
                    if email is None or row.get("course_id") is None:
                        continue
                    records.append(
                        VendorEnrollment(
                            external_course_id=str(row["course_id"]),
                            course_title=row.get("course_title") or "",
                            email=email,
                        )
                    )
            except SUB_RESOURCE_ERRORS as e:
                self._report(issues, "user course activity report unavailable", e)

            if not records:
                logger.info("Udemy activity report matched no roster users, listing users instead")
                records = await self._list_enrollments_per_user(client, credentials, roster, issues)

        return records

    async def _matched_users(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        roster: Roster,
    ) -> list[tuple[str, str]]:
        """Return (user_id, roster_email) for organization users on the roster."""
        url = f"{self._org_url(credentials)}/users/list/"
        users: list[tuple[str, str]] = []
        async for user in self._paginate(self._pages(client, url), "users"):
            email = roster.match(user.get("email"))
            if email is not None and user.get("id") is not None:
                users.append((str(user["id"]), email))
        return users

    async def _list_enrollments_per_user(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        roster: Roster,
        issues: list[str] | None,
    ) -> list[VendorEnrollment]:
        org_url = self._org_url(credentials)
        records: list[VendorEnrollment] = []
        for user_id, email in await self._matched_users(client, credentials, roster):
            url = f"{org_url}/users/{user_id}/course-enrollments/"
            try:
                async for row in self._paginate(self._pages(client, url), "course enrollments"):
                    if row.get("course_id") is None:
                        continue
                    records.append(
                        VendorEnrollment(
                            external_course_id=str(row["course_id"]),
                            course_title=row.get("course_title") or "",
                            email=email,
                            enrolled_at=parse_iso(row.get("enrollment_date")),
                        )
                    )
            except SUB_RESOURCE_ERRORS as e:
                self._report(issues, f"skipped enrollments for user {user_id}", e)

        return records

    async def _list_progress(
        self,
        credentials: Credentials,
        wanted: EnrollmentFilter,
        issues: list[str] | None,
    ) -> list[VendorProgress]:
        records: list[VendorProgress] = []

        async with self._authorized_client(credentials) as client:
            try:
                async for row in self._activity(client, credentials):
                    record = self._to_progress(row, wanted)
                    if record is not None:
                        records.append(record)
            except SUB_RESOURCE_ERRORS as e:
                self._report(issues, "user course activity report unavailable", e)

            if not records:
                logger.info("Udemy activity report matched no enrollments, reading progress per user")
                records = await self._list_progress_per_user(client, credentials, wanted, issues)

        return records

    async def _list_progress_per_user(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        wanted: EnrollmentFilter,
        issues: list[str] | None,
    ) -> list[VendorProgress]:
        org_url = self._org_url(credentials)
        records: list[VendorProgress] = []
        for user_id, email in await self._matched_users(client, credentials, wanted.emails):
            url = f"{org_url}/users/{user_id}/course-progress/"
            try:
                async for row in self._paginate(self._pages(client, url), "course progress"):
                    record = self._to_progress(row, wanted, email=email)
                    if record is not None:
                        records.append(record)
            except SUB_RESOURCE_ERRORS as e:
                self._report(issues, f"skipped progress for user {user_id}", e)

        return records

    @staticmethod
    def _to_progress(
        row: dict[str, Any],
        wanted: EnrollmentFilter,
        email: str | None = None,
    ) -> VendorProgress | None:
        """Map an activity or per-user progress row.

        Per-user rows carry no user_email; the caller passes the user's email.
        """
        course_id = row.get("course_id")
        email = wanted.match(email or row.get("user_email"), course_id)
        if email is None:
            return None

        ratio = to_float(row.get("completion_ratio"))
        percentage = clamp_percentage(ratio * 100 if ratio is not None else None)
        completed_at = parse_iso(row.get("completion_date"))

        return VendorProgress(
            external_course_id=str(course_id),
            email=email,
            percentage=percentage,
            status=resolve_status(percentage, completed_at),
            completed_at=completed_at,
            minutes_spent=to_minutes(row.get("num_video_consumed_minutes")),
            last_activity_at=parse_iso(row.get("last_accessed_date")),
        )
