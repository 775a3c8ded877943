# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pluralsight adapter.

Authentication is a static bearer token scoped to a plan.

Required credentials:
    - api_token
    - plan_id

Both enrollments and progress come from per-user course-usage records.
Usage is only requested for plan users whose email is on the roster.
"""

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


def percent_complete(value: Any) -> int:
    """Normalize percentComplete to a whole percent.

    The field is documented as 0-100, but some plans report a fraction.
    A float at or below 1.0 is read as a fraction; integers are percents.
    """
    number = to_float(value)
    if number is None:
        return 0
    if isinstance(value, float) and 0.0 < number <= 1.0:
        number *= 100
    return clamp_percentage(number)


class PluralsightAdapter(VendorAdapter):
    """Adapter for the Pluralsight plans API."""

    platform = ExternalPlatform.PLURALSIGHT
    page_delay_field = "pluralsight_page_delay"

    def _plan_url(self, credentials: Credentials) -> str:
        return f"{self.settings.pluralsight_api_url}/plans/{credentials['plan_id']}"

    def _authorized_client(self, credentials: Credentials) -> httpx.AsyncClient:
        return self._client(headers={"Authorization": f"Bearer {credentials['api_token']}"})

    def _pages(self, client: httpx.AsyncClient, url: str) -> Callable[[int], Awaitable[Page]]:
        async def fetch_page(index: int) -> Page:
            data = await self._get_json(
                client,
                url,
                params={"page": index + 1, "pageSize": self.page_size},
            )
            pagination = data.get("pagination")
            has_more = None
            if isinstance(pagination, dict) and pagination.get("totalPages") is not None:
                current = pagination.get("currentPage") or index + 1
                has_more = current < pagination["totalPages"]
            return Page(items=data.get("data") or [], has_more=has_more)

        return fetch_page

    async def _check_credentials(self, credentials: Credentials) -> bool:
        async with self._authorized_client(credentials) as client:
            response = await client.get(self._plan_url(credentials))
        return response.is_success

    async def _matched_users(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        roster: Roster,
    ) -> list[tuple[str, str]]:
        """Return (user_id, roster_email) for plan users on the roster."""
        url = f"{self._plan_url(credentials)}/users"
        matched: list[tuple[str, str]] = []
        async for user in self._paginate(self._pages(client, url), "users"):
            email = roster.match(user.get("email"))
            if email is not None and user.get("id") is not None:
                matched.append((str(user["id"]), email))
        return matched

    async def _course_usage(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        user_id: str,
    ) -> list[dict[str, Any]]:
        url = f"{self._plan_url(credentials)}/users/{user_id}/course-usage"
        return [row async for row in self._paginate(self._pages(client, url), "course usage")]

    async def _list_enrollments(
        self,
        credentials: Credentials,
        roster: Roster,
        issues: list[str] | None,
    ) -> list[VendorEnrollment]:
        records: list[VendorEnrollment] = []

        async with self._authorized_client(credentials) as client:
            users = await self._matched_users(client, credentials, roster)
            logger.debug("Pluralsight plan has %d roster users", len(users))

            for user_id, email in users:
                try:
                    usage = await self._course_usage(client, credentials, user_id)
                except SUB_RESOURCE_ERRORS as e:
                    self._report(issues, f"skipped course usage for user {user_id}", e)
                    continue
                for row in usage:
                    if row.get("contentId") is None:
                        continue
                    records.append(
                        VendorEnrollment(
                            external_course_id=str(row["contentId"]),
                            course_title=row.get("contentTitle") or "",
                            email=email,
                            enrolled_at=parse_iso(row.get("startedDate")),
                        )
                    )

        return records

    async def _list_progress(
        self,
        credentials: Credentials,
        wanted: EnrollmentFilter,
        issues: list[str] | None,
    ) -> list[VendorProgress]:
        records: list[VendorProgress] = []

        async with self._authorized_client(credentials) as client:
            users = await self._matched_users(client, credentials, wanted.emails)

            for user_id, email in users:
                try:
                    usage = await self._course_usage(client, credentials, user_id)
                except SUB_RESOURCE_ERRORS as e:
                    self._report(issues, f"skipped course usage for user {user_id}", e)
                    continue
                for row in usage:
                    matched = wanted.match(email, row.get("contentId"))
                    if matched is None:
                        continue
                    percentage = percent_complete(row.get("percentComplete"))
                    completed_at = parse_iso(row.get("completedDate"))
                    records.append(
                        VendorProgress(
                            external_course_id=str(row["contentId"]),
                            email=matched,
                            percentage=percentage,
                            status=resolve_status(percentage, completed_at),
                            completed_at=completed_at,
                            minutes_spent=to_minutes(row.get("totalMinutesViewed")),
                            last_activity_at=parse_iso(row.get("lastViewedDate")),
                        )
                    )

        return records
