# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Coursera for Business adapter.

Authentication is OAuth2 client credentials. A token is obtained at the start
of every public operation and used for that operation only.

Required credentials:
    - client_id
    - client_secret
    - org_slug

Enrollments are discovered per program; progress comes from the
organization-wide learner activity feed.
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
    json_object,
    resolve_status,
    to_float,
)
from src.domains.integrations.exceptions import VendorAPIError
from src.domains.integrations.types import (
    Credentials,
    ExternalPlatform,
    VendorEnrollment,
    VendorProgress,
)
from src.utils.datetime import parse_iso

logger = logging.getLogger(__name__)


class CourseraAdapter(VendorAdapter):
    """Adapter for the Coursera for Business API."""

    platform = ExternalPlatform.COURSERA
    page_delay_field = "coursera_page_delay"

    def _base_url(self, credentials: Credentials) -> str:
        return f"{self.settings.coursera_api_url}/{credentials['org_slug']}"

    async def _get_token(self, client: httpx.AsyncClient, credentials: Credentials) -> str:
        """Exchange client credentials for a bearer token.

        Raises:
            VendorAPIError: If the token endpoint rejects the request or
                answers without a usable token.
        """
        response = await client.post(
            self.settings.coursera_token_url,
            data={
                "client_id": credentials["client_id"],
                "client_secret": credentials["client_secret"],
                "grant_type": "client_credentials",
            },
        )
        if not response.is_success:
            raise VendorAPIError(
                f"Coursera token exchange failed ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )
        token = json_object(response, "Coursera token endpoint").get("access_token")
        if not token or not isinstance(token, str):
            raise VendorAPIError("Coursera token response has no access_token")
        return token

    async def _authorize(self, client: httpx.AsyncClient, credentials: Credentials) -> None:
        token = await self._get_token(client, credentials)
        client.headers["Authorization"] = f"Bearer {token}"

    def _pages(self, client: httpx.AsyncClient, url: str) -> Callable[[int], Awaitable[Page]]:
        async def fetch_page(index: int) -> Page:
            data = await self._get_json(
                client,
                url,
                params={"start": index * self.page_size, "limit": self.page_size},
            )
            paging = data.get("paging")
            has_more = bool(paging.get("next")) if isinstance(paging, dict) else None
            return Page(items=data.get("elements") or [], has_more=has_more)

        return fetch_page

    async def _check_credentials(self, credentials: Credentials) -> bool:
        async with self._client() as client:
            await self._get_token(client, credentials)
        return True

    async def _list_enrollments(
        self,
        credentials: Credentials,
        roster: Roster,
        issues: list[str] | None,
    ) -> list[VendorEnrollment]:
        base = self._base_url(credentials)
        records: list[VendorEnrollment] = []

        async with self._client() as client:
            await self._authorize(client, credentials)
            program_ids = [
                str(program["id"])
                async for program in self._paginate(self._pages(client, f"{base}/programs"), "programs")
                if program.get("id") is not None
            ]
            logger.debug("Coursera org %s has %d programs", credentials["org_slug"], len(program_ids))

            for program_id in program_ids:
                url = f"{base}/programs/{program_id}/enrollments"
                try:
                    async for row in self._paginate(self._pages(client, url), "enrollments"):
                        record = self._to_enrollment(row, roster)
                        if record is not None:
                            records.append(record)
                except SUB_RESOURCE_ERRORS as e:
                    self._report(issues, f"skipped program {program_id}", e)

        return records

    async def _list_progress(
        self,
        credentials: Credentials,
        wanted: EnrollmentFilter,
        issues: list[str] | None,
    ) -> list[VendorProgress]:
        url = f"{self._base_url(credentials)}/learnerActivity"
        records: list[VendorProgress] = []

        async with self._client() as client:
            await self._authorize(client, credentials)
            async for row in self._paginate(self._pages(client, url), "learner activity"):
                record = self._to_progress(row, wanted)
                if record is not None:
                    records.append(record)

        return records

    @staticmethod
    def _to_enrollment(row: dict[str, Any], roster: Roster) -> VendorEnrollment | None:
        email = roster.match(row.get("email"))
        course_id = row.get("courseId")
        if email is None or course_id is None:
            return None
        return VendorEnrollment(
            external_course_id=str(course_id),
            course_title=row.get("courseName") or "",
            email=email,
            enrolled_at=parse_iso(row.get("enrolledTimestamp")),
        )

    @staticmethod
    def _to_progress(row: dict[str, Any], wanted: EnrollmentFilter) -> VendorProgress | None:
        course_id = row.get("courseId")
        email = wanted.match(row.get("email"), course_id)
        if email is None:
            return None

        fraction = to_float(row.get("overallProgress"))
        percentage = clamp_percentage(fraction * 100 if fraction is not None else None)
        completed_at = parse_iso(row.get("completedTimestamp"))
        hours = to_float(row.get("totalLearningHours"))

        return VendorProgress(
            external_course_id=str(course_id),
            email=email,
            percentage=percentage,
            status=resolve_status(percentage, completed_at),
            completed_at=completed_at,
            minutes_spent=int(round(hours * 60)) if hours is not None else None,
            last_activity_at=parse_iso(row.get("lastActivityTimestamp")),
        )
