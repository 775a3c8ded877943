# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared plumbing for vendor adapters.

VendorAdapter implements the public adapter contract once: credential
checks, the isolation boundary around vendor failures, de-duplication and
issue reporting. Each vendor subclass supplies the HTTP specifics through
``_check_credentials``, ``_list_enrollments`` and ``_list_progress``.

The module also provides ``paginate``, the single pagination loop used by
every vendor, and the numeric helpers that normalize progress values.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable

import httpx

from src.core.config.settings import IntegrationSettings, get_settings
from src.domains.integrations.exceptions import VendorAPIError
from src.domains.integrations.types import (
    Credentials,
    EnrollmentRef,
    ExternalPlatform,
    ProgressStatus,
    VendorEnrollment,
    VendorProgress,
    missing_credential_keys,
)

logger = logging.getLogger(__name__)

# Sub-resource failures that are skipped while the surrounding fetch continues.
SUB_RESOURCE_ERRORS = (httpx.HTTPError, VendorAPIError, ValueError, KeyError, TypeError)


@dataclass
class Page:
    """One page of vendor rows.

    Attributes:
        items: Rows on this page.
        has_more: Vendor's own "more pages" signal, or None when the vendor
            sent no pagination metadata.
    """

    items: list[dict[str, Any]]
    has_more: bool | None = None


def json_object(response: httpx.Response, source: str) -> dict[str, Any]:
    """Decode a response body that must be a JSON object.

    Raises:
        VendorAPIError: If the body is not JSON or not an object.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise VendorAPIError(
            f"{source} returned a non-JSON body",
            status_code=response.status_code,
            body=response.text,
        ) from e
    if not isinstance(data, dict):
        raise VendorAPIError(
            f"{source} returned {type(data).__name__} instead of an object",
            status_code=response.status_code,
            body=response.text,
        )
    return data


async def _rate_limit_pause(delay: float) -> None:
    await asyncio.sleep(delay)


async def paginate(
    fetch_page: Callable[[int], Awaitable[Page]],
    *,
    page_size: int,
    delay: float,
    max_pages: int,
    label: str = "",
) -> AsyncIterator[dict[str, Any]]:
    """Drain a paginated vendor listing.

    Stops as soon as the vendor reports no further page or a page comes back
    shorter than ``page_size``. A fixed ``delay`` separates consecutive page
    requests.

    Args:
        fetch_page: Coroutine returning the page at a zero-based index.
        page_size: Page size that was requested from the vendor.
        delay: Seconds to wait between page requests.
        max_pages: Hard upper bound on pages fetched.
        label: Listing name used in log messages.

    Yields:
        Individual rows across all pages. Rows that are not JSON objects
        are skipped.
    """
    for index in range(max_pages):
        if index > 0:
            await _rate_limit_pause(delay)

        page = await fetch_page(index)
        for item in page.items:
            if isinstance(item, dict):
                yield item

        if page.has_more is False or len(page.items) < page_size:
            return

    logger.warning("Stopped paging %s after max_pages=%d", label or "listing", max_pages)


def to_float(value: Any) -> float | None:
    """Coerce a vendor numeric field, returning None when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp_percentage(value: float | None) -> int:
    """Clamp a 0-100 value and round it to a whole percent."""
    if value is None:
        return 0
    return int(round(max(0.0, min(100.0, value))))


def resolve_status(percentage: int, completed_at: Any) -> ProgressStatus:
    """Completed when the percentage reaches 100 or a completion time exists."""
    if percentage >= 100 or completed_at is not None:
        return ProgressStatus.COMPLETED
    return ProgressStatus.IN_PROGRESS


def to_minutes(value: Any) -> int | None:
    number = to_float(value)
    if number is None:
        return None
    return max(0, int(round(number)))


class Roster:
    """Case-insensitive view of the organization's known emails.

    Lookups return the roster's own spelling of the email so records handed
    back to the sync service match the roster exactly.
    """

    def __init__(self, emails: Iterable[str]) -> None:
        self._by_key: dict[str, str] = {}
        for email in emails:
            if email and email.strip():
                self._by_key.setdefault(email.strip().lower(), email)

    def __len__(self) -> int:
        return len(self._by_key)

    def __bool__(self) -> bool:
        return bool(self._by_key)

    def match(self, email: Any) -> str | None:
        if not isinstance(email, str):
            return None
        return self._by_key.get(email.strip().lower())


class EnrollmentFilter:
    """Known (email, course) pairs, used to narrow progress feeds."""

    def __init__(self, enrollments: Iterable[EnrollmentRef | VendorEnrollment]) -> None:
        self._pairs: dict[tuple[str, str], str] = {}
        for ref in enrollments:
            key = (ref.email.strip().lower(), str(ref.external_course_id))
            self._pairs.setdefault(key, ref.email)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    @property
    def emails(self) -> Roster:
        return Roster(self._pairs.values())

    def match(self, email: Any, course_id: Any) -> str | None:
        if not isinstance(email, str) or course_id is None:
            return None
        return self._pairs.get((email.strip().lower(), str(course_id)))


class VendorAdapter(ABC):
    """Abstract base class for vendor adapters.

    Subclasses set ``platform`` and ``page_delay_field`` and implement the
    three vendor hooks. Every public method degrades instead of raising:
    missing credentials give an empty result silently, while failures on
    configured credentials are logged and appended to ``issues``.

    Attributes:
        platform: Platform this adapter serves.
        page_delay_field: IntegrationSettings field holding the page delay.
    """

    platform: ExternalPlatform
    page_delay_field: str

    def __init__(
        self,
        settings: IntegrationSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings().integrations
        self._transport = transport

    @property
    def settings(self) -> IntegrationSettings:
        return self._settings

    @property
    def page_size(self) -> int:
        return self._settings.page_size

    @property
    def page_delay(self) -> float:
        return getattr(self._settings, self.page_delay_field)

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.request_timeout,
            transport=self._transport,
            **kwargs,
        )

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """GET a vendor URL and decode its JSON object body.

        Raises:
            VendorAPIError: On a non-2xx status or a body that is not a JSON
                object.
        """
        response = await client.get(url, params=params)
        if not response.is_success:
            raise VendorAPIError(
                f"{self.platform.value} API request failed ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )
        return json_object(response, f"{self.platform.value} API")

    def _paginate(
        self,
        fetch_page: Callable[[int], Awaitable[Page]],
        label: str,
    ) -> AsyncIterator[dict[str, Any]]:
        return paginate(
            fetch_page,
            page_size=self.page_size,
            delay=self.page_delay,
            max_pages=self._settings.max_pages,
            label=f"{self.platform.value} {label}",
        )

    def _report(self, issues: list[str] | None, message: str, error: BaseException | None = None) -> None:
        """Log a failure on configured credentials and record it for the caller."""
        if error is not None:
            message = f"{message}: {error}"
        logger.warning("[%s] %s", self.platform.value, message)
        if issues is not None:
            issues.append(f"{self.platform.value}: {message}")

    def _is_configured(self, credentials: Credentials | None, operation: str) -> bool:
        missing = missing_credential_keys(self.platform, credentials)
        if missing:
            logger.debug(
                "[%s] %s skipped, credentials not configured (missing %s)",
                self.platform.value,
                operation,
                ", ".join(missing),
            )
            return False
        return True

    async def validate_credentials(self, credentials: Credentials | None) -> bool:
        """Check credentials with one lightweight authenticated call.

        Returns:
            False when required keys are missing or the vendor rejects the
            call, True otherwise. Never raises.
        """
        if missing_credential_keys(self.platform, credentials):
            return False
        try:
            return await self._check_credentials(credentials)
        except (httpx.HTTPError, VendorAPIError, ValueError) as e:
            logger.info("[%s] Credential validation failed: %s", self.platform.value, e)
            return False

    async def fetch_enrollments(
        self,
        credentials: Credentials | None,
        known_emails: list[str],
        issues: list[str] | None = None,
    ) -> list[VendorEnrollment]:
        """List vendor enrollments for learners on the roster.

        Args:
            credentials: Vendor credential map.
            known_emails: Roster emails; records for anyone else are dropped.
            issues: Optional collector for failures on configured credentials.

        Returns:
            De-duplicated enrollments, empty when unconfigured or failing.
        """
        if not self._is_configured(credentials, "fetch_enrollments"):
            return []
        roster = Roster(known_emails)
        if not roster:
            return []

        try:
            records = await self._list_enrollments(credentials, roster, issues)
        except Exception as e:
            logger.exception("[%s] Enrollment fetch failed", self.platform.value)
            self._report(issues, "enrollment fetch failed", e)
            return []

        unique: dict[tuple[str, str], VendorEnrollment] = {}
        for record in records:
            unique.setdefault((record.email.lower(), record.external_course_id), record)
        logger.info(
            "[%s] Fetched %d enrollments for %d roster emails",
            self.platform.value,
            len(unique),
            len(roster),
        )
        return list(unique.values())

    async def fetch_progress(
        self,
        credentials: Credentials | None,
        enrollments: list[EnrollmentRef] | list[VendorEnrollment],
        issues: list[str] | None = None,
    ) -> list[VendorProgress]:
        """List progress for the given (email, course) pairs.

        Args:
            credentials: Vendor credential map.
            enrollments: Pairs whose progress is wanted.
            issues: Optional collector for failures on configured credentials.

        Returns:
            Progress records, empty when unconfigured or failing.
        """
        if not self._is_configured(credentials, "fetch_progress"):
            return []
        wanted = EnrollmentFilter(enrollments)
        if not wanted:
            return []

        try:
            records = await self._list_progress(credentials, wanted, issues)
        except Exception as e:
            logger.exception("[%s] Progress fetch failed", self.platform.value)
            self._report(issues, "progress fetch failed", e)
            return []

        unique: dict[tuple[str, str], VendorProgress] = {}
        for record in records:
            unique.setdefault((record.email.lower(), record.external_course_id), record)
        logger.info("[%s] Fetched %d progress records", self.platform.value, len(unique))
        return list(unique.values())

    @abstractmethod
    async def _check_credentials(self, credentials: Credentials) -> bool:
        """Make one authenticated call and report whether it succeeded."""
        ...

    @abstractmethod
    async def _list_enrollments(
        self,
        credentials: Credentials,
        roster: Roster,
        issues: list[str] | None,
    ) -> list[VendorEnrollment]:
        """List enrollments for roster learners.

        Sub-resource failures are reported to ``issues`` and skipped; anything
        raised aborts the whole fetch.
        """
        ...

    @abstractmethod
    async def _list_progress(
        self,
        credentials: Credentials,
        wanted: EnrollmentFilter,
        issues: list[str] | None,
    ) -> list[VendorProgress]:
        """List progress rows for the wanted (email, course) pairs."""
        ...
