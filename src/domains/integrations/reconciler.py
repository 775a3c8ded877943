# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity reconciliation between vendor records and the local roster.

Email is the only identity shared with the vendors, so matching is by
case-insensitive email equality. Records for anyone outside the roster are
dropped without error.
"""

from dataclasses import dataclass, field
from typing import Iterable


def normalize_email(email: str | None) -> str | None:
    """Lower-case and strip an email, returning None for blank values."""
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def enrollment_key(email: str, external_course_id: str) -> str:
    """Key shared by enrollments and progress within one sync run."""
    return f"{email.strip().lower()}:{external_course_id}"


@dataclass
class IdentityReconciler:
    """Email to user id map for one organization's roster.

    Attributes:
        user_ids_by_email: Normalized email to local user id.
    """

    user_ids_by_email: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_profiles(cls, profiles: Iterable[tuple[str, str | None]]) -> "IdentityReconciler":
        """Build from (user_id, email) pairs; blank emails are ignored.

        When two users share an email the first one wins.
        """
        reconciler = cls()
        for user_id, email in profiles:
            key = normalize_email(email)
            if key is not None:
                reconciler.user_ids_by_email.setdefault(key, user_id)
        return reconciler

    def __len__(self) -> int:
        return len(self.user_ids_by_email)

    @property
    def emails(self) -> list[str]:
        return list(self.user_ids_by_email)

    def match(self, email: str | None) -> str | None:
        """Return the local user id for a vendor email, if any."""
        key = normalize_email(email)
        if key is None:
            return None
        return self.user_ids_by_email.get(key)
