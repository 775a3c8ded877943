# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests
"""

import os
from collections.abc import Generator

import pytest

# Actors call setup_dramatiq() at import time; keep them off Redis.
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

from src.core.config import clear_settings_cache  # noqa: E402
from src.core.config.settings import IntegrationSettings  # noqa: E402
from src.domains.integrations import reset_adapters  # noqa: E402


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_cached_state() -> Generator[None, None, None]:
    """Drop cached settings and adapter singletons around every test."""
    clear_settings_cache()
    reset_adapters()
    yield
    clear_settings_cache()
    reset_adapters()


@pytest.fixture
def integration_settings() -> IntegrationSettings:
    """Integration settings with small pages so paging is easy to exercise."""
    return IntegrationSettings(page_size=2, max_pages=10)


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_organization_id() -> str:
    """Provide a sample organization ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def coursera_credentials() -> dict[str, str]:
    return {"client_id": "cid", "client_secret": "csecret", "org_slug": "acme"}


@pytest.fixture
def pluralsight_credentials() -> dict[str, str]:
    return {"api_token": "ps-token", "plan_id": "plan-1"}


@pytest.fixture
def udemy_credentials() -> dict[str, str]:
    return {"api_key": "client:secret", "account_id": "acme"}
