"""Shared test fixtures for all tests."""

from __future__ import annotations

import pytest

from itemicons.config import IconSettings
from itemicons.core.models import ResolutionOutcome
from itemicons.loading.controller import LoadPolicy
from itemicons.scheduling.config import SchedulerConfig

TEST_API_URL = "https://xivapi.test"


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> IconSettings:
    """Settings pointing at a fake host with short delays."""
    return IconSettings(
        api_base_url=TEST_API_URL,
        icon_base_url=TEST_API_URL,
        request_timeout=1.0,
        quota_backoff_initial=0.05,
        quota_backoff_max=0.2,
        max_quota_retries=3,
        priority_stagger=0.0,
        max_load_retries=1,
        load_retry_base_delay=0.01,
        max_scheduled_delay=0.5,
    )


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    """Scheduler config with the default quota and short backoffs."""
    return SchedulerConfig(
        priority_stagger=0.0,
        quota_backoff_initial=0.05,
        quota_backoff_max=0.2,
        max_quota_retries=3,
    )


@pytest.fixture
def load_policy() -> LoadPolicy:
    """Load policy with millisecond retry delays."""
    return LoadPolicy(max_retries=1, retry_base_delay=0.01, max_scheduled_delay=0.5)


# ============================================================================
# Sample Outcomes
# ============================================================================


@pytest.fixture
def found_outcome() -> ResolutionOutcome:
    return ResolutionOutcome.found(f"{TEST_API_URL}/i/020000/020801.png")


@pytest.fixture
def not_found_outcome() -> ResolutionOutcome:
    return ResolutionOutcome.not_found()


@pytest.fixture
def transient_outcome() -> ResolutionOutcome:
    return ResolutionOutcome.transient("Connection reset")
