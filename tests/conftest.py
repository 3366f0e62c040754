"""Shared fixtures."""

import uuid

import pytest

from cartsync.application.orchestrator import CartMutationOrchestrator, RetryConfig
from cartsync.infrastructure.config import Settings
from payloads import FakePlatform


@pytest.fixture
def platform() -> FakePlatform:
    """In-memory platform."""
    return FakePlatform()


@pytest.fixture
def test_settings() -> Settings:
    """Settings without backoff delays."""
    return Settings(
        conflict_max_retries=3,
        conflict_backoff_seconds=0,
        ecp_project_key="test-project",
    )


@pytest.fixture
def orchestrator(platform: FakePlatform) -> CartMutationOrchestrator:
    """Orchestrator over the in-memory platform, without backoff delays."""
    return CartMutationOrchestrator(
        platform,
        retry=RetryConfig(max_retries=3, backoff_seconds=0),
        request_id=str(uuid.uuid4()),
    )
