"""Tests for custom object storage."""

import json

import pytest

from cartsync.domain import ErrorKind
from cartsync.infrastructure.custom_objects import CustomObjectStorage
from payloads import FakePlatform, network_failure


class TestCustomObjectStorage:
    """Tests for CustomObjectStorage."""

    @pytest.mark.asyncio
    async def test_write(self, platform: FakePlatform) -> None:
        """Values are written as JSON under container and key."""
        storage = CustomObjectStorage(platform)

        outcome = await storage.write("delivery-plans", "cart-1", {"plan_type": "split"})

        assert outcome.success is True
        assert outcome.object_id is not None
        draft = platform.called("CreateOrUpdateCustomObject")[0]["draft"]
        assert draft["container"] == "delivery-plans"
        assert json.loads(draft["value"]) == {"plan_type": "split"}

    @pytest.mark.asyncio
    async def test_write_failure(self, platform: FakePlatform) -> None:
        """Failures are classified like cart failures."""
        platform.queue("CreateOrUpdateCustomObject", network_failure())
        storage = CustomObjectStorage(platform)

        outcome = await storage.write("delivery-plans", "cart-1", {})

        assert outcome.success is False
        assert outcome.failure.kind == ErrorKind.NETWORK_ERROR
