"""Auxiliary storage backed by platform custom objects.

Custom objects live outside the cart, so a write here is a side effect
the cart's version protocol knows nothing about. Callers sequence it
explicitly.
"""

import json
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from cartsync.domain.outcomes import CartFailure
from cartsync.infrastructure.errors import classify
from cartsync.infrastructure.operations import CREATE_OR_UPDATE_CUSTOM_OBJECT
from cartsync.infrastructure.transport import Transport

logger = structlog.get_logger()


@dataclass
class StorageOutcome:
    """Result of an auxiliary write."""

    object_id: str | None = None
    success: bool = True
    failure: CartFailure | None = None


class AuxiliaryStorage(Protocol):
    """Key/value storage outside the cart."""

    async def write(self, container: str, key: str, value: Any) -> StorageOutcome:
        """Write a JSON-serializable value under container/key."""
        ...


class CustomObjectStorage:
    """AuxiliaryStorage implementation over the platform transport."""

    def __init__(self, transport: Transport) -> None:
        """Initialize storage.

        Args:
            transport: Platform transport.
        """
        self.transport = transport

    async def write(self, container: str, key: str, value: Any) -> StorageOutcome:
        """Create or replace a custom object.

        Args:
            container: Custom object container.
            key: Custom object key.
            value: JSON-serializable value.

        Returns:
            StorageOutcome with the object id or a classified failure.
        """
        result = await self.transport.execute(
            CREATE_OR_UPDATE_CUSTOM_OBJECT,
            {"draft": {"container": container, "key": key, "value": json.dumps(value)}},
        )
        classified = classify(result, CREATE_OR_UPDATE_CUSTOM_OBJECT)
        if classified.failure is not None:
            logger.warning(
                "Custom object write failed",
                container=container,
                key=key,
                error_code=classified.failure.kind.value,
            )
            return StorageOutcome(success=False, failure=classified.failure)

        object_id = classified.payload["id"] if classified.payload else None
        logger.info("Custom object written", container=container, key=key, object_id=object_id)
        return StorageOutcome(object_id=object_id)
