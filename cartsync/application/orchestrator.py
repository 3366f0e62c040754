"""Cart mutation orchestrator.

Runs every cart command through the platform's optimistic concurrency
protocol:
- Each command presents the version read from the latest snapshot
- Version conflicts on additive commands are retried against a freshly
  fetched snapshot, up to a configured bound
- Commands that are not safe to reapply surface the conflict instead
- Applied discount codes are checked against their resulting state

No in-process locks are held; the platform's version check is the only
coordination between concurrent callers.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import structlog

from cartsync.domain.commands import CartCommand, CommandKind
from cartsync.domain.outcomes import ErrorKind, MutationOutcome
from cartsync.domain.snapshot import CartSnapshot
from cartsync.infrastructure.config import Settings, settings as default_settings
from cartsync.infrastructure.errors import classify
from cartsync.infrastructure.operations import (
    CREATE_CART,
    DELETE_CART,
    GET_CART,
    UPDATE_CART,
    Operation,
)
from cartsync.infrastructure.transport import Transport

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetryConfig:
    """Conflict retry bound and backoff.

    Attributes:
        max_retries: Reapplications allowed after the first attempt.
        backoff_seconds: Wait before the first reapplication.
        backoff_multiplier: Growth factor of the wait per reapplication.
    """

    max_retries: int = 3
    backoff_seconds: float = 0.1
    backoff_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryConfig":
        """Build from application settings."""
        return cls(
            max_retries=config.conflict_max_retries,
            backoff_seconds=config.conflict_backoff_seconds,
            backoff_multiplier=config.conflict_backoff_multiplier,
        )

    def delay(self, attempt: int) -> float:
        """Wait before reapplication number ``attempt`` (0-based)."""
        return self.backoff_seconds * (self.backoff_multiplier**attempt)


class CartMutationOrchestrator:
    """Applies cart commands with conflict handling and failure classification."""

    def __init__(
        self,
        transport: Transport,
        retry: RetryConfig | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            transport: Platform transport.
            retry: Conflict retry configuration (from settings if not provided).
            request_id: Request ID for correlation.
        """
        self.transport = transport
        self.retry = retry or RetryConfig.from_settings(default_settings)
        self.request_id = request_id

    async def fetch(self, cart_id: str) -> MutationOutcome:
        """Read the current snapshot of a cart.

        Args:
            cart_id: Cart to read.

        Returns:
            Outcome carrying the snapshot, or the classified failure.
        """
        return await self._execute(GET_CART, {"id": cart_id})

    async def apply(
        self, command: CartCommand, current_version: int | None = None
    ) -> MutationOutcome:
        """Apply a command against the version the caller read.

        Args:
            command: Command to apply.
            current_version: Version of the snapshot the command was built
                from (ignored for CREATE).

        Returns:
            Outcome with the new snapshot, or a classified failure.
        """
        log = logger.bind(
            command=command.name,
            cart_id=command.cart_id,
            request_id=self.request_id,
        )

        attempt = 0
        version = current_version
        while True:
            outcome = await self._send(command, version)

            if outcome.success:
                log.info("Cart command applied", version=outcome.snapshot.version, attempt=attempt)
                return self._check_discount_code(command, outcome)

            if outcome.failure.kind != ErrorKind.CONFLICT:
                log.warning(
                    "Cart command failed",
                    error_code=outcome.error_code,
                    details=outcome.failure.details,
                )
                return outcome

            if not command.is_retryable:
                log.info("Version conflict on non-reapplicable command", version=version)
                return outcome

            if attempt >= self.retry.max_retries:
                log.warning("Version conflict retries exhausted", attempts=attempt + 1)
                return outcome

            await asyncio.sleep(self.retry.delay(attempt))
            attempt += 1

            refreshed = await self.fetch(command.cart_id)
            if not refreshed.success:
                log.warning(
                    "Refetch after conflict failed",
                    error_code=refreshed.error_code,
                )
                return refreshed

            snapshot = refreshed.snapshot
            if command.refresh is not None:
                command = command.refresh(snapshot)
            if command.kind == CommandKind.UPDATE and not command.actions:
                # A concurrent writer already made the change.
                log.info("Command satisfied by current cart", version=snapshot.version)
                return self._check_discount_code(command, MutationOutcome.ok(snapshot))
            version = snapshot.version
            log.info("Retrying after version conflict", attempt=attempt, version=version)

    async def _send(self, command: CartCommand, version: int | None) -> MutationOutcome:
        if command.kind == CommandKind.CREATE:
            return await self._execute(CREATE_CART, {"draft": command.draft})
        if command.kind == CommandKind.DELETE:
            return await self._execute(DELETE_CART, {"id": command.cart_id, "version": version})
        if not command.actions:
            return await self.fetch(command.cart_id)
        return await self._execute(
            UPDATE_CART,
            {"id": command.cart_id, "version": version, "actions": list(command.actions)},
        )

    async def _execute(self, operation: Operation, variables: dict[str, Any]) -> MutationOutcome:
        result = await self.transport.execute(operation, variables)
        classified = classify(result, operation)
        if classified.failure is not None:
            return MutationOutcome(success=False, failure=classified.failure)
        return MutationOutcome.ok(CartSnapshot.from_api_response(classified.payload))

    def _check_discount_code(
        self, command: CartCommand, outcome: MutationOutcome
    ) -> MutationOutcome:
        """Turn a non-matching discount code into a rejection.

        The platform accepts codes whose conditions are not met and just
        records their state; only MatchesCart is a successful application.
        """
        if command.discount_code is None:
            return outcome

        snapshot = outcome.snapshot
        entry = snapshot.find_discount_code(command.discount_code)
        if entry is not None and entry.status.is_matching():
            return outcome

        state = entry.status.raw if entry is not None else ""
        logger.info(
            "Discount code rejected",
            cart_id=snapshot.id,
            code=command.discount_code,
            state=state,
            request_id=self.request_id,
        )
        return MutationOutcome.fail(
            ErrorKind.DISCOUNT_REJECTED,
            f"Discount code {command.discount_code} is not applied: {state or 'missing'}",
            details={
                "code": command.discount_code,
                "discount_code_id": entry.code_id if entry is not None else None,
                "state": state,
                "recognized_state": (
                    entry.status.state.value if entry is not None else None
                ),
            },
            snapshot=snapshot,
        )
