"""Cart migration to a new ownership context.

Moves a cart to another customer, business unit or store by cloning it
and retiring the original:

1. CLONING: create a cart in the target context and re-add every source
   line through the line item resolution strategies
2. VERIFYING: read the clone back and compare it line by line with the
   source
3. RETIRING_SOURCE: delete the source, only once the clone is verified

The source is never touched before step 3. A failure in step 3 leaves
two carts behind; the clone is the one to keep.

Merging an anonymous cart into a customer's existing cart runs the same
steps with the customer cart in place of a new clone.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from cartsync.application.orchestrator import CartMutationOrchestrator
from cartsync.application.resolution import ResolutionRegistry
from cartsync.domain.commands import CartCommand
from cartsync.domain.exceptions import UnresolvableLineError
from cartsync.domain.outcomes import CartFailure, ErrorKind
from cartsync.domain.snapshot import CartSnapshot
from cartsync.domain.state_machines import MigrationStatus, validate_migration_transition
from cartsync.domain.value_objects import OwnershipContext

logger = structlog.get_logger()


@dataclass
class MigrationResult:
    """Result of a cart migration.

    Attributes:
        status: Terminal status (DONE, FAILED or PARTIAL_MIGRATION).
        source_cart_id: Cart that was migrated.
        new_cart_id: Clone, if one was created.
        snapshot: Latest snapshot of the clone.
        failure: Why the migration did not complete.
        warning: Cleanup notice for PARTIAL_MIGRATION.
        target_created: Whether the workflow created the new cart (False
            when lines were merged into an existing cart).
    """

    status: MigrationStatus
    source_cart_id: str
    new_cart_id: str | None = None
    snapshot: CartSnapshot | None = None
    failure: CartFailure | None = None
    warning: str | None = None
    target_created: bool = True

    @property
    def success(self) -> bool:
        """Whether the source was retired behind a verified clone."""
        return self.status.source_retired()

    @property
    def requires_cleanup(self) -> bool:
        """Whether a cart was left behind that someone has to remove."""
        if self.status == MigrationStatus.PARTIAL_MIGRATION:
            return True
        return (
            self.target_created
            and self.new_cart_id is not None
            and self.status != MigrationStatus.DONE
        )


@dataclass
class _MigrationRun:
    """Mutable progress of one migration."""

    source: CartSnapshot
    status: MigrationStatus = MigrationStatus.CLONING
    clone: CartSnapshot | None = None
    expected: dict[str, int] = field(default_factory=dict)
    expected_line_count: int | None = None
    target_created: bool = True
    log: Any = field(default=None, repr=False)

    def advance(self, target: MigrationStatus) -> None:
        validate_migration_transition(self.source.id, self.status, target)
        self.log.info("Migration state changed", from_status=self.status.value, to_status=target.value)
        self.status = target

    def fail(self, failure: CartFailure) -> MigrationResult:
        self.advance(MigrationStatus.FAILED)
        self.log.warning(
            "Cart migration failed, source left untouched",
            error_code=failure.kind.value,
            new_cart_id=self.clone.id if self.clone else None,
        )
        return MigrationResult(
            status=self.status,
            source_cart_id=self.source.id,
            new_cart_id=self.clone.id if self.clone else None,
            snapshot=self.clone,
            failure=failure,
            target_created=self.target_created,
        )


def line_quantities(snapshot: CartSnapshot) -> dict[str, int]:
    """Quantity per line identity."""
    quantities: dict[str, int] = {}
    for line in snapshot.line_items:
        identity = str(line.identity)
        quantities[identity] = quantities.get(identity, 0) + line.quantity
    return quantities


def _combined(*quantities: dict[str, int]) -> dict[str, int]:
    combined: dict[str, int] = {}
    for counts in quantities:
        for identity, quantity in counts.items():
            combined[identity] = combined.get(identity, 0) + quantity
    return combined


class CartMigrationWorkflow:
    """Clones a cart into a new ownership context and retires the source."""

    def __init__(
        self,
        orchestrator: CartMutationOrchestrator,
        registry: ResolutionRegistry | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize workflow.

        Args:
            orchestrator: Orchestrator every step goes through.
            registry: Line item resolution strategies.
            request_id: Request ID for correlation.
        """
        self.orchestrator = orchestrator
        self.registry = registry or ResolutionRegistry()
        self.request_id = request_id

    async def migrate(self, source: CartSnapshot, target: OwnershipContext) -> MigrationResult:
        """Migrate ``source`` into ``target``.

        Steps run strictly in sequence, and lines are cloned one at a
        time so the clone's line order follows the source.

        Args:
            source: Latest snapshot of the cart to migrate.
            target: Ownership context of the new cart.

        Returns:
            MigrationResult with the terminal status.
        """
        run = _MigrationRun(
            source=source,
            expected=line_quantities(source),
            expected_line_count=len(source.line_items),
            log=logger.bind(source_cart_id=source.id, request_id=self.request_id),
        )
        run.log.info("Cart migration started", line_count=len(source.line_items))

        failure = await self._clone(run, target)
        if failure is not None:
            return run.fail(failure)
        return await self._finish(run)

    async def merge(self, source: CartSnapshot, target: CartSnapshot) -> MigrationResult:
        """Merge the lines of ``source`` into the existing cart ``target``.

        Used when an anonymous shopper signs in while already owning a
        cart. Each line goes through its resolution strategy, so a
        contract line present on both carts ends up as one line with the
        summed quantity. Discount codes of ``source`` are not carried over.

        Args:
            source: Latest snapshot of the cart to merge and retire.
            target: Latest snapshot of the cart that receives the lines.

        Returns:
            MigrationResult whose ``new_cart_id`` is ``target``.
        """
        run = _MigrationRun(
            source=source,
            clone=target,
            expected=_combined(line_quantities(target), line_quantities(source)),
            target_created=False,
            log=logger.bind(
                source_cart_id=source.id, new_cart_id=target.id, request_id=self.request_id
            ),
        )
        run.log.info("Cart merge started", line_count=len(source.line_items))

        if source.currency != target.currency:
            return run.fail(
                CartFailure(
                    kind=ErrorKind.CURRENCY_MISMATCH,
                    message=f"Cannot merge a {source.currency} cart into a {target.currency} cart",
                    details={
                        "source_currency": source.currency,
                        "target_currency": target.currency,
                    },
                )
            )

        failure = await self._copy_lines(run)
        if failure is not None:
            return run.fail(failure)
        return await self._finish(run)

    async def _finish(self, run: _MigrationRun) -> MigrationResult:
        run.advance(MigrationStatus.VERIFYING)
        failure = await self._verify(run)
        if failure is not None:
            return run.fail(failure)

        run.advance(MigrationStatus.RETIRING_SOURCE)
        return await self._retire(run)

    async def _clone(self, run: _MigrationRun, target: OwnershipContext) -> CartFailure | None:
        outcome = await self.orchestrator.apply(CartCommand.create(self._draft(run.source, target)))
        if not outcome.success:
            return outcome.failure
        run.clone = outcome.snapshot
        run.log = run.log.bind(new_cart_id=run.clone.id)
        return await self._copy_lines(run)

    async def _copy_lines(self, run: _MigrationRun) -> CartFailure | None:
        for line in run.source.line_items:
            strategy = self.registry.for_line(line)
            try:
                request = strategy.request_from_line(line)
            except (UnresolvableLineError, ValidationError) as e:
                return CartFailure(
                    kind=ErrorKind.BAD_INPUT,
                    message=f"Cannot replicate line item {line.id}",
                    details={"line_item_id": line.id, "error": str(e)},
                )

            outcome = await self.orchestrator.apply(
                strategy.resolve(run.clone, request), run.clone.version
            )
            if not outcome.success:
                return outcome.failure
            run.clone = outcome.snapshot

        return None

    async def _verify(self, run: _MigrationRun) -> CartFailure | None:
        outcome = await self.orchestrator.fetch(run.clone.id)
        if not outcome.success:
            return outcome.failure
        run.clone = outcome.snapshot

        expected = run.expected
        actual = line_quantities(run.clone)
        line_count_differs = (
            run.expected_line_count is not None
            and len(run.clone.line_items) != run.expected_line_count
        )
        if line_count_differs or expected != actual:
            return CartFailure(
                kind=ErrorKind.CONFLICT,
                message="Cloned cart does not match source",
                details={
                    "expected_line_count": run.expected_line_count,
                    "actual_line_count": len(run.clone.line_items),
                    "expected": expected,
                    "actual": actual,
                },
                snapshot=run.clone,
            )
        return None

    async def _retire(self, run: _MigrationRun) -> MigrationResult:
        outcome = await self.orchestrator.apply(
            CartCommand.delete(run.source.id), run.source.version
        )
        if not outcome.success:
            run.advance(MigrationStatus.PARTIAL_MIGRATION)
            warning = (
                f"Cart {run.clone.id} replaces {run.source.id}, "
                f"but {run.source.id} could not be deleted and must be cleaned up"
            )
            run.log.warning(
                "Partial cart migration",
                error_code=outcome.error_code,
                cleanup_cart_id=run.source.id,
            )
            return MigrationResult(
                status=run.status,
                source_cart_id=run.source.id,
                new_cart_id=run.clone.id,
                snapshot=run.clone,
                failure=outcome.failure,
                warning=warning,
                target_created=run.target_created,
            )

        run.advance(MigrationStatus.DONE)
        run.log.info("Cart migration completed")
        return MigrationResult(
            status=run.status,
            source_cart_id=run.source.id,
            new_cart_id=run.clone.id,
            snapshot=run.clone,
            target_created=run.target_created,
        )

    @staticmethod
    def _draft(source: CartSnapshot, target: OwnershipContext) -> dict[str, Any]:
        draft: dict[str, Any] = {
            "currency": source.currency,
            "shippingMode": source.shipping_mode or "Multiple",
        }
        if source.tax_mode:
            draft["taxMode"] = source.tax_mode
        if target.customer_id:
            draft["customerId"] = target.customer_id
        if target.business_unit_key:
            draft["businessUnit"] = {"typeId": "business-unit", "key": target.business_unit_key}
        if target.store_key:
            draft["store"] = {"typeId": "store", "key": target.store_key}
        return draft
