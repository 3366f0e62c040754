"""Cart application service.

One coroutine per business action. Each takes the latest snapshot the
caller holds, submits a command through the orchestrator and returns
the new snapshot enriched with its discount summary and totals, or a
typed failure.
"""

from dataclasses import dataclass

import structlog

from cartsync.application.migration import CartMigrationWorkflow, MigrationResult
from cartsync.application.orchestrator import CartMutationOrchestrator, RetryConfig
from cartsync.application.requests import (
    BillingAddressRequest,
    ContactInformationRequest,
    ContractItemRequest,
    DeliveryPlan,
    ExternalTaxRequest,
    SpotItemRequest,
)
from cartsync.application.resolution import ContractResolution, ResolutionRegistry
from cartsync.application.shipping import ShippingSetup
from cartsync.domain import commands
from cartsync.domain.commands import CartCommand, RetryPolicy, UpdateAction
from cartsync.domain.discounts import CanonicalDiscountSummary, normalize
from cartsync.domain.exceptions import CurrencyMismatchError, InvalidQuantityError
from cartsync.domain.outcomes import CartFailure, ErrorKind, MutationOutcome
from cartsync.domain.snapshot import CartSnapshot
from cartsync.domain.state_machines import MigrationStatus
from cartsync.domain.totals import Totals, aggregate
from cartsync.domain.value_objects import Money, OwnershipContext
from cartsync.infrastructure.config import Settings, settings as default_settings
from cartsync.infrastructure.custom_objects import AuxiliaryStorage, CustomObjectStorage
from cartsync.infrastructure.transport import Transport

logger = structlog.get_logger()


# ============================================================================
# Service Result Types
# ============================================================================


@dataclass
class EnrichedCart:
    """Snapshot with its derived discount summary and totals."""

    snapshot: CartSnapshot
    discounts: CanonicalDiscountSummary
    totals: Totals

    @classmethod
    def from_snapshot(cls, snapshot: CartSnapshot) -> "EnrichedCart":
        """Normalize discounts and aggregate totals for a snapshot.

        Raises:
            CurrencyMismatchError: If the snapshot mixes currencies.
        """
        discounts = normalize(snapshot)
        return cls(snapshot=snapshot, discounts=discounts, totals=aggregate(snapshot, discounts))


@dataclass
class CartResult:
    """Result of a cart service operation."""

    cart: EnrichedCart | None = None
    success: bool = True
    failure: CartFailure | None = None
    warning: str | None = None
    migration: MigrationResult | None = None

    @property
    def error_code(self) -> str | None:
        """Failure kind as a string, None on success."""
        return self.failure.kind.value if self.failure else None


# ============================================================================
# Cart Service
# ============================================================================


class CartService:
    """Application service for cart commands."""

    def __init__(
        self,
        transport: Transport,
        storage: AuxiliaryStorage | None = None,
        config: Settings | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize service.

        Args:
            transport: Platform transport.
            storage: Auxiliary storage (custom objects over the transport
                if not provided).
            config: Settings (uses global settings if not provided).
            request_id: Request ID for correlation.
        """
        self.config = config or default_settings
        self.request_id = request_id
        self.orchestrator = CartMutationOrchestrator(
            transport,
            retry=RetryConfig.from_settings(self.config),
            request_id=request_id,
        )
        self.registry = ResolutionRegistry(
            contract=ContractResolution(self.config.contract_line_item_type_key)
        )
        self.shipping = ShippingSetup(
            self.orchestrator,
            storage or CustomObjectStorage(transport),
            config=self.config,
        )
        self.migration = CartMigrationWorkflow(
            self.orchestrator, registry=self.registry, request_id=request_id
        )

    # ------------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------------

    def _result(self, outcome: MutationOutcome) -> CartResult:
        if not outcome.success:
            return CartResult(success=False, failure=outcome.failure)
        return self._enrich(outcome.snapshot)

    def _enrich(self, snapshot: CartSnapshot) -> CartResult:
        try:
            return CartResult(cart=EnrichedCart.from_snapshot(snapshot))
        except CurrencyMismatchError as e:
            logger.error(
                "Cart mixes currencies",
                cart_id=snapshot.id,
                details=e.details,
                request_id=self.request_id,
            )
            return CartResult(
                success=False,
                failure=CartFailure(
                    kind=ErrorKind.CURRENCY_MISMATCH,
                    message=e.message,
                    details=e.details,
                    snapshot=snapshot,
                ),
            )

    async def _update(
        self,
        name: str,
        cart: CartSnapshot,
        actions: list[UpdateAction],
    ) -> CartResult:
        command = CartCommand.update(name, cart.id, actions, retry_policy=RetryPolicy.NEVER)
        return self._result(await self.orchestrator.apply(command, cart.version))

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    async def create_cart(
        self,
        ownership: OwnershipContext,
        currency: str = "USD",
        tax_mode: str | None = None,
        country: str | None = None,
    ) -> CartResult:
        """Create an empty multi-shipping cart.

        Args:
            ownership: Customer, business unit and store of the cart.
            currency: Cart currency.
            tax_mode: Tax mode (configured default if not provided).
            country: Country used for pricing.

        Returns:
            CartResult with the new cart.
        """
        draft = {
            "currency": currency.upper(),
            "taxMode": tax_mode or self.config.default_tax_mode,
            "shippingMode": "Multiple",
        }
        if country:
            draft["country"] = country
        if ownership.customer_id:
            draft["customerId"] = ownership.customer_id
        if ownership.business_unit_key:
            draft["businessUnit"] = {"typeId": "business-unit", "key": ownership.business_unit_key}
        if ownership.store_key:
            draft["store"] = {"typeId": "store", "key": ownership.store_key}
        return self._result(await self.orchestrator.apply(CartCommand.create(draft)))

    async def get_cart(self, cart_id: str) -> CartResult:
        """Read and enrich a cart."""
        return self._result(await self.orchestrator.fetch(cart_id))

    async def delete_cart(self, cart: CartSnapshot) -> CartResult:
        """Delete a cart."""
        return self._result(await self.orchestrator.apply(CartCommand.delete(cart.id), cart.version))

    async def migrate_ownership(self, cart: CartSnapshot, target: OwnershipContext) -> CartResult:
        """Move a cart to a new ownership context.

        A partial migration is reported as success with a warning: the
        clone is the cart to continue with, and the old one needs cleanup.

        Args:
            cart: Latest snapshot of the cart to move.
            target: New ownership context.

        Returns:
            CartResult with the clone and the migration details.
        """
        return self._migration_result(await self.migration.migrate(cart, target))

    async def merge_cart(self, anonymous: CartSnapshot, customer: CartSnapshot) -> CartResult:
        """Merge an anonymous cart into the customer's cart.

        Args:
            anonymous: Latest snapshot of the anonymous cart, retired on success.
            customer: Latest snapshot of the customer's cart.

        Returns:
            CartResult with the customer's cart and the merge details.
        """
        return self._migration_result(await self.migration.merge(anonymous, customer))

    def _migration_result(self, migration: MigrationResult) -> CartResult:
        if migration.status == MigrationStatus.FAILED:
            return CartResult(success=False, failure=migration.failure, migration=migration)

        result = self._enrich(migration.snapshot)
        result.migration = migration
        result.warning = migration.warning
        return result

    # ------------------------------------------------------------------------
    # Line Items
    # ------------------------------------------------------------------------

    async def add_spot_item(self, cart: CartSnapshot, request: SpotItemRequest) -> CartResult:
        """Add a catalog-priced item."""
        command = self.registry.spot.resolve(cart, request)
        return self._result(await self.orchestrator.apply(command, cart.version))

    async def add_contract_item(self, cart: CartSnapshot, request: ContractItemRequest) -> CartResult:
        """Add an externally-priced contract item, or add to its existing line."""
        command = self.registry.contract.resolve(cart, request)
        return self._result(await self.orchestrator.apply(command, cart.version))

    async def change_quantity(
        self, cart: CartSnapshot, line_item_id: str, quantity: int
    ) -> CartResult:
        """Set the quantity of a line.

        Externally-priced lines resend their price; lines with shipping
        targets have them cleared first.
        """
        line = cart.get_line(line_item_id)
        if line is None:
            return CartResult(
                success=False,
                failure=CartFailure(
                    kind=ErrorKind.NOT_FOUND,
                    message=f"Line item {line_item_id} not found in cart {cart.id}",
                    details={"cart_id": cart.id, "line_item_id": line_item_id},
                ),
            )

        actions: list[UpdateAction] = []
        if line.shipping_targets:
            actions.append(commands.set_line_item_shipping_details(line.id, []))
        external_price: Money | None = None
        if line.price_mode == "ExternalPrice":
            external_price = line.price.value
        try:
            actions.append(commands.change_line_item_quantity(line.id, quantity, external_price))
        except InvalidQuantityError as e:
            return CartResult(
                success=False,
                failure=CartFailure(
                    kind=ErrorKind.BAD_INPUT,
                    message=e.message,
                    details={"cart_id": cart.id, "line_item_id": line.id, **e.details},
                ),
            )
        return await self._update("change_quantity", cart, actions)

    async def remove_line_item(self, cart: CartSnapshot, line_item_id: str) -> CartResult:
        """Remove a line."""
        if cart.get_line(line_item_id) is None:
            return CartResult(
                success=False,
                failure=CartFailure(
                    kind=ErrorKind.NOT_FOUND,
                    message=f"Line item {line_item_id} not found in cart {cart.id}",
                    details={"cart_id": cart.id, "line_item_id": line_item_id},
                ),
            )
        return await self._update("remove_line_item", cart, [commands.remove_line_item(line_item_id)])

    # ------------------------------------------------------------------------
    # Discount Codes
    # ------------------------------------------------------------------------

    async def apply_discount_code(self, cart: CartSnapshot, code: str) -> CartResult:
        """Apply a discount code; non-matching codes come back as DISCOUNT_REJECTED.

        A code already on the cart is not added again, so a retry after a
        concurrent writer applied the same code only checks its state.
        """

        def build(snapshot: CartSnapshot) -> CartCommand:
            actions: list[UpdateAction] = []
            if snapshot.find_discount_code(code) is None:
                actions.append(commands.add_discount_code(code))
            return CartCommand.update(
                "apply_discount_code",
                snapshot.id,
                actions,
                retry_policy=RetryPolicy.SAFE_TO_REAPPLY,
                discount_code=code,
                refresh=build,
            )

        return self._result(await self.orchestrator.apply(build(cart), cart.version))

    async def remove_discount_code(self, cart: CartSnapshot, discount_code_id: str) -> CartResult:
        """Remove an applied discount code by its platform id."""
        return await self._update(
            "remove_discount_code", cart, [commands.remove_discount_code(discount_code_id)]
        )

    # ------------------------------------------------------------------------
    # Addresses and Shipping
    # ------------------------------------------------------------------------

    async def set_contact_information(
        self, cart: CartSnapshot, request: ContactInformationRequest
    ) -> CartResult:
        """Set the main shipping address, customer email and VAT number."""
        address = request.address.to_api_payload(key=self.config.main_shipping_address_key)
        actions = [
            commands.upsert_item_shipping_address(cart, address),
            commands.set_shipping_address(address),
        ]
        if request.email:
            actions.append(commands.set_customer_email(request.email))
        if request.vat_number is not None:
            actions.append(commands.set_custom_field("vatNumber", request.vat_number))
        return await self._update("set_contact_information", cart, actions)

    async def set_billing_address(
        self, cart: CartSnapshot, request: BillingAddressRequest
    ) -> CartResult:
        """Set the billing address and whether it equals the shipping address."""
        actions = [
            commands.set_billing_address(request.address.to_api_payload()),
            commands.set_custom_field("billingAddressSameAsShipping", request.same_as_shipping),
        ]
        return await self._update("set_billing_address", cart, actions)

    async def set_delivery_shipping_methods(
        self, cart: CartSnapshot, plan: DeliveryPlan
    ) -> CartResult:
        """Store a delivery plan and apply it to the cart."""
        return self._result(await self.shipping.apply(cart, plan))

    # ------------------------------------------------------------------------
    # Tax
    # ------------------------------------------------------------------------

    async def set_tax_disabled(self, cart: CartSnapshot) -> CartResult:
        """Switch the cart to the Disabled tax mode."""
        return await self._update("set_tax_disabled", cart, [commands.set_tax_mode("Disabled")])

    async def set_external_tax(self, cart: CartSnapshot, request: ExternalTaxRequest) -> CartResult:
        """Pass externally computed tax amounts through to the cart."""
        actions: list[UpdateAction] = []
        if cart.tax_mode != "ExternalAmount":
            actions.append(commands.set_tax_mode("ExternalAmount"))
        for line_item_id, amount in request.line_items.items():
            actions.append(commands.set_line_item_tax_amount(line_item_id, amount))
        for shipping_key, amount in request.shipping.items():
            actions.append(commands.set_shipping_method_tax_amount(shipping_key, amount))
        if request.total_gross_cents is not None:
            actions.append(
                commands.set_cart_total_tax(
                    Money(amount_cents=request.total_gross_cents, currency=cart.currency)
                )
            )
        return await self._update("set_external_tax", cart, actions)
