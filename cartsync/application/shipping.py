"""Delivery shipping setup.

Applying a delivery plan touches two stores: the plan itself is kept in
auxiliary storage, and the cart gets addresses, shipping methods,
per-unit targets and plan fields. The auxiliary write always goes
first. If the cart command then fails, re-running the setup rewrites
the same plan and tries the cart again; the reverse order could leave
a cart pointing at a plan that was never stored.
"""

import json

import structlog

from cartsync.application.orchestrator import CartMutationOrchestrator
from cartsync.application.requests import DeliveryInput, DeliveryPlan
from cartsync.domain import commands
from cartsync.domain.commands import CartCommand, RetryPolicy, UpdateAction
from cartsync.domain.outcomes import ErrorKind, MutationOutcome
from cartsync.domain.snapshot import CartSnapshot, ShippingEntry, ShippingTarget
from cartsync.domain.value_objects import Money
from cartsync.infrastructure.config import Settings, settings as default_settings
from cartsync.infrastructure.custom_objects import AuxiliaryStorage

logger = structlog.get_logger()


def _is_current(entry: ShippingEntry, delivery: DeliveryInput) -> bool:
    """Whether a cart shipping entry already reflects a planned delivery."""
    return (
        entry.method_name == delivery.method_name
        and entry.price is not None
        and entry.price.amount_cents == delivery.price_cents
    )


class ShippingSetup:
    """Applies a delivery plan to a cart as one ordered procedure."""

    def __init__(
        self,
        orchestrator: CartMutationOrchestrator,
        storage: AuxiliaryStorage,
        config: Settings | None = None,
    ) -> None:
        """Initialize shipping setup.

        Args:
            orchestrator: Orchestrator for the cart command.
            storage: Auxiliary storage for the plan.
            config: Settings (uses global settings if not provided).
        """
        self.orchestrator = orchestrator
        self.storage = storage
        self.config = config or default_settings

    def plan_actions(self, cart: CartSnapshot, plan: DeliveryPlan) -> list[UpdateAction]:
        """Cart update actions for a plan, in execution order.

        Order: address upsert, stale method removal, new method addition,
        shipping target assignment, plan custom fields.

        Args:
            cart: Latest cart snapshot.
            plan: Validated delivery plan.

        Returns:
            Update actions.
        """
        address_key = self.config.main_shipping_address_key
        address = plan.address.to_api_payload(key=address_key)
        planned = {d.shipping_key: d for d in plan.deliveries}
        existing = {entry.shipping_key: entry for entry in cart.shipping}

        actions: list[UpdateAction] = [commands.upsert_item_shipping_address(cart, address)]

        # Changed methods are removed and re-added under the same key.
        kept: set[str] = set()
        for key, entry in existing.items():
            delivery = planned.get(key)
            if delivery is not None and _is_current(entry, delivery):
                kept.add(key)
            else:
                actions.append(commands.remove_shipping_method(key))

        for delivery in plan.deliveries:
            if delivery.shipping_key in kept:
                continue
            actions.append(
                commands.add_custom_shipping_method(
                    shipping_key=delivery.shipping_key,
                    method_name=delivery.method_name,
                    address=address,
                    price=Money(amount_cents=delivery.price_cents, currency=cart.currency),
                    tax_category_key=delivery.tax_category_key,
                )
            )

        targets: dict[str, list[ShippingTarget]] = {}
        for delivery in plan.deliveries:
            for target in delivery.targets:
                targets.setdefault(target.line_item_id, []).append(
                    ShippingTarget(
                        address_key=address_key,
                        quantity=target.quantity,
                        shipping_method_key=delivery.shipping_key,
                    )
                )
        for line in cart.line_items:
            if line.id in targets or line.shipping_targets:
                actions.append(
                    commands.set_line_item_shipping_details(line.id, targets.get(line.id, []))
                )

        # deliveryRoutes is a text field holding JSON.
        routes = json.dumps(plan.model_dump(mode="json")["routes"])
        actions.append(commands.set_custom_field("deliveryPlanType", plan.plan_type))
        actions.append(commands.set_custom_field("deliveryRoutes", routes))
        return actions

    async def apply(self, cart: CartSnapshot, plan: DeliveryPlan) -> MutationOutcome:
        """Store the plan, then apply it to the cart.

        Args:
            cart: Latest cart snapshot.
            plan: Validated delivery plan.

        Returns:
            Outcome of the cart command, or the failure that stopped the
            procedure before it.
        """
        log = logger.bind(cart_id=cart.id, plan_type=plan.plan_type)

        unknown = sorted(
            {t.line_item_id for d in plan.deliveries for t in d.targets}
            - {line.id for line in cart.line_items}
        )
        if unknown:
            return MutationOutcome.fail(
                ErrorKind.BAD_INPUT,
                "Delivery plan targets line items that are not in the cart",
                details={"line_item_ids": unknown},
            )

        stored = await self.storage.write(
            self.config.delivery_plan_container,
            cart.id,
            plan.model_dump(mode="json"),
        )
        if not stored.success:
            log.warning("Delivery plan not stored, cart left unchanged")
            return MutationOutcome(success=False, failure=stored.failure)

        command = CartCommand.update(
            "set_delivery_shipping_methods",
            cart.id,
            self.plan_actions(cart, plan),
            retry_policy=RetryPolicy.NEVER,
        )
        outcome = await self.orchestrator.apply(command, cart.version)
        if not outcome.success:
            log.warning(
                "Delivery plan stored but cart update failed",
                error_code=outcome.error_code,
                object_id=stored.object_id,
            )
        return outcome
