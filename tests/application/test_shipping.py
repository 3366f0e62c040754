"""Tests for delivery shipping setup."""

import json

import pytest

from cartsync.application.orchestrator import CartMutationOrchestrator
from cartsync.application.requests import DeliveryPlan
from cartsync.application.shipping import ShippingSetup
from cartsync.domain import CartSnapshot, ErrorKind
from cartsync.infrastructure.custom_objects import CustomObjectStorage
from payloads import FakePlatform, cart_payload, line_payload, rejection, shipping_payload


def _plan(**overrides) -> DeliveryPlan:
    values = {
        "plan_type": "split",
        "address": {"country": "US", "city": "Austin", "street_name": "Main"},
        "deliveries": [
            {
                "shipping_key": "d1",
                "method_name": "Truck",
                "price_cents": 1500,
                "targets": [{"line_item_id": "li-1", "quantity": 2}],
            },
            {
                "shipping_key": "d2",
                "method_name": "Van",
                "price_cents": 900,
                "targets": [{"line_item_id": "li-1", "quantity": 1}],
            },
        ],
        "routes": [{"route": "R1", "stops": 2}],
    }
    values.update(overrides)
    return DeliveryPlan.model_validate(values)


@pytest.fixture
def shipping_setup(
    platform: FakePlatform, orchestrator: CartMutationOrchestrator, test_settings
) -> ShippingSetup:
    """Shipping setup over the in-memory platform."""
    return ShippingSetup(orchestrator, CustomObjectStorage(platform), config=test_settings)


def _seed(platform: FakePlatform, **kwargs) -> CartSnapshot:
    payload = cart_payload(line_items=[line_payload("li-1", quantity=3)], **kwargs)
    return CartSnapshot.from_api_response(platform.seed(payload))


class TestPlanActions:
    """Tests for action planning."""

    def test_action_order(self, platform: FakePlatform, shipping_setup: ShippingSetup) -> None:
        """Address, methods, targets and plan fields come in that order."""
        cart = _seed(platform)
        actions = shipping_setup.plan_actions(cart, _plan())
        assert [next(iter(a)) for a in actions] == [
            "addItemShippingAddress",
            "addCustomShippingMethod",
            "addCustomShippingMethod",
            "setLineItemShippingDetails",
            "setCustomField",
            "setCustomField",
        ]

    def test_targets_grouped_per_line(self, platform: FakePlatform, shipping_setup: ShippingSetup) -> None:
        """A line's targets across deliveries are set in one action."""
        cart = _seed(platform)
        actions = shipping_setup.plan_actions(cart, _plan())
        details = actions[3]["setLineItemShippingDetails"]
        assert details["lineItemId"] == "li-1"
        assert details["shippingDetails"]["targets"] == [
            {"addressKey": "main-shipping-address", "quantity": 2, "shippingMethodKey": "d1"},
            {"addressKey": "main-shipping-address", "quantity": 1, "shippingMethodKey": "d2"},
        ]

    def test_unchanged_method_kept(self, platform: FakePlatform, shipping_setup: ShippingSetup) -> None:
        """A shipping entry that already matches the plan is left alone."""
        cart = _seed(platform, shipping=[shipping_payload("d1", "Truck", 1500)])
        actions = shipping_setup.plan_actions(cart, _plan())
        added = [a["addCustomShippingMethod"]["shippingKey"] for a in actions if "addCustomShippingMethod" in a]
        assert added == ["d2"]
        assert not any("removeShippingMethod" in a for a in actions)

    def test_stale_and_changed_methods_replaced(
        self, platform: FakePlatform, shipping_setup: ShippingSetup
    ) -> None:
        """Entries missing from the plan or priced differently are removed."""
        cart = _seed(
            platform,
            shipping=[shipping_payload("old", "Truck", 1500), shipping_payload("d1", "Truck", 2000)],
        )
        actions = shipping_setup.plan_actions(cart, _plan())
        removed = [a["removeShippingMethod"]["shippingKey"] for a in actions if "removeShippingMethod" in a]
        assert removed == ["old", "d1"]

    def test_address_updated_when_present(self, platform: FakePlatform, shipping_setup: ShippingSetup) -> None:
        """An existing main address is updated, not added again."""
        cart = _seed(platform, itemShippingAddresses=[{"key": "main-shipping-address", "country": "US"}])
        actions = shipping_setup.plan_actions(cart, _plan())
        assert "updateItemShippingAddress" in actions[0]

    def test_routes_stored_as_json_text(self, platform: FakePlatform, shipping_setup: ShippingSetup) -> None:
        """Delivery routes are written as a JSON text field."""
        cart = _seed(platform)
        routes_action = shipping_setup.plan_actions(cart, _plan())[-1]["setCustomField"]
        assert routes_action["name"] == "deliveryRoutes"
        assert json.loads(json.loads(routes_action["value"])) == [{"route": "R1", "stops": 2}]


class TestApply:
    """Tests for applying a plan."""

    @pytest.mark.asyncio
    async def test_plan_stored_before_cart_update(
        self, platform: FakePlatform, shipping_setup: ShippingSetup
    ) -> None:
        """The auxiliary write happens first, then one cart command."""
        cart = _seed(platform)

        outcome = await shipping_setup.apply(cart, _plan())

        assert outcome.success is True
        assert [name for name, _ in platform.calls] == ["CreateOrUpdateCustomObject", "UpdateCart"]
        stored = platform.custom_objects[("delivery-plans", cart.id)]
        assert stored["value"]["plan_type"] == "split"
        assert outcome.snapshot.order_fields.delivery_plan_type == "split"
        assert outcome.snapshot.order_fields.delivery_routes == [{"route": "R1", "stops": 2}]
        assert [s.shipping_key for s in outcome.snapshot.shipping] == ["d1", "d2"]

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_cart_untouched(
        self, platform: FakePlatform, shipping_setup: ShippingSetup
    ) -> None:
        """If the plan cannot be stored, no cart command is sent."""
        cart = _seed(platform)
        platform.queue("CreateOrUpdateCustomObject", rejection("InvalidInput"))

        outcome = await shipping_setup.apply(cart, _plan())

        assert outcome.success is False
        assert outcome.failure.kind == ErrorKind.BAD_INPUT
        assert platform.called("UpdateCart") == []

    @pytest.mark.asyncio
    async def test_unknown_line_rejected_before_any_write(
        self, platform: FakePlatform, shipping_setup: ShippingSetup
    ) -> None:
        """Targets for lines not in the cart are refused up front."""
        cart = _seed(platform)
        plan = _plan(
            deliveries=[
                {
                    "shipping_key": "d1",
                    "method_name": "Truck",
                    "price_cents": 1500,
                    "targets": [{"line_item_id": "ghost", "quantity": 1}],
                }
            ]
        )

        outcome = await shipping_setup.apply(cart, plan)

        assert outcome.failure.kind == ErrorKind.BAD_INPUT
        assert outcome.failure.details["line_item_ids"] == ["ghost"]
        assert platform.calls == []

    def test_duplicate_shipping_keys_rejected(self) -> None:
        """Plans cannot reuse a shipping key."""
        delivery = {"shipping_key": "d1", "method_name": "Truck", "price_cents": 1}
        with pytest.raises(ValueError):
            _plan(deliveries=[delivery, delivery])
