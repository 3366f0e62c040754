"""Tests for cart snapshot parsing."""

import json

from cartsync.domain import (
    CartSnapshot,
    DiscountCodeState,
    DiscountCodeStatus,
    LineItemIdentity,
    LineItemKind,
    Money,
)
from payloads import (
    batch,
    cart_payload,
    contract_custom,
    custom_payload,
    discount_code_payload,
    included,
    line_payload,
    shipping_payload,
)


class TestDiscountCodeStatus:
    """Tests for discount code state parsing."""

    def test_known_state(self) -> None:
        """Known states are recognized."""
        status = DiscountCodeStatus.parse("MatchesCart")
        assert status.state == DiscountCodeState.MATCHES_CART
        assert status.is_matching()

    def test_unknown_state_kept_verbatim(self) -> None:
        """Unknown states map to OTHER and keep the raw value."""
        status = DiscountCodeStatus.parse("NotActive")
        assert status.state == DiscountCodeState.OTHER
        assert status.raw == "NotActive"
        assert not status.is_matching()

    def test_missing_state(self) -> None:
        """A missing state is OTHER with an empty raw value."""
        status = DiscountCodeStatus.parse(None)
        assert status.state == DiscountCodeState.OTHER
        assert status.raw == ""


class TestLineItem:
    """Tests for line item parsing."""

    def test_batches_parsed(self) -> None:
        """discountedPricePerQuantity becomes ordered batches."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                line_items=[
                    line_payload(
                        quantity=10,
                        batches=[batch(6, 900, [included(100)]), batch(4, 800, [included(200)])],
                    )
                ]
            )
        )
        line = snapshot.line_items[0]
        assert [b.quantity for b in line.batches] == [6, 4]
        assert line.batches[0].effective_price == Money(amount_cents=900)
        assert line.batches[1].included_discounts[0].discount_id == "cd-1"

    def test_spot_identity(self) -> None:
        """Lines without a contract key are spot lines."""
        line = CartSnapshot.from_api_response(
            cart_payload(line_items=[line_payload(product_id="p1", variant_id=2)])
        ).line_items[0]
        assert line.identity == LineItemIdentity(
            kind=LineItemKind.SPOT, product_id="p1", variant_id=2
        )

    def test_contract_identity_and_metadata(self) -> None:
        """Contract-keyed lines carry their contract details."""
        line = CartSnapshot.from_api_response(
            cart_payload(
                line_items=[
                    line_payload(
                        key="contract-2024-C100-3",
                        price_mode="ExternalPrice",
                        custom=contract_custom(price_per_lb=1.25),
                    )
                ]
            )
        ).line_items[0]
        assert line.identity.kind == LineItemKind.CONTRACT
        assert line.identity.key == "contract-2024-C100-3"
        assert line.contract is not None
        assert line.contract.contract_id == "kvd-1"
        assert line.contract.contract_number == "C100"
        assert line.contract.contract_year == 2024
        assert line.contract.contract_line_number == 3
        assert line.contract.price_per_lb == 1.25
        assert line.custom_type_key == "contract-line-item"

    def test_shipping_targets(self) -> None:
        """Shipping targets are parsed per line."""
        line = CartSnapshot.from_api_response(
            cart_payload(
                line_items=[
                    line_payload(
                        quantity=2,
                        targets=[{"addressKey": "a1", "quantity": 2, "shippingMethodKey": "s1"}],
                    )
                ]
            )
        ).line_items[0]
        assert line.shipping_targets[0].address_key == "a1"
        assert line.shipping_targets[0].shipping_method_key == "s1"


class TestCartSnapshot:
    """Tests for CartSnapshot."""

    def test_basic_fields(self) -> None:
        """Version, currency and ownership are read."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                version=7,
                currency="EUR",
                customerId="cust-1",
                businessUnit={"key": "bu-1"},
                store={"key": "store-1"},
            )
        )
        assert snapshot.version == 7
        assert snapshot.currency == "EUR"
        assert snapshot.customer_id == "cust-1"
        assert snapshot.business_unit_key == "bu-1"
        assert snapshot.store_key == "store-1"
        assert snapshot.is_empty

    def test_amounts_without_currency_take_cart_currency(self) -> None:
        """Money missing its currencyCode is read in the cart's currency."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                currency="EUR",
                line_items=[
                    line_payload(
                        quantity=2,
                        currency="EUR",
                        batches=[batch(2, 900, [{"discountRef": {"id": "cd-1"}}], currency="EUR")],
                    )
                ],
            )
        )
        discount = snapshot.line_items[0].batches[0].included_discounts[0]
        assert discount.amount == Money.zero("EUR")

    def test_discount_codes(self) -> None:
        """Discount codes are parsed with their activated rules."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(discount_codes=[discount_code_payload(cart_discount_ids=["cd-9"])])
        )
        entry = snapshot.find_discount_code("summer20")
        assert entry is not None
        assert entry.code_id == "dc-1"
        assert entry.activates("cd-9")
        assert not entry.activates(None)

    def test_discount_code_by_reference_only(self) -> None:
        """A code reported only by reference keeps its id."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(discount_codes=[{"state": "MatchesCart", "discountCodeRef": {"id": "dc-7"}}])
        )
        assert snapshot.discount_codes[0].code_id == "dc-7"
        assert snapshot.discount_codes[0].code is None

    def test_shipping_entries(self) -> None:
        """Shipping entries expose undiscounted and discounted prices."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                shipping=[
                    shipping_payload("s1", price_cents=1500),
                    shipping_payload("s2", price_cents=1500, discounted_cents=1000),
                ]
            )
        )
        assert not snapshot.shipping[0].is_discounted
        assert snapshot.shipping[1].discounted_price == Money(amount_cents=1000)
        assert snapshot.shipping[1].address_key == "main-shipping-address"

    def test_order_fields(self) -> None:
        """Cart custom fields feed the order fields."""
        routes = [{"route": "R1"}]
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                custom=custom_payload(
                    vatNumber="VAT-1",
                    deliveryPlanType="split",
                    billingAddressSameAsShipping=True,
                    deliveryRoutes=json.dumps(routes),
                )
            )
        )
        fields = snapshot.order_fields
        assert fields.vat_number == "VAT-1"
        assert fields.delivery_plan_type == "split"
        assert fields.billing_address_same_as_shipping is True
        assert fields.delivery_routes == routes

    def test_unparseable_delivery_routes(self) -> None:
        """Broken route JSON is kept raw, not parsed."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(custom=custom_payload(deliveryRoutes="{not json"))
        )
        assert snapshot.order_fields.delivery_routes is None
        assert snapshot.order_fields.delivery_routes_raw == "{not json"

    def test_find_line(self) -> None:
        """Lines are found by identity and by id."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                line_items=[
                    line_payload("li-1", product_id="p1"),
                    line_payload("li-2", key="contract-2024-C1-1", custom=contract_custom()),
                ]
            )
        )
        contract = LineItemIdentity(kind=LineItemKind.CONTRACT, key="contract-2024-C1-1")
        assert snapshot.find_line(contract).id == "li-2"
        assert snapshot.get_line("li-1").product_id == "p1"
        assert snapshot.get_line("missing") is None
        assert snapshot.item_count == 2
