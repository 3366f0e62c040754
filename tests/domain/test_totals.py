"""Tests for monetary aggregation."""

import pytest

from cartsync.domain import (
    BatchQuantityMismatchError,
    CartSnapshot,
    CurrencyMismatchError,
    DiscountSource,
    Money,
    aggregate,
    normalize,
)
from payloads import batch, cart_payload, included, line_payload, shipping_payload


def _totals(**kwargs):
    snapshot = CartSnapshot.from_api_response(cart_payload(**kwargs))
    return aggregate(snapshot, normalize(snapshot))


class TestAggregate:
    """Tests for aggregate()."""

    def test_subtotal_from_batches(self) -> None:
        """Batches price each unit at its own effective price.

        10 units at 1000 with 6 units at 900 and 4 at 800 total 8600,
        not 10 × the representative discounted price.
        """
        line = line_payload(
            quantity=10,
            unit_cents=1000,
            batches=[batch(6, 900, [included(100)]), batch(4, 800, [included(200)])],
        )
        line["price"]["discounted"] = {"value": {"centAmount": 900, "currencyCode": "USD"}}
        totals = _totals(line_items=[line])
        assert totals.subtotal == Money(amount_cents=8600)
        assert totals.line_subtotals["li-1"] == Money(amount_cents=8600)
        assert totals.line_item_discount_total == Money(amount_cents=300)

    def test_subtotal_without_batches(self) -> None:
        """Lines without batches use quantity × unit price."""
        totals = _totals(line_items=[line_payload(quantity=3, unit_cents=1000)])
        assert totals.subtotal == Money(amount_cents=3000)
        assert totals.grand_discount_total == Money.zero()

    def test_grand_total_is_sum_of_sources(self) -> None:
        """Grand discount total adds line, cart and shipping discounts."""
        totals = _totals(
            line_items=[line_payload(quantity=1, batches=[batch(1, 900, [included(100)])])],
            discount_on_total={
                "discountedAmount": {"centAmount": 300, "currencyCode": "USD"},
                "includedDiscounts": [included(300, "cd-c")],
            },
            shipping=[
                shipping_payload(discounted_cents=1000, discounts=[included(500, "cd-s")])
            ],
        )
        assert totals.line_item_discount_total == Money(amount_cents=100)
        assert totals.cart_discount_total == Money(amount_cents=300)
        assert totals.shipping_discount_total == Money(amount_cents=500)
        assert totals.grand_discount_total == Money(amount_cents=900)

    def test_subtotal_excludes_shipping(self) -> None:
        """Shipping prices never enter the subtotal."""
        totals = _totals(
            line_items=[line_payload(quantity=1, unit_cents=1000)],
            shipping=[shipping_payload(price_cents=1500)],
        )
        assert totals.subtotal == Money(amount_cents=1000)

    def test_currency_mismatch_raises(self) -> None:
        """Foreign amounts are never added silently."""
        with pytest.raises(CurrencyMismatchError):
            _totals(line_items=[line_payload(quantity=1, currency="EUR")])

    def test_foreign_line_item_discount_raises(self) -> None:
        """A batch discount in another currency is a mismatch."""
        line = line_payload(quantity=1, batches=[batch(1, 900, [included(100, currency="EUR")])])
        with pytest.raises(CurrencyMismatchError):
            _totals(line_items=[line])

    def test_foreign_cart_discount_raises(self) -> None:
        """A cart-level discount in another currency is a mismatch."""
        with pytest.raises(CurrencyMismatchError):
            _totals(
                discount_on_total={
                    "discountedAmount": {"centAmount": 300, "currencyCode": "EUR"},
                    "includedDiscounts": [included(300, "cd-c", currency="EUR")],
                }
            )

    def test_foreign_shipping_discount_raises(self) -> None:
        """A shipping discount in another currency is a mismatch."""
        with pytest.raises(CurrencyMismatchError):
            _totals(
                shipping=[
                    shipping_payload(
                        discounted_cents=1000, discounts=[included(500, "cd-s", currency="EUR")]
                    )
                ]
            )

    def test_source_total_rejects_foreign_contribution(self) -> None:
        """Per-source totals refuse contributions outside the cart currency."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(
                shipping=[
                    shipping_payload(
                        discounted_cents=1000, discounts=[included(500, "cd-s", currency="GBP")]
                    )
                ]
            )
        )
        summary = normalize(snapshot)
        assert summary.total_for(DiscountSource.LINE_ITEM) == Money.zero()
        with pytest.raises(CurrencyMismatchError) as exc_info:
            summary.total_for(DiscountSource.SHIPPING)
        assert exc_info.value.details == {"currency1": "USD", "currency2": "GBP"}

    def test_batches_not_covering_quantity_raise(self) -> None:
        """Batches must add up to the line quantity."""
        with pytest.raises(BatchQuantityMismatchError) as exc_info:
            _totals(line_items=[line_payload(quantity=5, batches=[batch(3, 900)])])
        assert exc_info.value.details["batch_quantity"] == 3

    def test_aggregate_is_idempotent(self) -> None:
        """Aggregating the same snapshot twice gives equal totals."""
        snapshot = CartSnapshot.from_api_response(
            cart_payload(line_items=[line_payload(quantity=2, batches=[batch(2, 900, [included(100)])])])
        )
        summary = normalize(snapshot)
        assert aggregate(snapshot, summary) == aggregate(snapshot, summary)
