"""Tests for domain value objects."""

from decimal import Decimal

import pytest

from cartsync.domain import (
    LineItemIdentity,
    LineItemKind,
    Money,
    OwnershipContext,
)
from cartsync.domain.exceptions import CurrencyMismatchError, NegativeMoneyError


class TestMoney:
    """Tests for Money value object."""

    def test_create_from_cents(self) -> None:
        """Money can be created from cents."""
        money = Money(amount_cents=1999, currency="USD")
        assert money.amount_cents == 1999
        assert money.currency == "USD"

    def test_from_api_response(self) -> None:
        """Money is read from centAmount/currencyCode."""
        money = Money.from_api_response({"centAmount": 500, "currencyCode": "eur"}, "USD")
        assert money == Money(amount_cents=500, currency="EUR")

    def test_from_api_response_without_currency(self) -> None:
        """A payload without currencyCode takes the given cart currency."""
        assert Money.from_api_response({}, "EUR") == Money.zero("EUR")

    def test_to_api_payload(self) -> None:
        """Money renders back to the platform shape."""
        assert Money(amount_cents=900).to_api_payload() == {
            "centAmount": 900,
            "currencyCode": "USD",
        }

    def test_to_decimal(self) -> None:
        """Money can be converted to Decimal."""
        assert Money(amount_cents=1999).to_decimal() == Decimal("19.99")

    def test_negative_amount_raises_error(self) -> None:
        """Negative amounts raise NegativeMoneyError."""
        with pytest.raises(NegativeMoneyError):
            Money(amount_cents=-100)

    def test_addition_currency_mismatch(self) -> None:
        """Adding different currencies raises error."""
        with pytest.raises(CurrencyMismatchError):
            _ = Money(amount_cents=1000, currency="USD") + Money(amount_cents=500, currency="EUR")

    def test_multiplication(self) -> None:
        """Money can be multiplied by quantity from either side."""
        assert (Money(amount_cents=900) * 6).amount_cents == 5400
        assert (4 * Money(amount_cents=800)).amount_cents == 3200

    def test_total_of_empty_is_zero(self) -> None:
        """Summing nothing gives zero in the requested currency."""
        total = Money.total([], "EUR")
        assert total.is_zero()
        assert total.currency == "EUR"

    def test_total_rejects_foreign_currency(self) -> None:
        """Summing refuses amounts in another currency."""
        with pytest.raises(CurrencyMismatchError):
            Money.total([Money(amount_cents=100, currency="EUR")], "USD")

    def test_string_representation(self) -> None:
        """Money has readable string representation."""
        assert str(Money(amount_cents=1999, currency="USD")) == "$19.99 USD"


class TestLineItemIdentity:
    """Tests for LineItemIdentity value object."""

    def test_contract_identity_requires_key(self) -> None:
        """Contract identities cannot exist without a key."""
        with pytest.raises(ValueError):
            LineItemIdentity(kind=LineItemKind.CONTRACT)

    def test_contract_matches_by_key(self) -> None:
        """Contract identities match on key alone."""
        a = LineItemIdentity(kind=LineItemKind.CONTRACT, key="contract-2024-C1-1", product_id="p1")
        b = LineItemIdentity(kind=LineItemKind.CONTRACT, key="contract-2024-C1-1", product_id="p2")
        assert a.matches(b)

    def test_spot_matches_by_product_and_variant(self) -> None:
        """Spot identities match on product and variant."""
        a = LineItemIdentity(kind=LineItemKind.SPOT, product_id="p1", variant_id=1)
        assert a.matches(LineItemIdentity(kind=LineItemKind.SPOT, product_id="p1", variant_id=1))
        assert not a.matches(LineItemIdentity(kind=LineItemKind.SPOT, product_id="p1", variant_id=2))

    def test_kinds_never_match(self) -> None:
        """A spot identity never matches a contract identity."""
        spot = LineItemIdentity(kind=LineItemKind.SPOT, key="contract-x", product_id="p1")
        contract = LineItemIdentity(kind=LineItemKind.CONTRACT, key="contract-x")
        assert not spot.matches(contract)

    def test_string_representation(self) -> None:
        """Identity string shows kind and matching attributes."""
        assert str(LineItemIdentity(kind=LineItemKind.CONTRACT, key="k")) == "contract:k"
        assert (
            str(LineItemIdentity(kind=LineItemKind.SPOT, product_id="p1", variant_id=3))
            == "spot:p1/3"
        )


class TestOwnershipContext:
    """Tests for OwnershipContext value object."""

    def test_equality(self) -> None:
        """Contexts with the same values are equal."""
        assert OwnershipContext(customer_id="c1", store_key="s1") == OwnershipContext(
            customer_id="c1", store_key="s1"
        )

    def test_immutability(self) -> None:
        """Contexts are immutable."""
        context = OwnershipContext(customer_id="c1")
        with pytest.raises(AttributeError):
            context.customer_id = "c2"  # type: ignore[misc]
