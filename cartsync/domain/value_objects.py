"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Self

from cartsync.domain.base import ValueObject
from cartsync.domain.exceptions import CurrencyMismatchError, NegativeMoneyError


# ============================================================================
# Money Value Object
# ============================================================================


@dataclass(frozen=True)
class Money(ValueObject):
    """Represents monetary value with currency.

    Money is stored in the smallest currency unit (cents for USD/EUR)
    to avoid floating-point precision issues.

    Attributes:
        amount_cents: Amount in smallest currency unit (e.g., cents).
        currency: ISO 4217 currency code (e.g., 'USD', 'EUR').
    """

    amount_cents: int
    currency: str = "USD"

    def __post_init__(self) -> None:
        """Validate money constraints."""
        if self.amount_cents < 0:
            raise NegativeMoneyError(self.amount_cents)
        # Normalize currency to uppercase
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def zero(cls, currency: str = "USD") -> Self:
        """Create zero amount money.

        Args:
            currency: Currency code.

        Returns:
            Money with zero amount.
        """
        return cls(amount_cents=0, currency=currency)

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from a platform money payload.

        Args:
            data: Payload with ``centAmount`` and ``currencyCode``.
            currency: Currency of the enclosing cart, used when the payload
                has no ``currencyCode``.

        Returns:
            Money instance.
        """
        return cls(
            amount_cents=data.get("centAmount", 0),
            currency=data.get("currencyCode") or currency,
        )

    @classmethod
    def total(cls, amounts: Iterable["Money"], currency: str) -> "Money":
        """Sum amounts that must all be in ``currency``.

        Args:
            amounts: Money values to add up.
            currency: Currency every value must share.

        Returns:
            Sum of the amounts (zero when empty).

        Raises:
            CurrencyMismatchError: If any amount is in another currency.
        """
        result = Money.zero(currency)
        for amount in amounts:
            result = result + amount
        return result

    def to_decimal(self) -> Decimal:
        """Convert to decimal amount in major units.

        Returns:
            Decimal amount (e.g., dollars from cents).
        """
        return Decimal(self.amount_cents) / 100

    def to_api_payload(self) -> dict[str, Any]:
        """Render as a platform money payload."""
        return {"centAmount": self.amount_cents, "currencyCode": self.currency}

    def __add__(self, other: "Money") -> "Money":
        """Add two money amounts.

        Args:
            other: Money to add.

        Returns:
            New Money with sum.

        Raises:
            CurrencyMismatchError: If currencies don't match.
        """
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)
        return Money(
            amount_cents=self.amount_cents + other.amount_cents,
            currency=self.currency,
        )

    def __mul__(self, quantity: int) -> "Money":
        """Multiply money by quantity.

        Args:
            quantity: Multiplier.

        Returns:
            New Money with product.
        """
        return Money(
            amount_cents=self.amount_cents * quantity,
            currency=self.currency,
        )

    def __rmul__(self, quantity: int) -> "Money":
        """Right multiply money by quantity."""
        return self.__mul__(quantity)

    def __str__(self) -> str:
        """Return formatted string representation.

        Returns:
            Formatted money string (e.g., '$12.99 USD').
        """
        symbol = {"USD": "$", "EUR": "€", "GBP": "£"}.get(self.currency, "")
        return f"{symbol}{self.to_decimal():.2f} {self.currency}"

    def is_zero(self) -> bool:
        """Check if amount is zero."""
        return self.amount_cents == 0


# ============================================================================
# Line Item Identity
# ============================================================================


class LineItemKind(str, Enum):
    """How a line item is priced and matched.

    SPOT lines are priced from the platform's price book and matched by
    product/variant. CONTRACT lines carry an external price and a
    deterministic key built from the contract they come from.
    """

    SPOT = "spot"
    CONTRACT = "contract"


@dataclass(frozen=True)
class LineItemIdentity(ValueObject):
    """Identity used to match a requested item against existing lines.

    Attributes:
        kind: Spot or contract.
        key: Deterministic key (always set for contract lines).
        product_id: Platform product id (spot matching).
        variant_id: Platform variant id (spot matching).
    """

    kind: LineItemKind
    key: str | None = None
    product_id: str | None = None
    variant_id: int | None = None

    def __post_init__(self) -> None:
        """Validate identity."""
        if self.kind == LineItemKind.CONTRACT and not self.key:
            raise ValueError("Contract line items must carry a key")

    def matches(self, other: "LineItemIdentity") -> bool:
        """Check whether two identities denote the same cart line.

        Args:
            other: Identity to compare with.

        Returns:
            True if both refer to the same line.
        """
        if self.kind != other.kind:
            return False
        if self.kind == LineItemKind.CONTRACT:
            return self.key == other.key
        return self.product_id == other.product_id and self.variant_id == other.variant_id

    def __str__(self) -> str:
        """Return string representation."""
        if self.kind == LineItemKind.CONTRACT:
            return f"contract:{self.key}"
        return f"spot:{self.product_id}/{self.variant_id}"


# ============================================================================
# Ownership Context
# ============================================================================


@dataclass(frozen=True)
class OwnershipContext(ValueObject):
    """Who a cart belongs to.

    Attributes:
        customer_id: Owning customer (optional for anonymous carts).
        business_unit_key: Business unit the cart is placed under.
        store_key: Store the cart is scoped to.
    """

    customer_id: str | None = None
    business_unit_key: str | None = None
    store_key: str | None = None


# ============================================================================
# Contract Reference
# ============================================================================


@dataclass(frozen=True)
class ContractMetadata(ValueObject):
    """Contract details attached to an externally-priced line.

    Attributes:
        contract_id: Platform id of the referenced contract object.
        contract_number: Contract number.
        contract_year: Contract year.
        contract_line_number: Line number within the contract.
        customer_number: Customer number on the contract.
        price_per_lb: Contract price per pound, if priced by weight.
    """

    contract_id: str | None
    contract_number: str | None
    contract_year: int | None
    contract_line_number: int | None
    customer_number: str | None = None
    price_per_lb: float | None = None
