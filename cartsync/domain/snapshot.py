"""Cart snapshot as returned by the commerce platform.

A snapshot is the platform's authoritative view of a cart after a
command. It is parsed once from the response payload and never changed
afterwards; the next command's response supersedes it.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self

from cartsync.domain.base import ValueObject
from cartsync.domain.value_objects import (
    ContractMetadata,
    LineItemIdentity,
    LineItemKind,
    Money,
)

CONTRACT_KEY_PREFIX = "contract-"


def _custom_fields(data: dict[str, Any] | None) -> dict[str, Any]:
    """Flatten ``custom.customFieldsRaw`` into a name -> value mapping."""
    if not data:
        return {}
    raw = data.get("customFieldsRaw") or []
    return {entry["name"]: entry.get("value") for entry in raw if "name" in entry}


def _referenced_values(data: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Collect expanded reference payloads keyed by custom field name."""
    if not data:
        return {}
    result: dict[str, dict[str, Any]] = {}
    for entry in data.get("customFieldsRaw") or []:
        referenced = entry.get("referencedResource") or {}
        if referenced.get("value") is not None:
            result[entry["name"]] = referenced["value"]
    return result


# ============================================================================
# Discount Code State
# ============================================================================


class DiscountCodeState(str, Enum):
    """Discount code states the platform reports.

    OTHER stands for any state string this layer does not recognize;
    the raw value is kept on DiscountCodeStatus.
    """

    MATCHES_CART = "MatchesCart"
    DOES_NOT_MATCH_CART = "DoesNotMatchCart"
    MAX_APPLICATION_REACHED = "MaxApplicationReached"
    APPLICATION_STOPPED_BY_PREVIOUS_DISCOUNT = "ApplicationStoppedByPreviousDiscount"
    OTHER = "Other"


@dataclass(frozen=True)
class DiscountCodeStatus(ValueObject):
    """Recognized discount code state plus the verbatim platform value.

    Attributes:
        state: Recognized state, or OTHER.
        raw: State string exactly as reported (empty when absent).
    """

    state: DiscountCodeState
    raw: str

    @classmethod
    def parse(cls, raw: str | None) -> Self:
        """Parse a platform state string.

        Args:
            raw: Reported state, possibly None or unknown.

        Returns:
            Status with the recognized state or OTHER.
        """
        value = raw or ""
        try:
            state = DiscountCodeState(value)
        except ValueError:
            state = DiscountCodeState.OTHER
        return cls(state=state, raw=value)

    def is_matching(self) -> bool:
        """Only MatchesCart counts as an applied code."""
        return self.state == DiscountCodeState.MATCHES_CART


# ============================================================================
# Discount Fragments
# ============================================================================


@dataclass(frozen=True)
class DiscountDescriptor(ValueObject):
    """Identifying details of a platform discount rule."""

    id: str
    key: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class IncludedDiscount(ValueObject):
    """One discount's contribution inside a discounted price.

    The same shape appears in line item batches, the cart-level discount
    and shipping prices.

    Attributes:
        amount: Amount this discount took off.
        discount: Descriptor, absent when the platform did not expand it.
        discount_ref_id: Reference id, reported even without a descriptor.
    """

    amount: Money
    discount: DiscountDescriptor | None = None
    discount_ref_id: str | None = None

    @property
    def discount_id(self) -> str | None:
        """Id of the discount, from the descriptor or the bare reference."""
        if self.discount is not None:
            return self.discount.id
        return self.discount_ref_id

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        descriptor = data.get("discount")
        ref = data.get("discountRef") or {}
        return cls(
            amount=Money.from_api_response(data.get("discountedAmount") or {}, currency),
            discount=(
                DiscountDescriptor(
                    id=descriptor["id"],
                    key=descriptor.get("key"),
                    name=descriptor.get("name"),
                )
                if descriptor
                else None
            ),
            discount_ref_id=ref.get("id"),
        )


def _included(data: dict[str, Any] | None, currency: str) -> tuple[IncludedDiscount, ...]:
    if not data:
        return ()
    return tuple(
        IncludedDiscount.from_api_response(d, currency)
        for d in data.get("includedDiscounts") or []
    )


# ============================================================================
# Line Items
# ============================================================================


@dataclass(frozen=True)
class QuantityBatch(ValueObject):
    """Units of a line that share one discounted price.

    Attributes:
        quantity: Number of units in this batch.
        effective_price: Unit price paid for each unit of the batch.
        included_discounts: Discounts that produced the effective price.
    """

    quantity: int
    effective_price: Money
    included_discounts: tuple[IncludedDiscount, ...] = ()

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        discounted = data.get("discountedPrice") or {}
        return cls(
            quantity=data.get("quantity", 0),
            effective_price=Money.from_api_response(discounted.get("value") or {}, currency),
            included_discounts=_included(discounted, currency),
        )


@dataclass(frozen=True)
class LinePrice(ValueObject):
    """Unit price of a line.

    ``discounted`` is the platform's single representative discounted
    unit price. It is informational only; batches are authoritative.
    """

    value: Money
    discounted: Money | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        discounted = data.get("discounted")
        return cls(
            value=Money.from_api_response(data.get("value") or {}, currency),
            discounted=(
                Money.from_api_response(discounted["value"], currency)
                if discounted and discounted.get("value")
                else None
            ),
        )


@dataclass(frozen=True)
class ShippingTarget(ValueObject):
    """Assignment of some units of a line to an address and method."""

    address_key: str
    quantity: int
    shipping_method_key: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Self:
        """Create from API response data."""
        return cls(
            address_key=data["addressKey"],
            quantity=data.get("quantity", 0),
            shipping_method_key=data.get("shippingMethodKey"),
        )

    def to_api_payload(self) -> dict[str, Any]:
        """Render as a platform shipping target."""
        payload: dict[str, Any] = {"addressKey": self.address_key, "quantity": self.quantity}
        if self.shipping_method_key:
            payload["shippingMethodKey"] = self.shipping_method_key
        return payload


def _contract_metadata(custom: dict[str, Any] | None) -> ContractMetadata | None:
    """Read contract details from a line's custom fields, if it has any."""
    fields = _custom_fields(custom)
    if "contract" not in fields and "contractYear" not in fields:
        return None
    reference = fields.get("contract") or {}
    expanded = _referenced_values(custom).get("contract", {})
    return ContractMetadata(
        contract_id=reference.get("id") if isinstance(reference, dict) else None,
        contract_number=expanded.get("contractNumber"),
        contract_year=fields.get("contractYear"),
        contract_line_number=fields.get("contractLineNumber"),
        customer_number=expanded.get("customerNumber"),
        price_per_lb=fields.get("pricePerLb"),
    )


@dataclass(frozen=True)
class LineItem(ValueObject):
    """A line of the cart as the platform reports it.

    Attributes:
        id: Platform line item id.
        key: Line item key (set for contract lines).
        product_id: Product id.
        variant_id: Variant id within the product.
        sku: Variant SKU.
        name: Display name.
        quantity: Total units on the line.
        price: Unit price.
        batches: Per-quantity discounted price breakdown.
        total_price: Platform-computed line total.
        price_mode: "Platform" or "ExternalPrice".
        shipping_targets: Per-unit shipping assignments.
        custom_type_key: Key of the line's custom type.
        custom_fields: Raw custom field values.
        contract: Contract details, for contract lines.
    """

    id: str
    product_id: str
    variant_id: int | None
    quantity: int
    price: LinePrice
    key: str | None = None
    sku: str | None = None
    name: str | None = None
    batches: tuple[QuantityBatch, ...] = ()
    total_price: Money | None = None
    price_mode: str = "Platform"
    shipping_targets: tuple[ShippingTarget, ...] = ()
    custom_type_key: str | None = None
    custom_fields: dict[str, Any] = field(default_factory=dict, compare=False)
    contract: ContractMetadata | None = None

    @property
    def identity(self) -> LineItemIdentity:
        """Identity used for matching this line."""
        if self.key and self.key.startswith(CONTRACT_KEY_PREFIX):
            return LineItemIdentity(kind=LineItemKind.CONTRACT, key=self.key)
        return LineItemIdentity(
            kind=LineItemKind.SPOT,
            key=self.key,
            product_id=self.product_id,
            variant_id=self.variant_id,
        )

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        variant = data.get("variant") or {}
        shipping_details = data.get("shippingDetails") or {}
        total_price = data.get("totalPrice")
        return cls(
            id=data["id"],
            key=data.get("key"),
            product_id=data.get("productId", ""),
            variant_id=variant.get("id"),
            sku=variant.get("sku"),
            name=data.get("name"),
            quantity=data.get("quantity", 0),
            price=LinePrice.from_api_response(data.get("price") or {}, currency),
            batches=tuple(
                QuantityBatch.from_api_response(b, currency)
                for b in data.get("discountedPricePerQuantity") or []
            ),
            total_price=Money.from_api_response(total_price, currency) if total_price else None,
            price_mode=data.get("priceMode", "Platform"),
            shipping_targets=tuple(
                ShippingTarget.from_api_response(t)
                for t in shipping_details.get("targets") or []
            ),
            custom_type_key=((data.get("custom") or {}).get("type") or {}).get("key"),
            custom_fields=_custom_fields(data.get("custom")),
            contract=_contract_metadata(data.get("custom")),
        )


# ============================================================================
# Cart-level Discounts
# ============================================================================


@dataclass(frozen=True)
class DiscountCodeEntry(ValueObject):
    """A discount code applied to the cart.

    Attributes:
        code_id: Platform id of the discount code.
        code: Human-readable code, e.g. "SUMMER20".
        name: Display name of the code.
        status: Reported state.
        cart_discount_ids: Ids of the discount rules this code activates.
    """

    code_id: str
    status: DiscountCodeStatus
    code: str | None = None
    name: str | None = None
    cart_discount_ids: tuple[str, ...] = ()

    def activates(self, discount_id: str | None) -> bool:
        """Check whether this code activates the given discount rule."""
        return discount_id is not None and discount_id in self.cart_discount_ids

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Self:
        """Create from API response data."""
        details = data.get("discountCode") or {}
        ref = data.get("discountCodeRef") or {}
        activations = details.get("cartDiscounts") or details.get("cartDiscountsRef") or []
        return cls(
            code_id=details.get("id") or ref.get("id", ""),
            status=DiscountCodeStatus.parse(data.get("state")),
            code=details.get("code"),
            name=details.get("name"),
            cart_discount_ids=tuple(a["id"] for a in activations if a.get("id")),
        )


@dataclass(frozen=True)
class CartLevelDiscount(ValueObject):
    """Discount applied on the cart total."""

    amount: Money
    included_discounts: tuple[IncludedDiscount, ...] = ()

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        return cls(
            amount=Money.from_api_response(data.get("discountedAmount") or {}, currency),
            included_discounts=_included(data, currency),
        )


# ============================================================================
# Shipping
# ============================================================================


@dataclass(frozen=True)
class ShippingEntry(ValueObject):
    """One shipping method on a multi-shipping cart.

    Attributes:
        shipping_key: Key of this shipping entry.
        method_name: Shipping method name.
        price: Undiscounted shipping price.
        discounted_price: Effective price, present only when discounted.
        included_discounts: Discounts behind the discounted price.
        address_key: Key of the shipping address.
    """

    shipping_key: str
    method_name: str | None = None
    price: Money | None = None
    discounted_price: Money | None = None
    included_discounts: tuple[IncludedDiscount, ...] = ()
    address_key: str | None = None

    @property
    def is_discounted(self) -> bool:
        """Whether the platform applied a shipping discount."""
        return self.discounted_price is not None

    @classmethod
    def from_api_response(cls, data: dict[str, Any], currency: str) -> Self:
        """Create from API response data, in the cart's ``currency``."""
        info = data.get("shippingInfo") or {}
        discounted = info.get("discountedPrice")
        address = data.get("shippingAddress") or {}
        return cls(
            shipping_key=data.get("shippingKey", ""),
            method_name=info.get("shippingMethodName"),
            price=Money.from_api_response(info["price"], currency) if info.get("price") else None,
            discounted_price=(
                Money.from_api_response(discounted["value"], currency)
                if discounted and discounted.get("value")
                else None
            ),
            included_discounts=_included(discounted, currency),
            address_key=address.get("key"),
        )


# ============================================================================
# Order Custom Fields
# ============================================================================


@dataclass(frozen=True)
class OrderFields(ValueObject):
    """Cart-level custom fields carried through to the order.

    ``delivery_routes`` is None when the stored JSON cannot be parsed;
    the stored text is kept in ``delivery_routes_raw``.
    """

    vat_number: str | None = None
    delivery_plan_type: str | None = None
    billing_address_same_as_shipping: bool | None = None
    delivery_routes: list[Any] | None = None
    delivery_routes_raw: str | None = None

    @classmethod
    def from_custom_fields(cls, fields: dict[str, Any]) -> Self:
        """Create from flattened custom fields."""
        raw_routes = fields.get("deliveryRoutes")
        routes: list[Any] | None = None
        if isinstance(raw_routes, str):
            try:
                parsed = json.loads(raw_routes)
            except json.JSONDecodeError:
                parsed = None
            routes = parsed if isinstance(parsed, list) else None
        return cls(
            vat_number=fields.get("vatNumber"),
            delivery_plan_type=fields.get("deliveryPlanType"),
            billing_address_same_as_shipping=fields.get("billingAddressSameAsShipping"),
            delivery_routes=routes,
            delivery_routes_raw=raw_routes if isinstance(raw_routes, str) else None,
        )


# ============================================================================
# Cart Snapshot
# ============================================================================


@dataclass(frozen=True)
class CartSnapshot(ValueObject):
    """Versioned, authoritative cart state after a platform command.

    Attributes:
        id: Platform cart id.
        version: Optimistic concurrency version assigned by the platform.
        currency: Cart currency; every amount in the cart shares it.
        line_items: Lines in platform order.
        discount_codes: Applied discount codes.
        discount_on_total_price: Cart-level discount, if any.
        shipping: Shipping entries.
        item_shipping_address_keys: Keys of addresses usable as targets.
        customer_id: Owning customer.
        business_unit_key: Owning business unit.
        store_key: Store scope.
        tax_mode: Platform tax mode.
        shipping_mode: Platform shipping mode.
        total_price: Platform total (includes shipping and tax).
        order_fields: Cart-level custom fields.
        custom_fields: Raw cart-level custom fields.
    """

    id: str
    version: int
    currency: str
    line_items: tuple[LineItem, ...] = ()
    discount_codes: tuple[DiscountCodeEntry, ...] = ()
    discount_on_total_price: CartLevelDiscount | None = None
    shipping: tuple[ShippingEntry, ...] = ()
    item_shipping_address_keys: tuple[str, ...] = ()
    customer_id: str | None = None
    business_unit_key: str | None = None
    store_key: str | None = None
    tax_mode: str | None = None
    shipping_mode: str | None = None
    total_price: Money | None = None
    order_fields: OrderFields = field(default_factory=OrderFields)
    custom_fields: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Self:
        """Create from API response data.

        Args:
            data: Cart payload from the platform.

        Returns:
            CartSnapshot instance.
        """
        total = data["totalPrice"]
        currency = total["currencyCode"]
        discount_on_total = data.get("discountOnTotalPrice")
        custom = _custom_fields(data.get("custom"))
        return cls(
            id=data["id"],
            version=data["version"],
            currency=currency,
            line_items=tuple(
                LineItem.from_api_response(li, currency) for li in data.get("lineItems") or []
            ),
            discount_codes=tuple(
                DiscountCodeEntry.from_api_response(dc) for dc in data.get("discountCodes") or []
            ),
            discount_on_total_price=(
                CartLevelDiscount.from_api_response(discount_on_total, currency)
                if discount_on_total
                else None
            ),
            shipping=tuple(
                ShippingEntry.from_api_response(s, currency) for s in data.get("shipping") or []
            ),
            item_shipping_address_keys=tuple(
                a["key"] for a in data.get("itemShippingAddresses") or [] if a.get("key")
            ),
            customer_id=data.get("customerId"),
            business_unit_key=(data.get("businessUnit") or {}).get("key"),
            store_key=(data.get("store") or {}).get("key"),
            tax_mode=data.get("taxMode"),
            shipping_mode=data.get("shippingMode"),
            total_price=Money.from_api_response(total, currency),
            order_fields=OrderFields.from_custom_fields(custom),
            custom_fields=custom,
        )

    @property
    def is_empty(self) -> bool:
        """Check if the cart has no lines."""
        return len(self.line_items) == 0

    @property
    def item_count(self) -> int:
        """Total units across all lines."""
        return sum(li.quantity for li in self.line_items)

    def get_line(self, line_item_id: str) -> LineItem | None:
        """Get a line by platform id."""
        for line in self.line_items:
            if line.id == line_item_id:
                return line
        return None

    def find_line(self, identity: LineItemIdentity) -> LineItem | None:
        """Find the line matching an identity.

        Args:
            identity: Identity to look for.

        Returns:
            Matching line, or None.
        """
        for line in self.line_items:
            if line.identity.matches(identity):
                return line
        return None

    def find_discount_code(self, code: str) -> DiscountCodeEntry | None:
        """Find an applied discount code by its human-readable code."""
        wanted = code.casefold()
        for entry in self.discount_codes:
            if entry.code is not None and entry.code.casefold() == wanted:
                return entry
        return None
