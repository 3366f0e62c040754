"""Normalized cart commands and update action builders.

A CartCommand is what the orchestrator executes. It does not know
whether a resolution strategy, the shipping setup or a plain service
call built it. Update actions are plain payload dicts in the
platform's ``{"actionName": {...}}`` form.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cartsync.domain.exceptions import InvalidQuantityError
from cartsync.domain.snapshot import CartSnapshot, ShippingTarget
from cartsync.domain.value_objects import Money

UpdateAction = dict[str, Any]


class CommandKind(str, Enum):
    """Which platform mutation a command maps to."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RetryPolicy(str, Enum):
    """Whether a command may be reapplied after a version conflict.

    Only additive commands whose intent survives being rebuilt against a
    newer snapshot are SAFE_TO_REAPPLY.
    """

    SAFE_TO_REAPPLY = "safe_to_reapply"
    NEVER = "never"


@dataclass(frozen=True)
class CartCommand:
    """One business action expressed as a platform mutation.

    Attributes:
        name: Business action name, used in logs and failures.
        kind: Create, update or delete.
        cart_id: Target cart (None for CREATE).
        actions: Update actions, in execution order.
        draft: Cart draft for CREATE.
        retry_policy: Conflict retry policy.
        discount_code: Code whose resulting state must be checked.
        refresh: Rebuilds this command against a newer snapshot.
    """

    name: str
    kind: CommandKind = CommandKind.UPDATE
    cart_id: str | None = None
    actions: tuple[UpdateAction, ...] = ()
    draft: dict[str, Any] = field(default_factory=dict)
    retry_policy: RetryPolicy = RetryPolicy.NEVER
    discount_code: str | None = None
    refresh: Callable[[CartSnapshot], "CartCommand"] | None = field(
        default=None, compare=False, repr=False
    )

    @property
    def is_retryable(self) -> bool:
        """Whether a version conflict may be resolved by reapplying."""
        return self.retry_policy == RetryPolicy.SAFE_TO_REAPPLY

    @classmethod
    def update(
        cls,
        name: str,
        cart_id: str,
        actions: list[UpdateAction],
        retry_policy: RetryPolicy = RetryPolicy.NEVER,
        discount_code: str | None = None,
        refresh: Callable[[CartSnapshot], "CartCommand"] | None = None,
    ) -> "CartCommand":
        """Build an update command."""
        return cls(
            name=name,
            kind=CommandKind.UPDATE,
            cart_id=cart_id,
            actions=tuple(actions),
            retry_policy=retry_policy,
            discount_code=discount_code,
            refresh=refresh,
        )

    @classmethod
    def create(cls, draft: dict[str, Any]) -> "CartCommand":
        """Build a create command."""
        return cls(name="create_cart", kind=CommandKind.CREATE, draft=draft)

    @classmethod
    def delete(cls, cart_id: str) -> "CartCommand":
        """Build a delete command."""
        return cls(name="delete_cart", kind=CommandKind.DELETE, cart_id=cart_id)


# ============================================================================
# Line Item Actions
# ============================================================================


def custom_field_payload(fields: dict[str, Any]) -> list[dict[str, str]]:
    """Encode custom field values the way the platform expects (JSON text)."""
    return [
        {"name": name, "value": json.dumps(value)}
        for name, value in fields.items()
        if value is not None
    ]


def add_line_item(
    quantity: int,
    sku: str | None = None,
    product_id: str | None = None,
    variant_id: int | None = None,
    key: str | None = None,
    external_price: Money | None = None,
    inventory_mode: str | None = None,
    custom_type_key: str | None = None,
    custom_fields: dict[str, Any] | None = None,
) -> UpdateAction:
    """Add a line, or merge quantity into a matching one.

    The variant is referenced by SKU when one is given, otherwise by
    product id and variant id.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    payload: dict[str, Any] = {"quantity": quantity}
    if sku:
        payload["sku"] = sku
    else:
        payload["productId"] = product_id
        if variant_id is not None:
            payload["variantId"] = variant_id
    if key:
        payload["key"] = key
    if external_price is not None:
        payload["externalPrice"] = external_price.to_api_payload()
    if inventory_mode:
        payload["inventoryMode"] = inventory_mode
    if custom_type_key:
        payload["custom"] = {
            "typeKey": custom_type_key,
            "fields": custom_field_payload(custom_fields or {}),
        }
    return {"addLineItem": payload}


def change_line_item_quantity(
    line_item_id: str,
    quantity: int,
    external_price: Money | None = None,
) -> UpdateAction:
    """Set a line's quantity (zero removes it)."""
    if quantity < 0:
        raise InvalidQuantityError(quantity, "Quantity cannot be negative")
    payload: dict[str, Any] = {"lineItemId": line_item_id, "quantity": quantity}
    if external_price is not None:
        payload["externalPrice"] = external_price.to_api_payload()
    return {"changeLineItemQuantity": payload}


def remove_line_item(line_item_id: str) -> UpdateAction:
    """Remove a line."""
    return {"removeLineItem": {"lineItemId": line_item_id}}


def set_line_item_shipping_details(
    line_item_id: str, targets: list[ShippingTarget]
) -> UpdateAction:
    """Replace a line's shipping targets (empty list clears them)."""
    return {
        "setLineItemShippingDetails": {
            "lineItemId": line_item_id,
            "shippingDetails": {"targets": [t.to_api_payload() for t in targets]},
        }
    }


# ============================================================================
# Discount Code Actions
# ============================================================================


def add_discount_code(code: str) -> UpdateAction:
    """Apply a discount code."""
    return {"addDiscountCode": {"code": code}}


def remove_discount_code(discount_code_id: str) -> UpdateAction:
    """Remove an applied discount code by its platform id."""
    return {
        "removeDiscountCode": {
            "discountCode": {"typeId": "discount-code", "id": discount_code_id}
        }
    }


# ============================================================================
# Address, Shipping and Custom Field Actions
# ============================================================================


def upsert_item_shipping_address(
    cart: CartSnapshot, address: dict[str, Any]
) -> UpdateAction:
    """Add the keyed shipping address, or update it if the cart has it.

    Args:
        cart: Snapshot the command will be applied to.
        address: Address payload; must carry a ``key``.

    Returns:
        addItemShippingAddress or updateItemShippingAddress action.
    """
    if address.get("key") in cart.item_shipping_address_keys:
        return {"updateItemShippingAddress": {"address": address}}
    return {"addItemShippingAddress": {"address": address}}


def set_shipping_address(address: dict[str, Any]) -> UpdateAction:
    """Set the cart's main shipping address."""
    return {"setShippingAddress": {"address": address}}


def set_billing_address(address: dict[str, Any]) -> UpdateAction:
    """Set the cart's billing address."""
    return {"setBillingAddress": {"address": address}}


def set_customer_email(email: str) -> UpdateAction:
    """Set the customer email."""
    return {"setCustomerEmail": {"email": email}}


def remove_shipping_method(shipping_key: str) -> UpdateAction:
    """Remove one shipping entry from a multi-shipping cart."""
    return {"removeShippingMethod": {"shippingKey": shipping_key}}


def add_custom_shipping_method(
    shipping_key: str,
    method_name: str,
    address: dict[str, Any],
    price: Money,
    tax_category_key: str | None = None,
) -> UpdateAction:
    """Add a custom (non-catalog) shipping method."""
    payload: dict[str, Any] = {
        "shippingKey": shipping_key,
        "shippingMethodName": method_name,
        "shippingAddress": address,
        "shippingRate": {"price": price.to_api_payload()},
    }
    if tax_category_key:
        payload["taxCategory"] = {"typeId": "tax-category", "key": tax_category_key}
    return {"addCustomShippingMethod": payload}


def set_custom_field(name: str, value: Any) -> UpdateAction:
    """Set a cart-level custom field (None unsets it)."""
    payload: dict[str, Any] = {"name": name}
    if value is not None:
        payload["value"] = json.dumps(value)
    return {"setCustomField": payload}


# ============================================================================
# Tax Actions
# ============================================================================


def set_tax_mode(tax_mode: str) -> UpdateAction:
    """Change the cart's tax mode (e.g. ExternalAmount, Disabled)."""
    return {"setTaxMode": {"taxMode": tax_mode}}


def set_line_item_tax_amount(line_item_id: str, external_tax_amount: dict[str, Any]) -> UpdateAction:
    """Set an externally computed tax amount on a line."""
    return {
        "setLineItemTaxAmount": {
            "lineItemId": line_item_id,
            "externalTaxAmount": external_tax_amount,
        }
    }


def set_shipping_method_tax_amount(shipping_key: str, external_tax_amount: dict[str, Any]) -> UpdateAction:
    """Set an externally computed tax amount on a shipping entry."""
    return {
        "setShippingMethodTaxAmount": {
            "shippingKey": shipping_key,
            "externalTaxAmount": external_tax_amount,
        }
    }


def set_cart_total_tax(total_gross: Money) -> UpdateAction:
    """Set the externally computed gross cart total."""
    return {"setCartTotalTax": {"externalTotalGross": total_gross.to_api_payload()}}
