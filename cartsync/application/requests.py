"""Caller-facing request schemas.

Pydantic models that validate what callers hand to the cart service
before anything reaches the platform.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Line Item Requests
# ============================================================================


class SpotItemRequest(BaseModel):
    """Request to add a catalog-priced item."""

    quantity: int = Field(..., gt=0, description="Units to add")
    sku: str | None = Field(default=None, description="Variant SKU")
    product_id: str | None = Field(default=None, description="Platform product id")
    variant_id: int | None = Field(default=None, description="Variant id within the product")
    custom_type_key: str | None = Field(default=None, description="Line item custom type")
    custom_fields: dict[str, Any] = Field(default_factory=dict, description="Custom field values")

    @model_validator(mode="after")
    def _require_product_reference(self) -> "SpotItemRequest":
        if not self.sku and not self.product_id:
            raise ValueError("Either sku or product_id is required")
        return self


class ContractItemRequest(BaseModel):
    """Request to add an externally-priced contract item."""

    quantity: int = Field(..., gt=0, description="Units to add")
    sku: str = Field(..., min_length=1, description="Variant SKU")
    contract_year: int = Field(..., description="Contract year")
    contract_number: str = Field(..., min_length=1, description="Contract number")
    line_number: int = Field(..., ge=0, description="Line number within the contract")
    key_suffix: str | None = Field(
        default=None, description="Distinguishes several cart lines of one contract line"
    )
    unit_price_cents: int = Field(..., ge=0, description="External unit price in minor units")
    contract_id: str | None = Field(default=None, description="Platform id of the contract object")
    price_per_lb: float | None = Field(default=None, ge=0)
    custom_fields: dict[str, Any] = Field(
        default_factory=dict, description="Extra custom field values to preserve"
    )


# ============================================================================
# Address and Contact Requests
# ============================================================================

_ADDRESS_FIELDS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "street_name": "streetName",
    "street_number": "streetNumber",
    "additional_street_info": "additionalStreetInfo",
    "postal_code": "postalCode",
}


class AddressInput(BaseModel):
    """Postal address."""

    key: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    street_name: str | None = None
    street_number: str | None = None
    additional_street_info: str | None = None
    postal_code: str | None = None
    city: str | None = None
    state: str | None = None
    country: str = Field(..., min_length=2, max_length=2)
    phone: str | None = None
    email: str | None = None

    def to_api_payload(self, key: str | None = None) -> dict[str, Any]:
        """Render as a platform address, optionally forcing its key."""
        payload = {
            _ADDRESS_FIELDS.get(name, name): value
            for name, value in self.model_dump(exclude_none=True).items()
        }
        if key is not None:
            payload["key"] = key
        return payload


class ContactInformationRequest(BaseModel):
    """Shipping contact details for the cart."""

    address: AddressInput
    email: str | None = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    vat_number: str | None = None


class BillingAddressRequest(BaseModel):
    """Billing address, or a flag to reuse the shipping address."""

    address: AddressInput
    same_as_shipping: bool = False


# ============================================================================
# Delivery Plan
# ============================================================================


class ShippingTargetInput(BaseModel):
    """Units of one line assigned to a delivery."""

    line_item_id: str
    quantity: int = Field(..., gt=0)


class DeliveryInput(BaseModel):
    """One delivery: a custom shipping method and the units it carries."""

    shipping_key: str = Field(..., min_length=1)
    method_name: str = Field(..., min_length=1)
    price_cents: int = Field(..., ge=0)
    tax_category_key: str | None = None
    targets: list[ShippingTargetInput] = Field(default_factory=list)


class DeliveryPlan(BaseModel):
    """Delivery plan for a cart; stored in auxiliary storage and applied to the cart."""

    plan_type: str = Field(..., min_length=1)
    address: AddressInput
    deliveries: list[DeliveryInput] = Field(default_factory=list)
    routes: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_shipping_keys(self) -> "DeliveryPlan":
        keys = [d.shipping_key for d in self.deliveries]
        if len(keys) != len(set(keys)):
            raise ValueError("Delivery shipping keys must be unique")
        return self


# ============================================================================
# Tax
# ============================================================================


class ExternalTaxRequest(BaseModel):
    """Externally computed tax amounts, passed through unchanged."""

    line_items: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="External tax amount per line item id"
    )
    shipping: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="External tax amount per shipping key"
    )
    total_gross_cents: int | None = Field(default=None, ge=0)
