"""Canonical discount model.

The platform reports discounts in three places that share one shape
but nothing else: per-quantity batches on line items, the cart-level
discount on the total price, and discounted shipping prices. This
module folds all three into one ordered sequence of contributions so
that no consumer has to walk the raw fragments itself.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Self

from cartsync.domain.base import ValueObject
from cartsync.domain.snapshot import (
    CartSnapshot,
    DiscountCodeEntry,
    IncludedDiscount,
    LineItem,
    ShippingEntry,
)
from cartsync.domain.value_objects import Money

UNNAMED_DISCOUNT = "unnamed discount"


class DiscountSource(str, Enum):
    """Where in the cart a discount contribution was reported."""

    LINE_ITEM = "line_item"
    CART_CODE = "cart_code"
    SHIPPING = "shipping"


def _activator(
    discount_id: str | None, codes: tuple[DiscountCodeEntry, ...]
) -> DiscountCodeEntry | None:
    for entry in codes:
        if entry.activates(discount_id):
            return entry
    return None


# ============================================================================
# Discount Contribution
# ============================================================================


@dataclass(frozen=True)
class DiscountContribution(ValueObject):
    """A single amount a single discount took off a single target.

    Attributes:
        source: Which breakdown reported it.
        amount: Amount discounted (authoritative even without a descriptor).
        discount_id: Discount rule id, if known.
        key: Discount rule key.
        name: Discount rule display name.
        scope_id: Line item id (LINE_ITEM), shipping key (SHIPPING) or None.
        activated_by_code: Code that activated the rule, if attributable.
        activated_by_code_id: Platform id of that code.
    """

    source: DiscountSource
    amount: Money
    discount_id: str | None = None
    key: str | None = None
    name: str | None = None
    scope_id: str | None = None
    activated_by_code: str | None = None
    activated_by_code_id: str | None = None

    @property
    def display_name(self) -> str:
        """Name to show for this contribution."""
        return self.name or self.key or UNNAMED_DISCOUNT

    @classmethod
    def _build(
        cls,
        source: DiscountSource,
        included: IncludedDiscount,
        scope_id: str | None,
        codes: tuple[DiscountCodeEntry, ...],
    ) -> Self:
        descriptor = included.discount
        activator = _activator(included.discount_id, codes)
        return cls(
            source=source,
            amount=included.amount,
            discount_id=included.discount_id,
            key=descriptor.key if descriptor else None,
            name=descriptor.name if descriptor else None,
            scope_id=scope_id,
            activated_by_code=activator.code if activator else None,
            activated_by_code_id=activator.code_id if activator else None,
        )

    @classmethod
    def from_line_item(
        cls,
        line: LineItem,
        included: IncludedDiscount,
        codes: tuple[DiscountCodeEntry, ...] = (),
    ) -> Self:
        """Contribution reported inside a line item's quantity batch."""
        return cls._build(DiscountSource.LINE_ITEM, included, line.id, codes)

    @classmethod
    def from_cart_code(
        cls,
        included: IncludedDiscount,
        codes: tuple[DiscountCodeEntry, ...] = (),
    ) -> Self:
        """Contribution reported in the discount on the cart total."""
        return cls._build(DiscountSource.CART_CODE, included, None, codes)

    @classmethod
    def from_shipping(
        cls,
        entry: ShippingEntry,
        included: IncludedDiscount,
        codes: tuple[DiscountCodeEntry, ...] = (),
    ) -> Self:
        """Contribution reported in a discounted shipping price."""
        return cls._build(DiscountSource.SHIPPING, included, entry.shipping_key, codes)


# ============================================================================
# Canonical Discount Summary
# ============================================================================


@dataclass(frozen=True)
class CanonicalDiscountSummary(ValueObject):
    """Every discount contribution of one snapshot, in a fixed order.

    Line item contributions come first (in line and batch order), then
    cart-level ones, then shipping ones. Totals are computed on demand
    and raise CurrencyMismatchError rather than add foreign amounts.

    Attributes:
        currency: Cart currency.
        contributions: Ordered contributions.
    """

    currency: str
    contributions: tuple[DiscountContribution, ...] = ()

    def for_source(self, source: DiscountSource) -> tuple[DiscountContribution, ...]:
        """Contributions reported by one source."""
        return tuple(c for c in self.contributions if c.source == source)

    def for_scope(self, scope_id: str) -> tuple[DiscountContribution, ...]:
        """Contributions scoped to one line item or shipping entry."""
        return tuple(c for c in self.contributions if c.scope_id == scope_id)

    def for_code(self, code: str) -> tuple[DiscountContribution, ...]:
        """Contributions attributed to a discount code."""
        wanted = code.casefold()
        return tuple(
            c
            for c in self.contributions
            if c.activated_by_code is not None and c.activated_by_code.casefold() == wanted
        )

    def total_for(self, source: DiscountSource) -> Money:
        """Sum of one source's contributions."""
        return Money.total((c.amount for c in self.for_source(source)), self.currency)

    @property
    def grand_total(self) -> Money:
        """Sum of the per-source totals."""
        return Money.total(
            (self.total_for(source) for source in DiscountSource), self.currency
        )

    def applied_discount_names(self) -> list[str]:
        """Distinct display names, in first-seen order."""
        names: list[str] = []
        for contribution in self.contributions:
            if contribution.display_name not in names:
                names.append(contribution.display_name)
        return names

    @property
    def is_empty(self) -> bool:
        """Whether no discount applies anywhere in the cart."""
        return len(self.contributions) == 0


def normalize(snapshot: CartSnapshot) -> CanonicalDiscountSummary:
    """Build the canonical discount summary of a snapshot.

    Never raises: missing fragments simply contribute nothing. The unit
    level discounted price of a line is ignored; batch breakdowns are
    the only line item source.

    Args:
        snapshot: Cart snapshot to read.

    Returns:
        Summary of all discount contributions.
    """
    codes = snapshot.discount_codes
    contributions: list[DiscountContribution] = []

    for line in snapshot.line_items:
        for batch in line.batches:
            for included in batch.included_discounts:
                contributions.append(DiscountContribution.from_line_item(line, included, codes))

    if snapshot.discount_on_total_price is not None:
        for included in snapshot.discount_on_total_price.included_discounts:
            contributions.append(DiscountContribution.from_cart_code(included, codes))

    for entry in snapshot.shipping:
        if not entry.is_discounted:
            continue
        for included in entry.included_discounts:
            contributions.append(DiscountContribution.from_shipping(entry, included, codes))

    return CanonicalDiscountSummary(
        currency=snapshot.currency,
        contributions=tuple(contributions),
    )
