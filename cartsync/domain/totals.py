"""Monetary aggregation over a snapshot and its discount summary.

Subtotal is the line items only: the platform's total price also holds
shipping and tax, so the two are not comparable.
"""

from dataclasses import dataclass, field

from cartsync.domain.base import ValueObject
from cartsync.domain.discounts import CanonicalDiscountSummary, DiscountSource
from cartsync.domain.exceptions import BatchQuantityMismatchError, CurrencyMismatchError
from cartsync.domain.snapshot import CartSnapshot, LineItem
from cartsync.domain.value_objects import Money


@dataclass(frozen=True)
class Totals(ValueObject):
    """Derived monetary totals of one snapshot.

    Attributes:
        subtotal: Sum of line subtotals.
        line_item_discount_total: Sum of LINE_ITEM contributions.
        cart_discount_total: Sum of CART_CODE contributions.
        shipping_discount_total: Sum of SHIPPING contributions.
        grand_discount_total: Sum of the three per-source totals.
        line_subtotals: Subtotal per line item id.
    """

    subtotal: Money
    line_item_discount_total: Money
    cart_discount_total: Money
    shipping_discount_total: Money
    grand_discount_total: Money
    line_subtotals: dict[str, Money] = field(default_factory=dict, compare=False)


def _require_currency(amount: Money, currency: str) -> Money:
    if amount.currency != currency:
        raise CurrencyMismatchError(currency, amount.currency)
    return amount


def line_subtotal(line: LineItem, currency: str) -> Money:
    """Subtotal of one line.

    Each batch contributes ``quantity × effective price``; a line without
    batches falls back to ``quantity × unit price``. The line's single
    discounted unit price is never used.

    Args:
        line: Line item to price.
        currency: Cart currency.

    Returns:
        Line subtotal.

    Raises:
        BatchQuantityMismatchError: If batches do not cover the line quantity.
        CurrencyMismatchError: If a price is in another currency.
    """
    if not line.batches:
        return _require_currency(line.price.value, currency) * line.quantity

    covered = sum(batch.quantity for batch in line.batches)
    if covered != line.quantity:
        raise BatchQuantityMismatchError(line.id, line.quantity, covered)

    return Money.total(
        (_require_currency(batch.effective_price, currency) * batch.quantity for batch in line.batches),
        currency,
    )


def aggregate(snapshot: CartSnapshot, summary: CanonicalDiscountSummary) -> Totals:
    """Compute subtotal and discount totals.

    Deterministic and free of remote calls; the same snapshot always
    yields the same totals.

    Args:
        snapshot: Cart snapshot.
        summary: Discount summary built from the same snapshot.

    Returns:
        Totals in the cart currency.

    Raises:
        CurrencyMismatchError: If any amount is not in the cart currency.
        BatchQuantityMismatchError: If a line's batches are inconsistent.
    """
    currency = snapshot.currency
    if summary.currency != currency:
        raise CurrencyMismatchError(currency, summary.currency)

    line_subtotals = {line.id: line_subtotal(line, currency) for line in snapshot.line_items}
    subtotal = Money.total(line_subtotals.values(), currency)

    line_item_discounts = summary.total_for(DiscountSource.LINE_ITEM)
    cart_discounts = summary.total_for(DiscountSource.CART_CODE)
    shipping_discounts = summary.total_for(DiscountSource.SHIPPING)

    return Totals(
        subtotal=subtotal,
        line_item_discount_total=line_item_discounts,
        cart_discount_total=cart_discounts,
        shipping_discount_total=shipping_discounts,
        grand_discount_total=line_item_discounts + cart_discounts + shipping_discounts,
        line_subtotals=line_subtotals,
    )
