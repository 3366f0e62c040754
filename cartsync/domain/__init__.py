"""Domain layer - snapshots, discount model, totals, commands, outcomes.

This module exports the core domain building blocks:

- **Value Objects**: Money, line item identity, ownership context
- **Snapshot**: Parsed, immutable platform cart state
- **Discounts**: Canonical discount contributions and their normalizer
- **Totals**: Subtotal and per-source discount aggregation
- **Commands**: Normalized cart commands and update action builders
- **Outcomes**: Mutation outcomes and the failure taxonomy
- **State Machines**: Cart migration states
- **Exceptions**: Invariant violations

Example usage:
    from cartsync.domain import CartSnapshot, aggregate, normalize

    snapshot = CartSnapshot.from_api_response(payload)
    summary = normalize(snapshot)
    totals = aggregate(snapshot, summary)
    print(totals.subtotal, totals.grand_discount_total)
"""

# Base classes
from cartsync.domain.base import ValueObject

# Commands
from cartsync.domain.commands import (
    CartCommand,
    CommandKind,
    RetryPolicy,
    UpdateAction,
)

# Discounts
from cartsync.domain.discounts import (
    UNNAMED_DISCOUNT,
    CanonicalDiscountSummary,
    DiscountContribution,
    DiscountSource,
    normalize,
)

# Exceptions
from cartsync.domain.exceptions import (
    BatchQuantityMismatchError,
    CartError,
    CurrencyMismatchError,
    DomainError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    MoneyError,
    NegativeMoneyError,
    UnresolvableLineError,
)

# Outcomes
from cartsync.domain.outcomes import CartFailure, ErrorKind, MutationOutcome

# Snapshot
from cartsync.domain.snapshot import (
    CartLevelDiscount,
    CartSnapshot,
    DiscountCodeEntry,
    DiscountCodeState,
    DiscountCodeStatus,
    DiscountDescriptor,
    IncludedDiscount,
    LineItem,
    LinePrice,
    OrderFields,
    QuantityBatch,
    ShippingEntry,
    ShippingTarget,
)

# State machines
from cartsync.domain.state_machines import (
    MigrationStatus,
    validate_migration_transition,
)

# Totals
from cartsync.domain.totals import Totals, aggregate, line_subtotal

# Value objects
from cartsync.domain.value_objects import (
    ContractMetadata,
    LineItemIdentity,
    LineItemKind,
    Money,
    OwnershipContext,
)

__all__ = [
    # Base
    "ValueObject",
    # Commands
    "CartCommand",
    "CommandKind",
    "RetryPolicy",
    "UpdateAction",
    # Discounts
    "UNNAMED_DISCOUNT",
    "CanonicalDiscountSummary",
    "DiscountContribution",
    "DiscountSource",
    "normalize",
    # Exceptions
    "BatchQuantityMismatchError",
    "CartError",
    "CurrencyMismatchError",
    "DomainError",
    "InvalidQuantityError",
    "InvalidStateTransitionError",
    "MoneyError",
    "NegativeMoneyError",
    "UnresolvableLineError",
    # Outcomes
    "CartFailure",
    "ErrorKind",
    "MutationOutcome",
    # Snapshot
    "CartLevelDiscount",
    "CartSnapshot",
    "DiscountCodeEntry",
    "DiscountCodeState",
    "DiscountCodeStatus",
    "DiscountDescriptor",
    "IncludedDiscount",
    "LineItem",
    "LinePrice",
    "OrderFields",
    "QuantityBatch",
    "ShippingEntry",
    "ShippingTarget",
    # State machines
    "MigrationStatus",
    "validate_migration_transition",
    # Totals
    "Totals",
    "aggregate",
    "line_subtotal",
    # Value objects
    "ContractMetadata",
    "LineItemIdentity",
    "LineItemKind",
    "Money",
    "OwnershipContext",
]
