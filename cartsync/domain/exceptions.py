"""Domain exceptions.

These are invariant breaks, not business outcomes. Expected conditions
(rejected discount codes, version conflicts, missing carts) travel as
failure values; the exceptions below are raised only when data coming
back from the platform contradicts itself or a workflow is driven
through an impossible transition.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Migration").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Cart Errors
# ============================================================================


class CartError(DomainError):
    """Base class for cart-related errors."""

    pass


class BatchQuantityMismatchError(CartError):
    """Raised when a line's quantity batches do not add up to its quantity."""

    def __init__(self, line_item_id: str, line_quantity: int, batch_quantity: int) -> None:
        """Initialize batch quantity mismatch error.

        Args:
            line_item_id: ID of the offending line item.
            line_quantity: Quantity reported on the line.
            batch_quantity: Sum of the quantities of its batches.
        """
        super().__init__(
            f"Line item {line_item_id} has quantity {line_quantity} "
            f"but its batches cover {batch_quantity} units",
            details={
                "line_item_id": line_item_id,
                "line_quantity": line_quantity,
                "batch_quantity": batch_quantity,
            },
        )


class UnresolvableLineError(CartError):
    """Raised when an existing line lacks what is needed to re-add it."""

    def __init__(self, line_item_id: str, reason: str) -> None:
        """Initialize unresolvable line error.

        Args:
            line_item_id: ID of the line item.
            reason: What is missing.
        """
        super().__init__(
            f"Cannot rebuild line item {line_item_id}: {reason}",
            details={"line_item_id": line_item_id, "reason": reason},
        )


class InvalidQuantityError(CartError):
    """Raised when an invalid quantity is provided."""

    def __init__(self, quantity: int, reason: str = "Quantity must be positive") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


# ============================================================================
# Money Errors
# ============================================================================


class MoneyError(DomainError):
    """Base class for money-related errors."""

    pass


class CurrencyMismatchError(MoneyError):
    """Raised when attempting to combine money with different currencies."""

    def __init__(self, currency1: str, currency2: str) -> None:
        """Initialize currency mismatch error.

        Args:
            currency1: First currency code.
            currency2: Second currency code.
        """
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(MoneyError):
    """Raised when attempting to create money with negative amount."""

    def __init__(self, amount: int) -> None:
        """Initialize negative money error.

        Args:
            amount: The negative amount in minor units.
        """
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
