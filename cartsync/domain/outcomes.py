"""Mutation outcomes and the failure taxonomy.

Every command returns a MutationOutcome; business failures are values,
not exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self

from cartsync.domain.snapshot import CartSnapshot


class ErrorKind(str, Enum):
    """Fixed classification of failed cart commands."""

    NETWORK_ERROR = "NETWORK_ERROR"
    BAD_INPUT = "BAD_INPUT"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    DISCOUNT_REJECTED = "DISCOUNT_REJECTED"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    UNKNOWN = "UNKNOWN"


@dataclass
class CartFailure:
    """Why a command did not produce the intended cart state.

    Attributes:
        kind: Classification.
        message: Human-readable summary.
        details: Structured context (error code, discount code, state, ...).
        snapshot: Latest cart state when the platform still returned one
            (a rejected discount code is on the cart in a non-matching state).
    """

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    snapshot: CartSnapshot | None = None


@dataclass
class MutationOutcome:
    """Result of applying one command."""

    snapshot: CartSnapshot | None = None
    success: bool = True
    failure: CartFailure | None = None

    @classmethod
    def ok(cls, snapshot: CartSnapshot) -> Self:
        """Successful outcome carrying the new snapshot."""
        return cls(snapshot=snapshot)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
        snapshot: CartSnapshot | None = None,
    ) -> Self:
        """Failed outcome."""
        return cls(
            success=False,
            failure=CartFailure(
                kind=kind,
                message=message,
                details=details or {},
                snapshot=snapshot,
            ),
        )

    @property
    def error_code(self) -> str | None:
        """Failure kind as a string, None on success."""
        return self.failure.kind.value if self.failure else None
