"""Mapping of decoded transport results onto the failure taxonomy.

The same mapping applies to every operation. Classification looks at
error codes and structured fields only, and fails closed: anything not
recognized is UNKNOWN.
"""

from dataclasses import dataclass
from typing import Any

from cartsync.domain.outcomes import CartFailure, ErrorKind
from cartsync.infrastructure.operations import Operation
from cartsync.infrastructure.transport import (
    ProtocolError,
    ProtocolRejection,
    TransportFailure,
    TransportResult,
)

CONFLICT_CODES = frozenset({"ConcurrentModification"})

NOT_FOUND_CODES = frozenset({"ResourceNotFound", "ReferencedResourceNotFound"})

BAD_INPUT_CODES = frozenset(
    {
        "DiscountCodeNonApplicable",
        "InvalidInput",
        "InvalidOperation",
        "InvalidField",
        "RequiredField",
        "DuplicateField",
    }
)


@dataclass
class ClassifiedResult:
    """Payload of a successful operation, or the failure it maps to."""

    payload: dict[str, Any] | None = None
    failure: CartFailure | None = None


def _bad_input(error: ProtocolError) -> CartFailure:
    return CartFailure(
        kind=ErrorKind.BAD_INPUT,
        message=f"Platform rejected input: {error.code}",
        details={
            "error_code": error.code,
            "discount_code_id": error.fields.get("discountCodeId")
            or error.fields.get("discountCode"),
            "reason": error.fields.get("reason"),
            "field": error.fields.get("field"),
        },
    )


def _classify_rejection(rejection: ProtocolRejection) -> CartFailure:
    # The first recognized code decides; order of checks is the precedence.
    for error in rejection.errors:
        if error.code in CONFLICT_CODES:
            return CartFailure(
                kind=ErrorKind.CONFLICT,
                message="Cart version conflict",
                details={
                    "error_code": error.code,
                    "current_version": error.fields.get("currentVersion"),
                },
            )
    for error in rejection.errors:
        if error.code in NOT_FOUND_CODES:
            return CartFailure(
                kind=ErrorKind.NOT_FOUND,
                message="Resource not found",
                details={"error_code": error.code},
            )
    for error in rejection.errors:
        if error.code in BAD_INPUT_CODES:
            return _bad_input(error)
    return CartFailure(
        kind=ErrorKind.UNKNOWN,
        message="Unrecognized platform error",
        details={"error_codes": rejection.codes},
    )


def classify(result: TransportResult, operation: Operation) -> ClassifiedResult:
    """Classify a decoded transport result.

    Args:
        result: Decoded transport result.
        operation: Operation that produced it.

    Returns:
        The operation payload, or a classified failure.
    """
    if isinstance(result.error, TransportFailure):
        return ClassifiedResult(
            failure=CartFailure(
                kind=ErrorKind.NETWORK_ERROR,
                message=result.error.message,
                details={
                    "operation": operation.name,
                    "status_code": result.error.status_code,
                },
            )
        )

    if isinstance(result.error, ProtocolRejection):
        failure = _classify_rejection(result.error)
        failure.details["operation"] = operation.name
        return ClassifiedResult(failure=failure)

    data = result.data or {}
    payload = data.get(operation.root_field)
    if operation.root_field in data and payload is None:
        # Queries answer a missing resource with null instead of an error.
        return ClassifiedResult(
            failure=CartFailure(
                kind=ErrorKind.NOT_FOUND,
                message=f"{operation.root_field} not found",
                details={"operation": operation.name},
            )
        )
    if not payload:
        return ClassifiedResult(
            failure=CartFailure(
                kind=ErrorKind.UNKNOWN,
                message=f"No {operation.root_field} in response",
                details={"operation": operation.name},
            )
        )
    return ClassifiedResult(payload=payload)
