"""Application layer module.

Contains the cart service and the workflows it drives: mutation
orchestration, line item resolution, shipping setup and cart migration.
"""

from cartsync.application.cart_service import CartResult, CartService, EnrichedCart
from cartsync.application.migration import CartMigrationWorkflow, MigrationResult
from cartsync.application.orchestrator import CartMutationOrchestrator, RetryConfig
from cartsync.application.resolution import (
    ContractResolution,
    LineItemResolution,
    ResolutionRegistry,
    SpotResolution,
    contract_line_item_key,
)
from cartsync.application.shipping import ShippingSetup

__all__ = [
    "CartMigrationWorkflow",
    "CartMutationOrchestrator",
    "CartResult",
    "CartService",
    "ContractResolution",
    "EnrichedCart",
    "LineItemResolution",
    "MigrationResult",
    "ResolutionRegistry",
    "RetryConfig",
    "ShippingSetup",
    "SpotResolution",
    "contract_line_item_key",
]
