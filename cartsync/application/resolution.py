"""Line item resolution strategies.

Given a request to add units of an item, decide which cart line it
lands on and build the command for it. Spot items lean on the
platform's own merge-by-product; contract items are matched on a
deterministic key and upserted here.

Both strategies rebuild their command from a fresh snapshot when the
orchestrator retries after a version conflict, so a retried add can
never produce a second line for the same identity.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from cartsync.application.requests import ContractItemRequest, SpotItemRequest
from cartsync.domain import commands
from cartsync.domain.commands import CartCommand, RetryPolicy
from cartsync.domain.exceptions import UnresolvableLineError
from cartsync.domain.snapshot import CONTRACT_KEY_PREFIX, CartSnapshot, LineItem
from cartsync.domain.value_objects import LineItemIdentity, LineItemKind, Money
from cartsync.infrastructure.config import settings

R = TypeVar("R", bound=BaseModel)

CONTRACT_FIELD_NAMES = frozenset({"contract", "contractYear", "contractLineNumber", "pricePerLb"})


def contract_line_item_key(
    contract_year: int,
    contract_number: str,
    line_number: int,
    suffix: str | None = None,
) -> str:
    """Deterministic key of a contract line.

    Args:
        contract_year: Contract year.
        contract_number: Contract number.
        line_number: Line number within the contract.
        suffix: Optional discriminator for several lines of one contract line.

    Returns:
        Key such as ``contract-2024-C100-3`` or ``contract-2024-C100-3-b``.
    """
    key = f"{CONTRACT_KEY_PREFIX}{contract_year}-{contract_number}-{line_number}"
    if suffix:
        key = f"{key}-{suffix}"
    return key


class LineItemResolution(ABC, Generic[R]):
    """Strategy for resolving an add request to a cart command."""

    kind: ClassVar[LineItemKind]

    @abstractmethod
    def identity_for(self, request: R) -> LineItemIdentity:
        """Identity the requested item will have on the cart."""

    @abstractmethod
    def find_existing(self, snapshot: CartSnapshot, request: R) -> LineItem | None:
        """Line the request resolves to, if the cart already has it."""

    @abstractmethod
    def resolve(self, snapshot: CartSnapshot, request: R) -> CartCommand:
        """Build the command adding the requested units to ``snapshot``."""

    @abstractmethod
    def request_from_line(self, line: LineItem) -> R:
        """Rebuild an add request that recreates ``line`` on another cart."""

    def _command(
        self, name: str, snapshot: CartSnapshot, request: R, actions: list[dict[str, Any]]
    ) -> CartCommand:
        return CartCommand.update(
            name,
            snapshot.id,
            actions,
            retry_policy=RetryPolicy.SAFE_TO_REAPPLY,
            refresh=lambda fresh: self.resolve(fresh, request),
        )


# ============================================================================
# Spot Items
# ============================================================================


class SpotResolution(LineItemResolution[SpotItemRequest]):
    """Catalog-priced items, matched by product and variant."""

    kind = LineItemKind.SPOT

    def identity_for(self, request: SpotItemRequest) -> LineItemIdentity:
        """Identity the requested item will have on the cart."""
        return LineItemIdentity(
            kind=LineItemKind.SPOT,
            product_id=request.product_id,
            variant_id=request.variant_id,
        )

    def find_existing(self, snapshot: CartSnapshot, request: SpotItemRequest) -> LineItem | None:
        """Match on product/variant, or on SKU when no product id is given.

        A request naming a product without a variant matches any spot line
        of that product.
        """
        if request.product_id and request.variant_id is not None:
            return snapshot.find_line(self.identity_for(request))
        for line in snapshot.line_items:
            if line.identity.kind != LineItemKind.SPOT:
                continue
            if request.product_id and line.product_id == request.product_id:
                return line
            if not request.product_id and line.sku == request.sku:
                return line
        return None

    def resolve(self, snapshot: CartSnapshot, request: SpotItemRequest) -> CartCommand:
        """Build the add command.

        A quantity change on a line with per-unit shipping targets leaves
        the targets out of step with the quantity, so they are cleared in
        the same command before the platform merges the new units in.
        """
        actions: list[dict[str, Any]] = []
        existing = self.find_existing(snapshot, request)
        if existing is not None and existing.shipping_targets:
            actions.append(commands.set_line_item_shipping_details(existing.id, []))
        actions.append(
            commands.add_line_item(
                quantity=request.quantity,
                sku=request.sku,
                product_id=request.product_id,
                variant_id=request.variant_id,
                custom_type_key=request.custom_type_key,
                custom_fields=request.custom_fields,
            )
        )
        return self._command("add_spot_item", snapshot, request, actions)

    def request_from_line(self, line: LineItem) -> SpotItemRequest:
        """Rebuild an add request for ``line``."""
        return SpotItemRequest(
            quantity=line.quantity,
            sku=line.sku,
            product_id=line.product_id or None,
            variant_id=line.variant_id,
            custom_type_key=line.custom_type_key,
            custom_fields=dict(line.custom_fields),
        )


# ============================================================================
# Contract Items
# ============================================================================


class ContractResolution(LineItemResolution[ContractItemRequest]):
    """Externally-priced items, upserted by deterministic key."""

    kind = LineItemKind.CONTRACT

    def __init__(self, custom_type_key: str | None = None) -> None:
        """Initialize strategy.

        Args:
            custom_type_key: Custom type holding the contract fields.
        """
        self.custom_type_key = custom_type_key or settings.contract_line_item_type_key

    def key_for(self, request: ContractItemRequest) -> str:
        """Line key of the requested contract item."""
        return contract_line_item_key(
            request.contract_year,
            request.contract_number,
            request.line_number,
            request.key_suffix,
        )

    def identity_for(self, request: ContractItemRequest) -> LineItemIdentity:
        """Identity the requested item will have on the cart."""
        return LineItemIdentity(kind=LineItemKind.CONTRACT, key=self.key_for(request))

    def find_existing(
        self, snapshot: CartSnapshot, request: ContractItemRequest
    ) -> LineItem | None:
        """Line carrying the request's key, if any."""
        return snapshot.find_line(self.identity_for(request))

    def resolve(self, snapshot: CartSnapshot, request: ContractItemRequest) -> CartCommand:
        """Build the upsert command.

        An existing line gets the requested units added to its quantity;
        otherwise a new keyed line is added with the external price and
        contract fields.
        """
        price = Money(amount_cents=request.unit_price_cents, currency=snapshot.currency)
        existing = self.find_existing(snapshot, request)

        if existing is not None:
            action = commands.change_line_item_quantity(
                existing.id,
                existing.quantity + request.quantity,
                external_price=price,
            )
            return self._command("update_contract_item", snapshot, request, [action])

        fields: dict[str, Any] = dict(request.custom_fields)
        fields.update(
            {
                "contract": (
                    {"typeId": "key-value-document", "id": request.contract_id}
                    if request.contract_id
                    else None
                ),
                "contractYear": request.contract_year,
                "contractLineNumber": request.line_number,
                "pricePerLb": request.price_per_lb,
            }
        )
        action = commands.add_line_item(
            quantity=request.quantity,
            sku=request.sku,
            key=self.key_for(request),
            external_price=price,
            inventory_mode="None",
            custom_type_key=self.custom_type_key,
            custom_fields=fields,
        )
        return self._command("add_contract_item", snapshot, request, [action])

    def request_from_line(self, line: LineItem) -> ContractItemRequest:
        """Rebuild an add request for ``line``.

        Raises:
            UnresolvableLineError: If the line lacks contract details.
        """
        contract = line.contract
        if contract is None or contract.contract_year is None or contract.contract_line_number is None:
            raise UnresolvableLineError(line.id, "missing contract year or line number")
        if not line.key or not line.sku:
            raise UnresolvableLineError(line.id, "missing key or sku")

        number, suffix = _split_contract_key(
            line, contract.contract_year, contract.contract_line_number, contract.contract_number
        )
        return ContractItemRequest(
            quantity=line.quantity,
            sku=line.sku,
            contract_year=contract.contract_year,
            contract_number=number,
            line_number=contract.contract_line_number,
            key_suffix=suffix,
            unit_price_cents=line.price.value.amount_cents,
            contract_id=contract.contract_id,
            price_per_lb=contract.price_per_lb,
            custom_fields={
                name: value
                for name, value in line.custom_fields.items()
                if name not in CONTRACT_FIELD_NAMES
            },
        )


def _split_contract_key(
    line: LineItem, year: int, line_number: int, contract_number: str | None
) -> tuple[str, str | None]:
    """Recover contract number and suffix from a contract line key."""
    key = line.key or ""
    if contract_number:
        base = contract_line_item_key(year, contract_number, line_number)
        if key == base:
            return contract_number, None
        if key.startswith(f"{base}-"):
            return contract_number, key[len(base) + 1 :]
        raise UnresolvableLineError(line.id, f"key {key} does not match contract {contract_number}")

    head = f"{CONTRACT_KEY_PREFIX}{year}-"
    if not key.startswith(head):
        raise UnresolvableLineError(line.id, f"key {key} does not match contract year {year}")
    rest = key[len(head) :]
    tail = f"-{line_number}"
    if rest.endswith(tail) and len(rest) > len(tail):
        return rest[: -len(tail)], None
    number, separator, suffix = rest.rpartition(f"{tail}-")
    if not separator or not number:
        raise UnresolvableLineError(line.id, f"key {key} does not carry line number {line_number}")
    return number, suffix


# ============================================================================
# Registry
# ============================================================================


class ResolutionRegistry:
    """Picks the strategy for a line or item kind."""

    def __init__(
        self,
        spot: SpotResolution | None = None,
        contract: ContractResolution | None = None,
    ) -> None:
        """Initialize registry.

        Args:
            spot: Spot strategy.
            contract: Contract strategy.
        """
        self.spot = spot or SpotResolution()
        self.contract = contract or ContractResolution()

    def for_kind(self, kind: LineItemKind) -> LineItemResolution[Any]:
        """Strategy for an item kind."""
        if kind == LineItemKind.CONTRACT:
            return self.contract
        return self.spot

    def for_line(self, line: LineItem) -> LineItemResolution[Any]:
        """Strategy matching an existing line's identity."""
        return self.for_kind(line.identity.kind)
