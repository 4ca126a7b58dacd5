from dataclasses import dataclass
from decimal import Decimal
from typing import List

from stockmate.errors import InvalidQuantityError
from stockmate.models import TXN_ADJUST, TXN_IN, TXN_OUT
from stockmate.utils import QTY_MAX, quantize_qty

TRANSACTION_TYPES = {TXN_IN, TXN_OUT, TXN_ADJUST}
DIRECTIONS = {TXN_IN, TXN_OUT}


@dataclass(frozen=True)
class Posting:
    item_id: int
    qty: Decimal
    transaction_type: str
    direction: str
    note: str | None = None

    @property
    def signed_qty(self) -> Decimal:
        return -self.qty if self.direction == TXN_OUT else self.qty


def make_posting(
    item_id: int,
    qty,
    transaction_type: str,
    *,
    direction: str | None = None,
    note: str | None = None,
) -> Posting:
    """Normalize one ledger movement. IN and OUT carry their own direction."""
    if transaction_type not in TRANSACTION_TYPES:
        raise InvalidQuantityError(f"Unknown transaction type {transaction_type!r}.")
    if transaction_type != TXN_ADJUST:
        direction = transaction_type
    if direction not in DIRECTIONS:
        raise InvalidQuantityError("ADJUST postings need an IN or OUT direction.")

    quantity = quantize_qty(qty) if qty is not None else None
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(f"Posting quantity for item {item_id} must be > 0.")
    if quantity > QTY_MAX:
        raise InvalidQuantityError(f"Posting quantity for item {item_id} exceeds {QTY_MAX}.")
    return Posting(
        item_id=item_id,
        qty=quantity,
        transaction_type=transaction_type,
        direction=direction,
        note=note,
    )


def build_stock_in_postings(*, item_id: int, quantity, note: str | None = None) -> List[Posting]:
    return [make_posting(item_id, quantity, TXN_IN, note=note)]


def build_production_postings(
    *,
    assembly_id: int,
    quantity,
    consumption: list[tuple[int, Decimal]],
    note: str | None = None,
) -> List[Posting]:
    """Finished assemblies come in, resolved components go out."""
    postings = [make_posting(assembly_id, quantity, TXN_IN, note=note)]
    postings.extend(
        make_posting(component_id, required_qty, TXN_OUT, note=note) for component_id, required_qty in consumption
    )
    return postings


def build_assembly_shipment_postings(*, assembly_id: int, quantity, note: str | None = None) -> List[Posting]:
    return [make_posting(assembly_id, quantity, TXN_OUT, note=note)]


def build_to_order_shipment_postings(
    *,
    consumption: list[tuple[int, Decimal]],
    note: str | None = None,
) -> List[Posting]:
    return [make_posting(component_id, required_qty, TXN_OUT, note=note) for component_id, required_qty in consumption]


def net_change_by_item(postings: List[Posting]) -> dict[int, Decimal]:
    totals: dict[int, Decimal] = {}
    for posting in postings:
        totals[posting.item_id] = totals.get(posting.item_id, Decimal("0")) + posting.signed_qty
    return totals
