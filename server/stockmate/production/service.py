"""Batch stock-in, production and shipment.

Rows run one after another, each inside its own transaction: a row either
commits all of its postings or none, and a failed row never touches rows that
already committed.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockmate.bom.service import find_current_revision
from stockmate.catalog.service import get_items_by_id, require_stock_managed
from stockmate.config import ShipmentPolicy, get_settings
from stockmate.errors import BomMissingError, InvalidQuantityError, StockmateError, StorageError, ValidationError
from stockmate.ledger.posting import (
    Posting,
    build_assembly_shipment_postings,
    build_production_postings,
    build_stock_in_postings,
    build_to_order_shipment_postings,
)
from stockmate.ledger.service import current_stock_map, post_batch
from stockmate.models import ITEM_TYPE_ASSEMBLY, TXN_OUT, BomRevision, Item
from stockmate.production.resolver import resolve
from stockmate.utils import quantize_qty


logger = logging.getLogger(__name__)


class BatchMode(str, Enum):
    STOCK_IN = "stock_in"
    PRODUCTION = "production"
    SHIPMENT = "shipment"


class RowState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    POSTING = "posting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchRow:
    item_id: int
    quantity: Decimal
    note: str | None = None


@dataclass
class RowOutcome:
    index: int
    item_id: int
    quantity: Decimal
    state: RowState = RowState.PENDING
    reason: str | None = None
    message: str | None = None
    consumption: list[tuple[int, Decimal]] = field(default_factory=list)
    transaction_ids: list[int] = field(default_factory=list)

    def fail(self, reason: str, message: str) -> None:
        self.state = RowState.FAILED
        self.reason = reason
        self.message = message


@dataclass
class BatchResult:
    mode: BatchMode
    outcomes: list[RowOutcome]
    consumption: list[dict]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state == RowState.SUCCEEDED)

    @property
    def failed(self) -> list[RowOutcome]:
        return [outcome for outcome in self.outcomes if outcome.state == RowState.FAILED]


def _row_postings(
    db: Session,
    row: BatchRow,
    mode: BatchMode,
    shipment_policy: ShipmentPolicy,
) -> list[Posting]:
    quantity = quantize_qty(row.quantity) if row.quantity is not None else None
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(f"Quantity for item {row.item_id} must be > 0.")

    item = require_stock_managed(db, row.item_id)
    if mode == BatchMode.STOCK_IN:
        return build_stock_in_postings(item_id=item.id, quantity=quantity, note=row.note)

    if item.item_type != ITEM_TYPE_ASSEMBLY:
        raise ValidationError(f"Item {item.sku} is not an assembly and cannot be used for {mode.value}.")

    if mode == BatchMode.PRODUCTION:
        return build_production_postings(
            assembly_id=item.id,
            quantity=quantity,
            consumption=resolve(db, item.id, quantity),
            note=row.note,
        )
    if shipment_policy == ShipmentPolicy.BUILD_TO_ORDER:
        return build_to_order_shipment_postings(consumption=resolve(db, item.id, quantity), note=row.note)

    # shipping finished stock still needs a BOM on file
    if not find_current_revision(db, item.id):
        raise BomMissingError(item.id)
    return build_assembly_shipment_postings(assembly_id=item.id, quantity=quantity, note=row.note)


def _merge_consumption(db: Session, outcomes: list[RowOutcome]) -> list[dict]:
    totals: dict[int, Decimal] = {}
    for outcome in outcomes:
        if outcome.state != RowState.SUCCEEDED:
            continue
        for item_id, qty in outcome.consumption:
            totals[item_id] = totals.get(item_id, Decimal("0")) + qty

    items = get_items_by_id(db, list(totals))
    merged = [
        {
            "item_id": item_id,
            "sku": items[item_id].sku if item_id in items else str(item_id),
            "qty": quantize_qty(qty),
        }
        for item_id, qty in totals.items()
    ]
    merged.sort(key=lambda entry: (entry["sku"], entry["item_id"]))
    return merged


def execute_batch(
    db: Session,
    rows: list[BatchRow],
    mode: BatchMode,
    *,
    shipment_policy: ShipmentPolicy | None = None,
) -> BatchResult:
    mode = BatchMode(mode)
    policy = ShipmentPolicy(shipment_policy or get_settings().SHIPMENT_POLICY)
    outcomes: list[RowOutcome] = []

    for index, row in enumerate(rows):
        outcome = RowOutcome(index=index, item_id=row.item_id, quantity=row.quantity)
        outcomes.append(outcome)
        try:
            outcome.state = RowState.RESOLVING
            postings = _row_postings(db, row, mode, policy)
            outcome.state = RowState.POSTING
            transactions = post_batch(db, postings)
            transaction_ids = [transaction.id for transaction in transactions]
            db.commit()
        except StockmateError as exc:
            db.rollback()
            outcome.fail(exc.code, str(exc))
            logger.warning(
                "Batch row failed: mode=%s index=%s item_id=%s reason=%s message=%s",
                mode.value,
                index,
                row.item_id,
                exc.code,
                exc,
            )
            continue
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Storage failure in batch row: mode=%s index=%s item_id=%s", mode.value, index, row.item_id)
            outcome.fail(StorageError.code, "Storage failure; re-submit this row.")
            continue

        outcome.state = RowState.SUCCEEDED
        outcome.transaction_ids = transaction_ids
        outcome.consumption = [(posting.item_id, posting.qty) for posting in postings if posting.direction == TXN_OUT]

    result = BatchResult(mode=mode, outcomes=outcomes, consumption=_merge_consumption(db, outcomes))
    logger.info(
        "Batch finished: mode=%s rows=%s succeeded=%s failed=%s",
        mode.value,
        len(outcomes),
        result.succeeded,
        len(result.failed),
    )
    return result


def list_production_assemblies(db: Session, q: str | None = None, limit: int = 50) -> list[dict]:
    """Assemblies with their current revision number and stock, newest first."""
    current_rev = (
        db.query(BomRevision.assembly_item_id, func.max(BomRevision.rev_no).label("rev_no"))
        .group_by(BomRevision.assembly_item_id)
        .subquery()
    )
    query = (
        db.query(Item, current_rev.c.rev_no)
        .outerjoin(current_rev, current_rev.c.assembly_item_id == Item.id)
        .filter(Item.item_type == ITEM_TYPE_ASSEMBLY)
    )
    if q:
        like = f"%{q.strip().lower()}%"
        query = query.filter(or_(func.lower(Item.sku).like(like), func.lower(Item.name).like(like)))
    rows = query.order_by(Item.created_at.desc(), Item.id.desc()).limit(limit).all()

    stock_by_id = current_stock_map(db, [item.id for item, _ in rows])
    return [
        {
            "item_id": item.id,
            "sku": item.sku,
            "name": item.name,
            "managed_unit": item.managed_unit,
            "stock_managed": item.stock_managed,
            "current_rev_no": rev_no,
            "stock": stock_by_id.get(item.id),
        }
        for item, rev_no in rows
    ]
