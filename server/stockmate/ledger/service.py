from decimal import Decimal
import logging
import uuid

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from stockmate.catalog.service import get_item, get_items_by_id, require_stock_managed
from stockmate.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    NotFoundError,
    NotManagedError,
    ValidationError,
)
from stockmate.ledger.posting import Posting, make_posting, net_change_by_item
from stockmate.models import TXN_ADJUST, TXN_IN, TXN_OUT, Item, StockTransaction
from stockmate.sql_expressions import stock_balance
from stockmate.utils import quantize_qty, to_qty


logger = logging.getLogger(__name__)


def current_stock(db: Session, item_id: int) -> Decimal:
    """Quantity on hand, always derived from the ledger."""
    total = db.query(stock_balance()).filter(StockTransaction.item_id == item_id).scalar()
    stock = to_qty(total)
    logger.debug("Stock lookup: item_id=%s stock=%s", item_id, stock)
    return stock


def current_stock_map(db: Session, item_ids: list[int]) -> dict[int, Decimal]:
    if not item_ids:
        return {}
    rows = (
        db.query(StockTransaction.item_id, stock_balance())
        .filter(StockTransaction.item_id.in_(item_ids))
        .group_by(StockTransaction.item_id)
        .all()
    )
    stock_by_id = {item_id: to_qty(total) for item_id, total in rows}
    for item_id in item_ids:
        stock_by_id.setdefault(item_id, to_qty(0))
    logger.debug("Bulk stock lookup: item_ids=%s stock_by_id=%s", item_ids, stock_by_id)
    return stock_by_id


def post_batch(db: Session, postings: list[Posting], *, posting_group: str | None = None) -> list[StockTransaction]:
    """Append every posting or none of them.

    All checks (item existence, stock management, non-negative stock after the
    whole set is applied) run before the first row is added, so a rejected set
    leaves nothing behind. The caller owns the transaction and commits.
    """
    if not postings:
        raise ValidationError("A posting set needs at least one posting.")

    item_ids = sorted({posting.item_id for posting in postings})
    items = get_items_by_id(db, item_ids)
    for item_id in item_ids:
        item = items.get(item_id)
        if not item:
            raise NotFoundError(f"Item {item_id} not found.")
        if not item.stock_managed:
            raise NotManagedError(item.id, item.sku)

    net_change = net_change_by_item(postings)
    draining = [item_id for item_id in item_ids if net_change[item_id] < 0]
    if draining:
        available = current_stock_map(db, draining)
        shortages = [
            {
                "item_id": item_id,
                "sku": items[item_id].sku,
                "required_qty": quantize_qty(-net_change[item_id]),
                "available_qty": available[item_id],
            }
            for item_id in draining
            if available[item_id] + net_change[item_id] < 0
        ]
        if shortages:
            raise InsufficientStockError(shortages)

    group = posting_group or str(uuid.uuid4())
    transactions = [
        StockTransaction(
            item_id=posting.item_id,
            qty=posting.qty,
            transaction_type=posting.transaction_type,
            direction=posting.direction,
            posting_group=group,
            note=posting.note,
        )
        for posting in postings
    ]
    db.add_all(transactions)
    db.flush()
    return transactions


def post(
    db: Session,
    item_id: int,
    qty,
    transaction_type: str,
    note: str | None = None,
    *,
    direction: str | None = None,
) -> StockTransaction:
    posting = make_posting(item_id, qty, transaction_type, direction=direction, note=note)
    (transaction,) = post_batch(db, [posting])
    return transaction


def adjust_stock(db: Session, item_id: int, target_qty, note: str | None = None) -> StockTransaction | None:
    """Bring an item's stock to an absolute target with one ADJUST row.

    The row carries |target - current| and an IN or OUT direction. Returns None
    when the item is already at the target.
    """
    item = require_stock_managed(db, item_id)
    target = quantize_qty(target_qty) if target_qty is not None else None
    if target is None or target < 0:
        raise InvalidQuantityError("Adjustment target must be >= 0.")

    current = current_stock(db, item.id)
    delta = target - current
    if delta == 0:
        logger.info("Stock adjustment skipped: item_id=%s already at %s", item.id, target)
        return None

    direction = TXN_IN if delta > 0 else TXN_OUT
    transaction = post(db, item.id, abs(delta), TXN_ADJUST, note, direction=direction)
    logger.info(
        "Stock adjusted: item_id=%s from=%s to=%s direction=%s",
        item.id,
        current,
        target,
        direction,
    )
    return transaction


def list_transactions(db: Session, item_id: int, limit: int | None = None) -> list[dict]:
    """Ledger rows oldest first, each with the balance after it."""
    get_item(db, item_id)
    rows = (
        db.query(StockTransaction)
        .filter(StockTransaction.item_id == item_id)
        .order_by(StockTransaction.created_at.asc(), StockTransaction.id.asc())
        .all()
    )
    balance = to_qty(0)
    history = []
    for row in rows:
        balance = quantize_qty(balance + row.signed_qty)
        history.append(
            {
                "id": row.id,
                "item_id": row.item_id,
                "qty": quantize_qty(row.qty),
                "transaction_type": row.transaction_type,
                "direction": row.direction,
                "signed_qty": quantize_qty(row.signed_qty),
                "balance": balance,
                "posting_group": row.posting_group,
                "note": row.note,
                "created_at": row.created_at,
            }
        )
    if limit:
        history = history[-limit:]
    return history


def _summary_sort_key(row: dict):
    has_reorder_point = row["reorder_point"] is not None
    return (
        0 if has_reorder_point else 1,
        row["reorder_gap"] if has_reorder_point else Decimal("0"),
        row["stock"],
        row["item_id"],
    )


def stock_summary(
    db: Session,
    *,
    managed: bool | None = None,
    q: str | None = None,
    item_type: str | None = None,
    limit: int = 200,
) -> list[dict]:
    """Stock joined with reorder points, items furthest below their reorder point first."""
    query = db.query(Item)
    if managed is not None:
        query = query.filter(Item.stock_managed.is_(managed))
    if item_type:
        query = query.filter(Item.item_type == item_type)
    if q:
        like = f"%{q.strip().lower()}%"
        query = query.filter(or_(func.lower(Item.sku).like(like), func.lower(Item.name).like(like)))
    items = query.all()
    item_ids = [item.id for item in items]

    stock_by_id = current_stock_map(db, item_ids)
    last_movement_by_id = {}
    if item_ids:
        last_movement_by_id = dict(
            db.query(StockTransaction.item_id, func.max(StockTransaction.created_at))
            .filter(StockTransaction.item_id.in_(item_ids))
            .group_by(StockTransaction.item_id)
            .all()
        )

    rows = []
    for item in items:
        stock = stock_by_id.get(item.id, to_qty(0))
        reorder_point = quantize_qty(item.reorder_point)
        reorder_gap = quantize_qty(stock - reorder_point) if reorder_point is not None else None
        rows.append(
            {
                "item_id": item.id,
                "sku": item.sku,
                "name": item.name,
                "item_type": item.item_type,
                "managed_unit": item.managed_unit,
                "stock_managed": item.stock_managed,
                "stock": stock,
                "reorder_point": reorder_point,
                "reorder_gap": reorder_gap,
                "below_reorder_point": reorder_gap is not None and reorder_gap < 0,
                "last_movement_at": last_movement_by_id.get(item.id),
            }
        )
    rows.sort(key=_summary_sort_key)
    return rows[:limit]
