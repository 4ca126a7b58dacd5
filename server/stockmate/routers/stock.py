from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockmate.auth import require_module
from stockmate.catalog.service import get_item
from stockmate.db import get_db
from stockmate.errors import StockmateError, http_error
from stockmate.ledger import schemas
from stockmate.ledger.service import adjust_stock, current_stock, list_transactions, stock_summary
from stockmate.module_keys import ModuleKey


router = APIRouter(prefix="/api/stock", tags=["stock"], dependencies=[Depends(require_module(ModuleKey.STOCK))])


@router.get("/summary", response_model=List[schemas.StockSummaryRow])
def get_stock_summary(
    managed: Optional[bool] = None,
    q: Optional[str] = None,
    item_type: Optional[str] = Query(default=None, pattern="^(component|assembly)$"),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return stock_summary(db, managed=managed, q=q, item_type=item_type, limit=limit)


@router.get("/{item_id}", response_model=schemas.StockLevelResponse)
def get_stock(item_id: int, db: Session = Depends(get_db)):
    try:
        item = get_item(db, item_id)
    except StockmateError as exc:
        raise http_error(exc)
    return schemas.StockLevelResponse(
        item_id=item.id,
        sku=item.sku,
        managed_unit=item.managed_unit,
        stock_managed=item.stock_managed,
        stock=current_stock(db, item.id),
    )


@router.get("/{item_id}/transactions", response_model=List[schemas.StockHistoryEntry])
def get_stock_transactions(
    item_id: int,
    limit: Optional[int] = Query(default=None, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    try:
        return list_transactions(db, item_id, limit=limit)
    except StockmateError as exc:
        raise http_error(exc)


@router.post("/{item_id}/adjust", response_model=schemas.StockAdjustmentResponse)
def post_stock_adjustment(item_id: int, payload: schemas.StockAdjustmentCreate, db: Session = Depends(get_db)):
    try:
        transaction = adjust_stock(db, item_id, payload.target_qty, payload.note)
    except StockmateError as exc:
        db.rollback()
        raise http_error(exc)
    db.commit()
    if transaction is not None:
        db.refresh(transaction)
    return schemas.StockAdjustmentResponse(
        item_id=item_id,
        stock=current_stock(db, item_id),
        transaction=schemas.StockTransactionResponse.model_validate(transaction) if transaction is not None else None,
    )
