from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockmate.auth import require_module
from stockmate.db import get_db
from stockmate.module_keys import ModuleKey
from stockmate.production import schemas
from stockmate.production.service import BatchRow, execute_batch, list_production_assemblies


router = APIRouter(
    prefix="/api/production",
    tags=["production"],
    dependencies=[Depends(require_module(ModuleKey.PRODUCTION))],
)


@router.post("/batches", response_model=schemas.BatchResponse)
def run_batch(payload: schemas.BatchCreate, db: Session = Depends(get_db)):
    rows = [BatchRow(item_id=row.item_id, quantity=row.qty, note=row.note) for row in payload.rows]
    result = execute_batch(db, rows, payload.mode)
    return schemas.BatchResponse(
        mode=result.mode,
        succeeded=result.succeeded,
        failed=[
            schemas.BatchRowFailure(
                index=outcome.index,
                item_id=outcome.item_id,
                reason=outcome.reason,
                message=outcome.message,
            )
            for outcome in result.failed
        ],
        consumption=result.consumption,
        rows=[
            schemas.BatchRowResult(
                index=outcome.index,
                item_id=outcome.item_id,
                qty=outcome.quantity,
                state=outcome.state.value,
                reason=outcome.reason,
                transaction_ids=outcome.transaction_ids,
            )
            for outcome in result.outcomes
        ],
    )


@router.get("/assemblies", response_model=List[schemas.ProductionAssemblyResponse])
def get_production_assemblies(
    q: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return list_production_assemblies(db, q=q, limit=limit)
