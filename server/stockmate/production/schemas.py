from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from stockmate.production.service import BatchMode


class BatchRowCreate(BaseModel):
    item_id: int
    qty: Decimal
    note: Optional[str] = None


class BatchCreate(BaseModel):
    mode: BatchMode
    rows: List[BatchRowCreate] = Field(..., min_length=1, max_length=1000)


class ConsumptionEntry(BaseModel):
    item_id: int
    sku: str
    qty: Decimal


class BatchRowFailure(BaseModel):
    index: int
    item_id: int
    reason: str
    message: Optional[str] = None


class BatchRowResult(BaseModel):
    index: int
    item_id: int
    qty: Decimal
    state: str
    reason: Optional[str] = None
    transaction_ids: List[int] = []


class BatchResponse(BaseModel):
    mode: BatchMode
    succeeded: int
    failed: List[BatchRowFailure]
    consumption: List[ConsumptionEntry]
    rows: List[BatchRowResult]


class ProductionAssemblyResponse(BaseModel):
    item_id: int
    sku: str
    name: str
    managed_unit: str
    stock_managed: bool
    current_rev_no: Optional[int] = None
    stock: Decimal
