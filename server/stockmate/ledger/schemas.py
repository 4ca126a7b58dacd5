from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StockLevelResponse(BaseModel):
    item_id: int
    sku: str
    managed_unit: str
    stock_managed: bool
    stock: Decimal


class StockAdjustmentCreate(BaseModel):
    target_qty: Decimal = Field(..., description="Absolute stock level to reach.")
    note: Optional[str] = None


class StockTransactionResponse(BaseModel):
    id: int
    item_id: int
    qty: Decimal
    transaction_type: str
    direction: str
    posting_group: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockAdjustmentResponse(BaseModel):
    item_id: int
    stock: Decimal
    transaction: Optional[StockTransactionResponse] = None


class StockHistoryEntry(BaseModel):
    id: int
    item_id: int
    qty: Decimal
    transaction_type: str
    direction: str
    signed_qty: Decimal
    balance: Decimal
    posting_group: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime


class StockSummaryRow(BaseModel):
    item_id: int
    sku: str
    name: str
    item_type: str
    managed_unit: str
    stock_managed: bool
    stock: Decimal
    reorder_point: Optional[Decimal] = None
    reorder_gap: Optional[Decimal] = None
    below_reorder_point: bool
    last_movement_at: Optional[datetime] = None
