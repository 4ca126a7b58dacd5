from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BomLineCreate(BaseModel):
    component_item_id: int
    qty_per_unit: Decimal = Field(..., description="Component quantity consumed per unit of the assembly.")
    note: Optional[str] = None


class BomRevisionCreate(BaseModel):
    lines: List[BomLineCreate]


class BomRevisionCreateResponse(BaseModel):
    record_id: int
    rev_no: int


class BomLineResponse(BaseModel):
    component_item_id: int
    sku: str
    name: str
    item_type: str
    managed_unit: str
    qty_per_unit: Decimal
    note: Optional[str] = None


class BomRevisionSummary(BaseModel):
    record_id: int
    rev_no: int
    created_at: datetime
    line_count: int
    is_current: bool

    model_config = ConfigDict(from_attributes=True)


class BomRevisionSetResponse(BaseModel):
    assembly_item_id: int
    assembly_sku: str
    current_rev_no: Optional[int] = None
    selected_rev_no: Optional[int] = None
    revisions: List[BomRevisionSummary]
    lines: List[BomLineResponse]


class BomRevisionDeleteResponse(BaseModel):
    deleted_rev_no: int
    current_rev_no: int
    current_changed: bool
