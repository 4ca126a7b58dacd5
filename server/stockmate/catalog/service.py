from decimal import Decimal

from sqlalchemy.orm import Session

from stockmate.errors import NotFoundError, NotManagedError, ValidationError
from stockmate.models import (
    ITEM_TYPE_ASSEMBLY,
    ITEM_TYPE_COMPONENT,
    AssemblyDetail,
    ComponentDetail,
    Item,
)
from stockmate.utils import quantize_qty

ITEM_TYPES = {ITEM_TYPE_COMPONENT, ITEM_TYPE_ASSEMBLY}
MANAGED_UNITS = {"g", "pcs"}


def get_item(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError(f"Item {item_id} not found.")
    return item


def require_stock_managed(db: Session, item_id: int) -> Item:
    item = get_item(db, item_id)
    if not item.stock_managed:
        raise NotManagedError(item.id, item.sku)
    return item


def get_assembly(db: Session, assembly_id: int) -> Item:
    item = get_item(db, assembly_id)
    if item.item_type != ITEM_TYPE_ASSEMBLY:
        raise ValidationError(f"Item {item.sku} is not an assembly.")
    return item


def get_items_by_id(db: Session, item_ids: list[int]) -> dict[int, Item]:
    if not item_ids:
        return {}
    rows = db.query(Item).filter(Item.id.in_(item_ids)).all()
    return {row.id: row for row in rows}


def create_item(
    db: Session,
    *,
    sku: str,
    name: str,
    item_type: str,
    managed_unit: str = "pcs",
    stock_managed: bool = True,
    pack_qty: Decimal | None = None,
    reorder_point: Decimal | None = None,
    note: str | None = None,
    component_type: str = "material",
    manufacturer: str | None = None,
) -> Item:
    """Create a catalog item together with its type-specific detail row."""
    item_type = (item_type or "").strip()
    if item_type not in ITEM_TYPES:
        raise ValidationError("item_type must be component or assembly.")
    if managed_unit not in MANAGED_UNITS:
        raise ValidationError("managed_unit must be g or pcs.")
    if not sku.strip() or not name.strip():
        raise ValidationError("sku and name are required.")
    if pack_qty is not None and Decimal(str(pack_qty)) <= 0:
        raise ValidationError("pack_qty must be > 0.")
    if reorder_point is not None and Decimal(str(reorder_point)) < 0:
        raise ValidationError("reorder_point must be >= 0.")

    item = Item(
        sku=sku.strip(),
        name=name.strip(),
        item_type=item_type,
        managed_unit=managed_unit,
        stock_managed=stock_managed,
        pack_qty=quantize_qty(pack_qty),
        reorder_point=quantize_qty(reorder_point),
        note=note,
    )
    if item_type == ITEM_TYPE_ASSEMBLY:
        item.assembly = AssemblyDetail(manufacturer=manufacturer)
    else:
        item.component = ComponentDetail(component_type=component_type, manufacturer=manufacturer)
    db.add(item)
    db.flush()
    return item
