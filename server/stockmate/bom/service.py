from decimal import Decimal
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from stockmate.catalog.service import get_assembly, get_items_by_id
from stockmate.errors import (
    ConflictError,
    InvalidQuantityError,
    NotFoundError,
    NotManagedError,
    ValidationError,
)
from stockmate.models import BomLine, BomRevision
from stockmate.utils import QTY_MAX, quantize_qty


logger = logging.getLogger(__name__)


def _revisions_query(db: Session, assembly_id: int):
    return db.query(BomRevision).filter(BomRevision.assembly_item_id == assembly_id)


def find_current_revision(db: Session, assembly_id: int) -> BomRevision | None:
    """The current revision is the stored revision with the greatest rev_no."""
    return (
        _revisions_query(db, assembly_id)
        .options(selectinload(BomRevision.lines).selectinload(BomLine.component_item))
        .order_by(BomRevision.rev_no.desc())
        .first()
    )


def get_current_bom(db: Session, assembly_id: int) -> BomRevision:
    get_assembly(db, assembly_id)
    revision = find_current_revision(db, assembly_id)
    if not revision:
        raise NotFoundError(f"Assembly {assembly_id} has no BOM revision yet.")
    return revision


def get_revision(db: Session, assembly_id: int, rev_no: int) -> BomRevision:
    get_assembly(db, assembly_id)
    revision = (
        _revisions_query(db, assembly_id)
        .options(selectinload(BomRevision.lines).selectinload(BomLine.component_item))
        .filter(BomRevision.rev_no == rev_no)
        .first()
    )
    if not revision:
        raise NotFoundError(f"Revision {rev_no} of assembly {assembly_id} not found.")
    return revision


def list_revisions(db: Session, assembly_id: int) -> list[dict]:
    get_assembly(db, assembly_id)
    rows = (
        db.query(
            BomRevision.id,
            BomRevision.rev_no,
            BomRevision.created_at,
            func.count(BomLine.component_item_id),
        )
        .outerjoin(BomLine, BomLine.revision_id == BomRevision.id)
        .filter(BomRevision.assembly_item_id == assembly_id)
        .group_by(BomRevision.id, BomRevision.rev_no, BomRevision.created_at)
        .order_by(BomRevision.rev_no.desc())
        .all()
    )
    return [
        {
            "record_id": record_id,
            "rev_no": rev_no,
            "created_at": created_at,
            "line_count": int(line_count or 0),
            "is_current": index == 0,
        }
        for index, (record_id, rev_no, created_at, line_count) in enumerate(rows)
    ]


def _next_rev_no(db: Session, assembly_id: int) -> int:
    current_max = (
        db.query(func.max(BomRevision.rev_no))
        .filter(BomRevision.assembly_item_id == assembly_id)
        .scalar()
    )
    return int(current_max or 0) + 1


def _current_component_ids(db: Session, assembly_ids: set[int]) -> set[int]:
    latest = (
        db.query(BomRevision.assembly_item_id, func.max(BomRevision.rev_no).label("rev_no"))
        .filter(BomRevision.assembly_item_id.in_(assembly_ids))
        .group_by(BomRevision.assembly_item_id)
        .subquery()
    )
    rows = (
        db.query(BomLine.component_item_id)
        .join(BomRevision, BomRevision.id == BomLine.revision_id)
        .join(
            latest,
            (latest.c.assembly_item_id == BomRevision.assembly_item_id) & (latest.c.rev_no == BomRevision.rev_no),
        )
        .all()
    )
    return {component_id for (component_id,) in rows}


def _reaches_assembly(db: Session, start_ids: set[int], target_id: int) -> bool:
    """Walk current BOMs downward from start_ids looking for target_id."""
    seen: set[int] = set()
    frontier = set(start_ids)
    while frontier:
        if target_id in frontier:
            return True
        seen |= frontier
        frontier = _current_component_ids(db, frontier) - seen
    return False


def _validate_lines(db: Session, assembly_id: int, lines: list[dict]) -> list[dict]:
    if not lines:
        raise ValidationError("A BOM revision needs at least one component line.")

    normalized: list[dict] = []
    seen: set[int] = set()
    for line in lines:
        component_id = line.get("component_item_id")
        if not component_id or int(component_id) <= 0:
            raise ValidationError("component_item_id must be > 0.")
        component_id = int(component_id)
        if component_id == assembly_id:
            raise ValidationError("An assembly cannot list itself as a component.")
        if component_id in seen:
            raise ConflictError(f"Component {component_id} appears more than once in the revision.")
        seen.add(component_id)

        raw_qty = line.get("qty_per_unit")
        qty_per_unit = quantize_qty(raw_qty) if raw_qty is not None else None
        if qty_per_unit is None or qty_per_unit <= 0:
            raise InvalidQuantityError(f"qty_per_unit for component {component_id} must be > 0.")
        if qty_per_unit > QTY_MAX:
            raise InvalidQuantityError(f"qty_per_unit for component {component_id} exceeds {QTY_MAX}.")

        note = (line.get("note") or "").strip() or None
        normalized.append({"component_item_id": component_id, "qty_per_unit": qty_per_unit, "note": note})

    components = get_items_by_id(db, list(seen))
    for entry in normalized:
        component = components.get(entry["component_item_id"])
        if not component:
            raise NotFoundError(f"Component item {entry['component_item_id']} not found.")
        if not component.stock_managed:
            raise NotManagedError(component.id, component.sku)

    assembly_components = {item_id for item_id, item in components.items() if item.is_assembly}
    if assembly_components and _reaches_assembly(db, assembly_components, assembly_id):
        raise ValidationError("Revision would create a BOM cycle through a sub-assembly.")
    return normalized


def create_revision(db: Session, assembly_id: int, lines: list[dict]) -> BomRevision:
    """Store a new immutable revision and make it current.

    Earlier revisions stay untouched; the new one becomes current simply by
    carrying the highest rev_no. The caller commits.
    """
    assembly = get_assembly(db, assembly_id)
    normalized = _validate_lines(db, assembly.id, lines)

    revision = BomRevision(assembly_item_id=assembly.id, rev_no=_next_rev_no(db, assembly.id))
    revision.lines = [
        BomLine(
            component_item_id=entry["component_item_id"],
            qty_per_unit=entry["qty_per_unit"],
            note=entry["note"],
        )
        for entry in normalized
    ]
    db.add(revision)
    db.flush()
    logger.info(
        "Created BOM revision: assembly_id=%s rev_no=%s lines=%s",
        assembly.id,
        revision.rev_no,
        len(revision.lines),
    )
    return revision


def delete_revision(db: Session, assembly_id: int, rev_no: int) -> BomRevision:
    """Remove a revision from history and return the revision current afterwards.

    Deleting the current revision promotes the next-most-recent one; deleting
    the sole revision is refused.
    """
    revision = get_revision(db, assembly_id, rev_no)
    remaining = (
        _revisions_query(db, assembly_id)
        .filter(BomRevision.id != revision.id)
        .order_by(BomRevision.rev_no.desc())
        .all()
    )
    if not remaining:
        raise ConflictError(f"Revision {rev_no} is the only revision of assembly {assembly_id}.")

    was_current = remaining[0].rev_no < revision.rev_no
    db.delete(revision)
    db.flush()
    new_current = remaining[0]
    logger.info(
        "Deleted BOM revision: assembly_id=%s rev_no=%s was_current=%s current_rev_no=%s",
        assembly_id,
        rev_no,
        was_current,
        new_current.rev_no,
    )
    return new_current


def revision_lines_snapshot(revision: BomRevision) -> list[tuple[int, Decimal, str | None]]:
    return [(line.component_item_id, quantize_qty(line.qty_per_unit), line.note) for line in revision.lines]
