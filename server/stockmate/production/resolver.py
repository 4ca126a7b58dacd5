from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from stockmate.bom.service import find_current_revision
from stockmate.catalog.service import get_assembly
from stockmate.errors import BomMissingError, InvalidQuantityError
from stockmate.utils import quantize_qty


logger = logging.getLogger(__name__)


def resolve(db: Session, assembly_id: int, quantity) -> list[tuple[int, Decimal]]:
    """Expand the assembly's current BOM for `quantity` units.

    Only the revision current at call time is used. Stock is not checked here;
    the ledger does that when the postings are applied.
    """
    units = quantize_qty(quantity) if quantity is not None else None
    if units is None or units <= 0:
        raise InvalidQuantityError(f"Quantity for assembly {assembly_id} must be > 0.")

    assembly = get_assembly(db, assembly_id)
    revision = find_current_revision(db, assembly.id)
    if not revision:
        raise BomMissingError(assembly.id)

    required = ((line.component_item_id, quantize_qty(Decimal(line.qty_per_unit) * units)) for line in revision.lines)
    # a requirement that rounds to zero consumes nothing
    consumption = sorted((component_id, qty) for component_id, qty in required if qty > 0)
    logger.debug(
        "Resolved consumption: assembly_id=%s rev_no=%s quantity=%s consumption=%s",
        assembly.id,
        revision.rev_no,
        units,
        consumption,
    )
    return consumption
