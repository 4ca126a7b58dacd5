"""ORM listeners that keep BOM revisions and the stock ledger append-only.

BOM revisions and their lines may be inserted and deleted (a line only together
with its revision) but never updated. Stock transactions may only be inserted.
The checks fire on flush, before any SQL reaches the database.
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import object_session

from stockmate.errors import ImmutableRecordError
from stockmate.models import BomLine, BomRevision, StockTransaction


logger = logging.getLogger(__name__)


def _reject_revision_update(mapper, connection, target):
    raise ImmutableRecordError(
        f"BOM revision {target.rev_no} of assembly {target.assembly_item_id} is immutable; create a new revision."
    )


def _reject_line_update(mapper, connection, target):
    raise ImmutableRecordError(
        f"BOM line for component {target.component_item_id} in revision {target.revision_id} is immutable."
    )


def _check_line_delete(mapper, connection, target):
    session = object_session(target)
    if session is not None and any(
        isinstance(obj, BomRevision) and obj.id == target.revision_id for obj in session.deleted
    ):
        return
    raise ImmutableRecordError(
        f"BOM line for component {target.component_item_id} can only be removed with its revision."
    )


def _reject_transaction_update(mapper, connection, target):
    raise ImmutableRecordError(f"Stock transaction {target.id} is append-only.")


def _reject_transaction_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Stock transaction {target.id} is append-only.")


_LISTENERS = [
    (BomRevision, "before_update", _reject_revision_update),
    (BomLine, "before_update", _reject_line_update),
    (BomLine, "before_delete", _check_line_delete),
    (StockTransaction, "before_update", _reject_transaction_update),
    (StockTransaction, "before_delete", _reject_transaction_delete),
]


def register_immutability_listeners() -> None:
    """Install the listeners; safe to call more than once."""
    installed = 0
    for target, event_name, listener in _LISTENERS:
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)
            installed += 1
    if installed:
        logger.debug("Registered %s immutability listeners", installed)

