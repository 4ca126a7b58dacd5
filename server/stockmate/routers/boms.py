from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockmate.auth import require_module
from stockmate.bom import schemas
from stockmate.bom.service import (
    create_revision,
    delete_revision,
    find_current_revision,
    get_revision,
    list_revisions,
)
from stockmate.catalog.service import get_assembly
from stockmate.db import get_db
from stockmate.errors import StockmateError, http_error
from stockmate.models import BomRevision
from stockmate.module_keys import ModuleKey


router = APIRouter(prefix="/api/assemblies", tags=["bom"], dependencies=[Depends(require_module(ModuleKey.BOM))])


def _line_responses(revision: Optional[BomRevision]) -> List[schemas.BomLineResponse]:
    if revision is None:
        return []
    return [
        schemas.BomLineResponse(
            component_item_id=line.component_item_id,
            sku=line.component_item.sku,
            name=line.component_item.name,
            item_type=line.component_item.item_type,
            managed_unit=line.component_item.managed_unit,
            qty_per_unit=line.qty_per_unit,
            note=line.note,
        )
        for line in revision.lines
    ]


@router.get("/{assembly_id}/components", response_model=schemas.BomRevisionSetResponse)
def get_components(
    assembly_id: int,
    rev_no: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    try:
        assembly = get_assembly(db, assembly_id)
        revisions = list_revisions(db, assembly.id)
        if rev_no is None:
            selected = find_current_revision(db, assembly.id)
        else:
            selected = get_revision(db, assembly.id, rev_no)
    except StockmateError as exc:
        raise http_error(exc)

    return schemas.BomRevisionSetResponse(
        assembly_item_id=assembly.id,
        assembly_sku=assembly.sku,
        current_rev_no=revisions[0]["rev_no"] if revisions else None,
        selected_rev_no=selected.rev_no if selected else None,
        revisions=revisions,
        lines=_line_responses(selected),
    )


@router.get("/{assembly_id}/revisions", response_model=List[schemas.BomRevisionSummary])
def get_revisions(assembly_id: int, db: Session = Depends(get_db)):
    try:
        return list_revisions(db, assembly_id)
    except StockmateError as exc:
        raise http_error(exc)


@router.put("/{assembly_id}/components", response_model=schemas.BomRevisionCreateResponse)
def put_components(assembly_id: int, payload: schemas.BomRevisionCreate, db: Session = Depends(get_db)):
    try:
        revision = create_revision(db, assembly_id, [line.model_dump() for line in payload.lines])
    except StockmateError as exc:
        db.rollback()
        raise http_error(exc)
    db.commit()
    return schemas.BomRevisionCreateResponse(record_id=revision.id, rev_no=revision.rev_no)


@router.delete("/{assembly_id}/components/{rev_no}", response_model=schemas.BomRevisionDeleteResponse)
def delete_components(assembly_id: int, rev_no: int, db: Session = Depends(get_db)):
    try:
        current = delete_revision(db, assembly_id, rev_no)
    except StockmateError as exc:
        db.rollback()
        raise http_error(exc)
    current_rev_no = current.rev_no
    db.commit()
    return schemas.BomRevisionDeleteResponse(
        deleted_rev_no=rev_no,
        current_rev_no=current_rev_no,
        # remaining revisions are all older than a deleted current one
        current_changed=rev_no > current_rev_no,
    )
