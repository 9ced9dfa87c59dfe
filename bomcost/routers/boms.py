from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..bom.rollup import BOMSummary
from ..bom.tree import BOMItem, BOMTree, ShapeInstance, new_id
from ..config import settings
from ..database import get_db
from ..repository import BOMRepository
from .deps import bom_service

router = APIRouter(prefix="/boms", tags=["boms"])

# Fields of BOMItemUpdate that are request plumbing rather than item changes
_CONTROL_FIELDS = {"expected_version", "rates"}


@router.post("/", response_model=schemas.BOMResponse)
def create_bom(body: schemas.BOMCreate, db: Session = Depends(get_db)):
    root_fields = {"root_name": body.root_name} if body.root_name else {}
    tree = BOMTree.create(body.name, currency=body.currency or settings.CURRENCY, **root_fields)
    BOMRepository(db).create(tree)
    return schemas.BOMResponse(tree=tree, summary=bom_service(db).summary(tree))


@router.get("/", response_model=List[schemas.BOMListEntry])
def list_boms(db: Session = Depends(get_db)):
    return BOMRepository(db).list()


@router.get("/{bom_id}", response_model=schemas.BOMResponse)
def get_bom(bom_id: str, db: Session = Depends(get_db)):
    tree = BOMRepository(db).load(bom_id)
    return schemas.BOMResponse(tree=tree, summary=bom_service(db).summary(tree))


@router.get("/{bom_id}/summary", response_model=BOMSummary)
def get_summary(bom_id: str, db: Session = Depends(get_db)):
    tree = BOMRepository(db).load(bom_id)
    return bom_service(db).summary(tree)


@router.get("/{bom_id}/items")
def list_items(bom_id: str, db: Session = Depends(get_db)):
    """Flattened rows in item-number order, for tables and exports."""
    tree = BOMRepository(db).load(bom_id)
    return bom_service(db).rollup_engine.flatten(tree)


@router.post("/{bom_id}/items", response_model=schemas.BOMMutationResponse)
def add_item(bom_id: str, body: schemas.BOMItemCreate, db: Session = Depends(get_db)):
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    service = bom_service(db, body.rates)
    item = BOMItem(
        id=new_id(),
        name=body.name,
        kind=body.kind,
        quantity=body.quantity,
        wastage_pct=body.wastage_pct,
        shape=ShapeInstance(**body.shape.model_dump()) if body.shape else None,
        bought_out=body.bought_out,
        fabrication=body.fabrication,
        notes=body.notes,
    )
    added, summary = service.add_item(tree, body.parent_id, item, body.expected_version, body.position)
    repo.save(tree, body.expected_version)
    return schemas.BOMMutationResponse(
        version=tree.version, summary=summary, item=added,
        item_rollup=service.rollup_engine.item_rollup(tree, added.id),
    )


@router.patch("/{bom_id}/items/{item_id}", response_model=schemas.BOMMutationResponse)
def update_item(bom_id: str, item_id: str, body: schemas.BOMItemUpdate, db: Session = Depends(get_db)):
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    service = bom_service(db, body.rates)
    changes = {field: getattr(body, field) for field in body.model_fields_set - _CONTROL_FIELDS}
    summary = service.update_item(tree, item_id, body.expected_version, **changes)
    repo.save(tree, body.expected_version)
    return schemas.BOMMutationResponse(
        version=tree.version, summary=summary, item=tree.get(item_id),
        item_rollup=service.rollup_engine.item_rollup(tree, item_id),
    )


@router.post("/{bom_id}/items/{item_id}/move", response_model=schemas.BOMMutationResponse)
def move_item(bom_id: str, item_id: str, body: schemas.BOMItemMove, db: Session = Depends(get_db)):
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    summary = bom_service(db, body.rates).move_item(
        tree, item_id, body.new_parent_id, body.expected_version, body.position,
    )
    repo.save(tree, body.expected_version)
    return schemas.BOMMutationResponse(version=tree.version, summary=summary, item=tree.get(item_id))


@router.post("/{bom_id}/items/{item_id}/duplicate", response_model=schemas.BOMMutationResponse)
def duplicate_item(bom_id: str, item_id: str, body: schemas.BOMItemDuplicate, db: Session = Depends(get_db)):
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    copy, summary = bom_service(db, body.rates).duplicate_item(
        tree, item_id, body.expected_version, body.new_parent_id,
    )
    repo.save(tree, body.expected_version)
    return schemas.BOMMutationResponse(version=tree.version, summary=summary, item=copy)


@router.delete("/{bom_id}/items/{item_id}", response_model=schemas.BOMMutationResponse)
def delete_item(bom_id: str, item_id: str, expected_version: int, db: Session = Depends(get_db)):
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    removed, summary = bom_service(db).delete_item(tree, item_id, expected_version)
    repo.save(tree, expected_version)
    return schemas.BOMMutationResponse(version=tree.version, summary=summary, removed=removed)


@router.post("/{bom_id}/recalculate", response_model=schemas.BOMResponse)
def recalculate(bom_id: str, body: schemas.RecalculateRequest, db: Session = Depends(get_db)):
    """Re-price every item against current material data and rates."""
    repo = BOMRepository(db)
    tree = repo.load(bom_id)
    summary = bom_service(db, body.rates).calculate_all(tree, body.expected_version)
    repo.save(tree, body.expected_version)
    return schemas.BOMResponse(tree=tree, summary=summary)
