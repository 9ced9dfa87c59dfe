from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..errors import MaterialNotFoundError, UnitError
from ..repository import seed_materials
from ..units import is_known_unit

router = APIRouter(prefix="/materials", tags=["materials"])


@router.get("/seed")
def seed(db: Session = Depends(get_db)):
    """Seed the default material catalog."""
    added = seed_materials(db)
    return {"ok": True, "seeded": added}


@router.get("/", response_model=List[schemas.Material])
def list_materials(db: Session = Depends(get_db)):
    return db.query(models.MaterialRecord).order_by(models.MaterialRecord.id).all()


@router.get("/{material_id}", response_model=schemas.Material)
def get_material(material_id: str, db: Session = Depends(get_db)):
    material = db.get(models.MaterialRecord, material_id)
    if material is None:
        raise MaterialNotFoundError(material_id)
    return material


@router.patch("/{material_id}", response_model=schemas.Material)
def update_material(material_id: str, update: schemas.MaterialUpdate, db: Session = Depends(get_db)):
    """Price and property edits take effect on the next calculation that reads them."""
    material = db.get(models.MaterialRecord, material_id)
    if material is None:
        raise MaterialNotFoundError(material_id)
    changes = update.model_dump(exclude_unset=True)
    if "unit" in changes and not is_known_unit(changes["unit"]):
        raise UnitError(f"Unknown unit '{changes['unit']}'", {"unit": changes["unit"]})
    for field, value in changes.items():
        setattr(material, field, value)
    db.commit()
    db.refresh(material)
    return material
