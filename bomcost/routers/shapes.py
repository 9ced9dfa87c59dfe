from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..config import settings
from ..database import get_db
from ..repository import DBMaterialLookup, load_library, store_shape
from ..shapes import GeometryCategory, ShapeCalculator, ShapeDefinition, ShapeInstanceResult
from .deps import resolve_rates

router = APIRouter(prefix="/shapes", tags=["shapes"])


@router.get("/", response_model=List[ShapeDefinition])
def list_shapes(category: Optional[GeometryCategory] = None, material_category: Optional[str] = None,
                db: Session = Depends(get_db)):
    """Latest version of every shape."""
    return load_library(db).list_shapes(category, material_category)


@router.get("/{shape_id}", response_model=ShapeDefinition)
def get_shape(shape_id: str, version: Optional[int] = None, db: Session = Depends(get_db)):
    return load_library(db).get(shape_id, version)


@router.post("/", response_model=ShapeDefinition)
def publish_shape(shape: ShapeDefinition, db: Session = Depends(get_db)):
    """Publish a new shape or a new version; published versions are immutable."""
    return store_shape(db, load_library(db), shape)


@router.post("/{shape_id}/calculate", response_model=ShapeInstanceResult)
def calculate_shape(shape_id: str, body: schemas.ShapeCalculateRequest, db: Session = Depends(get_db)):
    shape = load_library(db).get(shape_id, body.shape_version)
    material = DBMaterialLookup(db).get_material(body.material_id)
    return ShapeCalculator().calculate(
        shape, body.parameters, material, body.quantity, body.wastage_pct,
        rates=resolve_rates(body.rates), currency=settings.CURRENCY,
    )
