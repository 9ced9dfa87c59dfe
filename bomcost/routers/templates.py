from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..repository import BOMRepository
from ..templates import TemplateLibrary
from .deps import bom_service

router = APIRouter(prefix="/templates", tags=["templates"])

template_library = TemplateLibrary()


def _info(template) -> schemas.TemplateInfo:
    return schemas.TemplateInfo(
        id=template.id,
        version=template.version,
        name=template.name,
        description=template.description,
        parameters=template.parameters,
    )


@router.get("/", response_model=List[schemas.TemplateInfo])
def list_templates():
    return [_info(template_library.load_template(t)) for t in template_library.list_available_templates()]


@router.get("/{template_id}", response_model=schemas.TemplateInfo)
def get_template(template_id: str):
    return _info(template_library.load_template(template_id))


@router.post("/{template_id}/instantiate", response_model=schemas.BOMResponse)
def instantiate_template(template_id: str, body: schemas.TemplateInstantiateRequest,
                         db: Session = Depends(get_db)):
    """Create a priced BOM from a template. Nothing is stored if any parameter or formula fails."""
    template = template_library.load_template(template_id)
    service = bom_service(db, body.rates)
    tree, summary = service.instantiate(template, body.parameters)
    if body.name:
        tree.name = body.name
    BOMRepository(db).create(tree)
    return schemas.BOMResponse(tree=tree, summary=summary)
