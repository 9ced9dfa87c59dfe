"""
SQLAlchemy-backed stores for BOM trees, materials and user shapes.

BOM saves are compare-and-set on the version column: the UPDATE only
matches the row the caller loaded, so of two concurrent writers the second
one gets ConflictError instead of silently overwriting the first.
"""

import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import models
from .bom.serialization import dump_shape, dump_tree, load_shape, load_tree
from .bom.tree import BOMTree
from .errors import ConflictError, MaterialNotFoundError, NotFoundError
from .materials import DEFAULT_MATERIALS, MaterialLookup, MaterialRef, material_from_record
from .shapes import ShapeDefinition, ShapeLibrary, default_library

logger = logging.getLogger(__name__)


class BOMRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, tree: BOMTree) -> BOMTree:
        record = models.BOMRecord(
            id=tree.id,
            name=tree.name,
            version=tree.version,
            currency=tree.currency,
            template_id=tree.template_id,
            payload=dump_tree(tree),
        )
        self.db.add(record)
        self.db.commit()
        logger.info("Stored BOM %s (%d items) at v%d", tree.id, len(tree.items), tree.version)
        return tree

    def load(self, tree_id: str) -> BOMTree:
        record = self.db.get(models.BOMRecord, tree_id)
        if record is None:
            raise NotFoundError(f"BOM not found: {tree_id}", {"tree_id": tree_id})
        return load_tree(record.payload)

    def save(self, tree: BOMTree, expected_version: int) -> BOMTree:
        """Persist a mutated tree that was loaded at expected_version."""
        result = self.db.execute(
            update(models.BOMRecord)
            .where(models.BOMRecord.id == tree.id, models.BOMRecord.version == expected_version)
            .values(name=tree.name, version=tree.version, currency=tree.currency, payload=dump_tree(tree))
        )
        if result.rowcount == 0:
            self.db.rollback()
            current = self.db.get(models.BOMRecord, tree.id)
            if current is None:
                raise NotFoundError(f"BOM not found: {tree.id}", {"tree_id": tree.id})
            raise ConflictError(expected_version, current.version, tree.id)
        self.db.commit()
        return tree

    def list(self) -> List[models.BOMRecord]:
        return self.db.query(models.BOMRecord).order_by(models.BOMRecord.created_at).all()


class DBMaterialLookup(MaterialLookup):
    """Reads the materials table on every call; prices are never copied elsewhere."""

    def __init__(self, db: Session):
        self.db = db

    def get_material(self, material_id: str) -> MaterialRef:
        record = self.db.get(models.MaterialRecord, material_id)
        if record is None:
            raise MaterialNotFoundError(material_id)
        return material_from_record(record.id, {
            "name": record.name,
            "category": record.category,
            "density_kg_m3": record.density_kg_m3,
            "price": record.price,
            "currency": record.currency,
            "unit": record.unit,
        })


def seed_materials(db: Session) -> int:
    """Insert default catalog entries that are not in the table yet."""
    added = 0
    for material_id, record in DEFAULT_MATERIALS.items():
        if db.get(models.MaterialRecord, material_id) is None:
            db.add(models.MaterialRecord(
                id=material_id,
                name=record["name"],
                category=record["category"],
                density_kg_m3=record["density_kg_m3"],
                price=record["price"],
                currency=record.get("currency", "INR"),
                unit=record.get("unit", "kg"),
            ))
            added += 1
    db.commit()
    return added


def load_library(db: Session) -> ShapeLibrary:
    """Built-in catalog plus every user-published shape version."""
    library = default_library()
    rows = db.query(models.ShapeRecord).order_by(models.ShapeRecord.id, models.ShapeRecord.version).all()
    for row in rows:
        library.publish(load_shape(row.payload))
    return library


def store_shape(db: Session, library: ShapeLibrary, shape: ShapeDefinition) -> ShapeDefinition:
    """Validate and publish into the library, then persist the version."""
    published = library.publish(shape)
    if db.get(models.ShapeRecord, (published.id, published.version)) is None:
        db.add(models.ShapeRecord(
            id=published.id, version=published.version, name=published.name, payload=dump_shape(published),
        ))
        db.commit()
    return published
