"""
Material lookup with fallback chain:
1. Seeded materials from data/seeded_materials.json (supplier price list)
2. DEFAULT_MATERIALS from this file (market averages)

The material catalog is owned elsewhere; the engine only reads it. Prices
are read per calculation and never written back into shapes or BOMs.
Callers may wrap a lookup in PassCache to share reads within one
calculation pass.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from .errors import MaterialNotFoundError
from .units import Money, Quantity, q

logger = logging.getLogger(__name__)


class MaterialRef(BaseModel):
    """What a lookup returns for one material id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    category: str = ""
    density: Quantity
    price_per_unit: Money
    unit: str = "kg"   # what price_per_unit is per: a mass unit or "ea"


class MaterialLookup(ABC):
    @abstractmethod
    def get_material(self, material_id: str) -> MaterialRef:
        """Return the material or raise MaterialNotFoundError."""


# FALLBACK MATERIALS: used when no seeded entry exists
# Prices in INR per kg, market averages as of Q3 2026
DEFAULT_MATERIALS = {
    "CS_SA516_70": {
        "name": "Carbon steel plate SA516 Gr.70",
        "category": "plate_carbon_steel",
        "density_kg_m3": 7850.0,
        "price": 85.0,
    },
    "CS_SA285_C": {
        "name": "Carbon steel plate SA285 Gr.C",
        "category": "plate_carbon_steel",
        "density_kg_m3": 7850.0,
        "price": 78.0,
    },
    "CS_IS2062": {
        "name": "Structural steel IS2062 E250",
        "category": "section_carbon_steel",
        "density_kg_m3": 7850.0,
        "price": 68.0,
    },
    "SS304_PLATE": {
        "name": "Stainless steel plate SA240 304",
        "category": "plate_stainless_steel",
        "density_kg_m3": 7930.0,
        "price": 290.0,
    },
    "SS316L_PLATE": {
        "name": "Stainless steel plate SA240 316L",
        "category": "plate_stainless_steel",
        "density_kg_m3": 8000.0,
        "price": 360.0,
    },
    "CS_SA179_TUBE": {
        "name": "Carbon steel seamless tube SA179",
        "category": "tube_carbon_steel",
        "density_kg_m3": 7850.0,
        "price": 140.0,
    },
    "SS304_TUBE": {
        "name": "Stainless steel tube SA213 TP304",
        "category": "tube_stainless_steel",
        "density_kg_m3": 7930.0,
        "price": 390.0,
    },
    "SS316L_TUBE": {
        "name": "Stainless steel tube SA213 TP316L",
        "category": "tube_stainless_steel",
        "density_kg_m3": 8000.0,
        "price": 460.0,
    },
    "AL6061_PLATE": {
        "name": "Aluminium plate 6061-T6",
        "category": "plate_aluminium",
        "density_kg_m3": 2700.0,
        "price": 330.0,
    },
    "CU_C12200_TUBE": {
        "name": "Copper tube C12200",
        "category": "tube_copper",
        "density_kg_m3": 8940.0,
        "price": 920.0,
    },
}

DEFAULT_SEED_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "seeded_materials.json")


def material_from_record(material_id: str, record: dict, currency: str = "INR") -> MaterialRef:
    return MaterialRef(
        id=material_id,
        name=record.get("name", material_id),
        category=record.get("category", ""),
        density=q(record["density_kg_m3"], "kg/m3"),
        price_per_unit=Money(amount=record["price"], currency=record.get("currency", currency)),
        unit=record.get("unit", "kg"),
    )


def _load_seeded(path: str) -> Dict[str, dict]:
    try:
        with open(path) as f:
            records = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return {}  # No seeded list, use defaults
    logger.info("Loaded %d seeded materials from %s", len(records), path)
    return records


class StaticMaterialLookup(MaterialLookup):
    """Dictionary-backed lookup: seeded entries override the defaults."""

    def __init__(self, materials: Optional[Dict[str, dict]] = None,
                 seed_path: Optional[str] = DEFAULT_SEED_PATH, currency: str = "INR"):
        records = dict(DEFAULT_MATERIALS if materials is None else materials)
        if seed_path:
            records.update(_load_seeded(seed_path))
        self.currency = currency
        self._records = records

    def get_material(self, material_id: str) -> MaterialRef:
        record = self._records.get(material_id)
        if record is None:
            raise MaterialNotFoundError(material_id)
        return material_from_record(material_id, record, self.currency)

    def set_price(self, material_id: str, price: float):
        """Price changes land here; nothing downstream holds the old value."""
        if material_id not in self._records:
            raise MaterialNotFoundError(material_id)
        self._records[material_id] = {**self._records[material_id], "price": price}

    def list_ids(self) -> List[str]:
        return sorted(self._records)


class PassCache(MaterialLookup):
    """
    Memoizes reads for one calculation pass and logs reads that exceed the
    declared latency budget. Create a new one per pass; never keep it around.
    """

    def __init__(self, inner: MaterialLookup, budget_ms: Optional[float] = None):
        self.inner = inner
        self.budget_ms = budget_ms
        self._hits: Dict[str, MaterialRef] = {}
        self.reads = 0

    def get_material(self, material_id: str) -> MaterialRef:
        if material_id in self._hits:
            return self._hits[material_id]
        started = time.perf_counter()
        material = self.inner.get_material(material_id)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        self.reads += 1
        if self.budget_ms is not None and elapsed_ms > self.budget_ms:
            logger.warning(
                "Material lookup for %s took %.1f ms (budget %.1f ms)",
                material_id, elapsed_ms, self.budget_ms,
            )
        self._hits[material_id] = material
        return material
