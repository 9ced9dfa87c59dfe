from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .bom.rollup import BOMSummary, ItemRollup
from .bom.tree import AssemblyFabrication, BOMItem, BOMTree, BoughtOutSpec, ItemKind
from .formulas import ExpectedRange
from .rates import CostRates
from .shapes import ParameterSpec


# --- Formulas ---

class FormulaValidateRequest(BaseModel):
    expression: str
    unit: str = "1"
    parameter_names: List[str] = []
    constants: Dict[str, float] = {}

class FormulaValidateResponse(BaseModel):
    valid: bool
    variables: List[str] = []

class FormulaEvaluateRequest(BaseModel):
    expression: str
    unit: str = "1"
    bindings: Dict[str, Any] = {}
    variable_units: Dict[str, str] = {}
    constants: Dict[str, float] = {}
    expected_range: Optional[ExpectedRange] = None

class FormulaEvaluateResponse(BaseModel):
    value: float
    unit: str
    warnings: List[str] = []


# --- Shapes ---

class ShapeCalculateRequest(BaseModel):
    parameters: Dict[str, Any] = {}
    material_id: str
    quantity: float = 1.0
    wastage_pct: float = 0.0
    shape_version: Optional[int] = None
    rates: Optional[CostRates] = None


# --- Materials ---

class MaterialUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    density_kg_m3: Optional[float] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    unit: Optional[str] = None
    notes: Optional[str] = None

class Material(BaseModel):
    id: str
    name: str
    category: str
    density_kg_m3: float
    price: float
    currency: str
    unit: str
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True


# --- BOMs ---

class ShapeInstanceIn(BaseModel):
    shape_id: str
    shape_version: Optional[int] = None
    parameters: Dict[str, Any] = {}
    material_id: Optional[str] = None

class BOMCreate(BaseModel):
    name: str
    currency: Optional[str] = None
    root_name: Optional[str] = None

class BOMItemCreate(BaseModel):
    expected_version: int
    parent_id: str
    name: str
    kind: ItemKind = ItemKind.PART
    quantity: float = 1.0
    wastage_pct: float = 0.0
    shape: Optional[ShapeInstanceIn] = None
    bought_out: Optional[BoughtOutSpec] = None
    fabrication: Optional[AssemblyFabrication] = None
    notes: Optional[str] = None
    position: Optional[int] = None
    rates: Optional[CostRates] = None

class BOMItemUpdate(BaseModel):
    expected_version: int
    name: Optional[str] = None
    notes: Optional[str] = None
    quantity: Optional[float] = None
    wastage_pct: Optional[float] = None
    parameters: Optional[Dict[str, Any]] = None
    material_id: Optional[str] = None
    bought_out: Optional[BoughtOutSpec] = None
    fabrication: Optional[AssemblyFabrication] = None
    rates: Optional[CostRates] = None

class BOMItemMove(BaseModel):
    expected_version: int
    new_parent_id: str
    position: Optional[int] = None
    rates: Optional[CostRates] = None

class BOMItemDuplicate(BaseModel):
    expected_version: int
    new_parent_id: Optional[str] = None
    rates: Optional[CostRates] = None

class RecalculateRequest(BaseModel):
    expected_version: int
    rates: Optional[CostRates] = None

class BOMResponse(BaseModel):
    tree: BOMTree
    summary: BOMSummary

class BOMMutationResponse(BaseModel):
    version: int
    summary: BOMSummary
    item: Optional[BOMItem] = None
    item_rollup: Optional[ItemRollup] = None
    removed: List[str] = []

class BOMListEntry(BaseModel):
    id: str
    name: str
    version: int
    currency: str
    template_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True


# --- Templates ---

class TemplateInfo(BaseModel):
    id: str
    version: int
    name: str
    description: Optional[str] = None
    parameters: List[ParameterSpec] = []

class TemplateInstantiateRequest(BaseModel):
    parameters: Dict[str, Any] = {}
    name: Optional[str] = None
    rates: Optional[CostRates] = None
