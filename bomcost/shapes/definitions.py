"""
Parametric shape definitions.

A ShapeDefinition is pure data: a parameter schema plus named formulas for
volume, weight, areas, blank and scrap. Definitions are frozen pydantic
models so a published version can never be mutated in place; edits go
through ShapeLibrary.revise(), which stores a new version.

Formula conventions: lengths in mm, areas in mm², volumes in mm³. Two
reserved names are bound during calculation:
    density   kg/m³ of the bound material (all formulas)
    volume    mm³, already evaluated (every formula except volume)
"""

import enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..formulas import FormulaDefinition


class ParameterKind(str, enum.Enum):
    NUMBER = "number"
    CHOICE = "choice"
    BOOLEAN = "boolean"


class GeometryCategory(str, enum.Enum):
    PLATE_RECTANGULAR = "plate_rectangular"
    PLATE_CIRCULAR = "plate_circular"
    PLATE_CUSTOM = "plate_custom"
    SHELL_CYLINDRICAL = "shell_cylindrical"
    SHELL_CONICAL = "shell_conical"
    HEAD_HEMISPHERICAL = "head_hemispherical"
    HEAD_ELLIPSOIDAL = "head_ellipsoidal"
    HEAD_TORISPHERICAL = "head_torispherical"
    HEAD_FLAT = "head_flat"
    TUBE = "tube"
    TUBE_BUNDLE = "tube_bundle"
    TUBE_SHEET = "tube_sheet"
    BAFFLE = "baffle"
    SECTION = "section"
    OTHER = "other"


class BlankType(str, enum.Enum):
    RECTANGULAR = "rectangular"
    CIRCULAR = "circular"


class ParameterOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: Optional[str] = None
    numeric_value: Optional[float] = None


class ParameterSpec(BaseModel):
    """One input of a shape or template."""

    model_config = ConfigDict(frozen=True)

    name: str
    unit: str = "1"
    kind: ParameterKind = ParameterKind.NUMBER
    label: Optional[str] = None
    description: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    default: Optional[Union[float, str, bool]] = None
    required: bool = True
    allow_zero: bool = True
    options: List[ParameterOption] = []
    order: int = 0


class BlankDefinition(BaseModel):
    """Stock the part is cut from, and the finished area it yields."""

    model_config = ConfigDict(frozen=True)

    blank_type: BlankType
    thickness_param: str
    finished_area: FormulaDefinition
    length: Optional[FormulaDefinition] = None
    width: Optional[FormulaDefinition] = None
    diameter: Optional[FormulaDefinition] = None
    description: Optional[str] = None


class FabricationModel(BaseModel):
    """
    Which fabrication components apply to a shape.

    Rates are never stored here; they come from the caller's CostRates.
    """

    model_config = ConfigDict(frozen=True)

    labor_hours: Optional[FormulaDefinition] = None
    machining_hours: Optional[FormulaDefinition] = None
    cutting: bool = False
    edge_preparation: bool = False
    welding: bool = False
    surface_treatment: bool = False
    weld_thickness_param: Optional[str] = None
    base_cost: float = 0.0
    cost_per_kg: float = 0.0


class ShapeFormulas(BaseModel):
    model_config = ConfigDict(frozen=True)

    volume: Optional[FormulaDefinition] = None
    weight: Optional[FormulaDefinition] = None
    surface_area: Optional[FormulaDefinition] = None
    inner_surface_area: Optional[FormulaDefinition] = None
    outer_surface_area: Optional[FormulaDefinition] = None
    wetted_area: Optional[FormulaDefinition] = None
    edge_length: Optional[FormulaDefinition] = None
    weld_length: Optional[FormulaDefinition] = None
    scrap_percentage: Optional[FormulaDefinition] = None
    custom: Dict[str, FormulaDefinition] = {}


# Formula slot -> dimension its declared unit must belong to
SLOT_DIMENSIONS = {
    "volume": "volume",
    "weight": "mass",
    "surface_area": "area",
    "inner_surface_area": "area",
    "outer_surface_area": "area",
    "wetted_area": "area",
    "edge_length": "length",
    "weld_length": "length",
    "scrap_percentage": "ratio",
}

AREA_SLOTS = ("surface_area", "inner_surface_area", "outer_surface_area", "wetted_area")


class ShapeDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    version: int = 1
    name: str
    category: GeometryCategory
    description: Optional[str] = None
    standard: Optional[str] = None
    parameters: List[ParameterSpec]
    formulas: ShapeFormulas = ShapeFormulas()
    dimensions: Dict[str, str] = {}
    blank: Optional[BlankDefinition] = None
    fabrication: Optional[FabricationModel] = None
    material_categories: List[str] = []
    tags: List[str] = []

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        return None

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters]
