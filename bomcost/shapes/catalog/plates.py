"""
Plate shapes: rectangular, circular (cut from a square blank), custom outline.

Every plate carries a blank so scrap is reported. Cutting allowance `a`
is added on each side of the finished outline.
"""

from ..definitions import (
    BlankDefinition,
    BlankType,
    FabricationModel,
    GeometryCategory,
    ParameterSpec,
    ShapeDefinition,
    ShapeFormulas,
)
from .common import PLATE_MATERIALS, f, mm, pct

PLATE_FABRICATION = FabricationModel(cutting=True, edge_preparation=True, surface_treatment=True)

RECTANGULAR_PLATE = ShapeDefinition(
    id="rectangular_plate",
    name="Rectangular Plate",
    category=GeometryCategory.PLATE_RECTANGULAR,
    description="Flat rectangular plate cut from a rectangular blank.",
    parameters=[
        mm("L", "Length", 10, 20000, order=1),
        mm("W", "Width", 10, 20000, order=2),
        mm("t", "Thickness", 0.5, 500, order=3),
        mm("a", "Cutting allowance per side", 0, 100, default=10, required=False, allow_zero=True, order=4),
    ],
    formulas=ShapeFormulas(
        volume=f("L * W * t", "mm3"),
        surface_area=f("2 * L * W + 2 * t * (L + W)", "mm2"),
        edge_length=f("2 * (L + W)", "mm"),
    ),
    dimensions={"length": "L", "width": "W", "thickness": "t"},
    blank=BlankDefinition(
        blank_type=BlankType.RECTANGULAR,
        thickness_param="t",
        length=f("L + 2 * a", "mm"),
        width=f("W + 2 * a", "mm"),
        finished_area=f("L * W", "mm2"),
    ),
    fabrication=PLATE_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["plate"],
)

CIRCULAR_PLATE = ShapeDefinition(
    id="circular_plate",
    name="Circular Plate",
    category=GeometryCategory.PLATE_CIRCULAR,
    description="Disc cut from a square blank of side D + 2a.",
    parameters=[
        mm("D", "Diameter", 10, 10000, order=1),
        mm("t", "Thickness", 0.5, 500, order=2),
        mm("a", "Cutting allowance per side", 0, 100, default=10, required=False, allow_zero=True, order=3),
    ],
    formulas=ShapeFormulas(
        volume=f("pi / 4 * D^2 * t", "mm3"),
        surface_area=f("pi / 2 * D^2 + pi * D * t", "mm2"),
        edge_length=f("pi * D", "mm"),
    ),
    dimensions={"diameter": "D", "thickness": "t"},
    blank=BlankDefinition(
        blank_type=BlankType.RECTANGULAR,
        thickness_param="t",
        length=f("D + 2 * a", "mm"),
        width=f("D + 2 * a", "mm"),
        finished_area=f("pi / 4 * D^2", "mm2"),
        description="Square blank",
    ),
    fabrication=PLATE_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["plate", "disc"],
)

CUSTOM_PLATE = ShapeDefinition(
    id="custom_plate",
    name="Custom Profile Plate",
    category=GeometryCategory.PLATE_CUSTOM,
    description="Irregular profile given by its net area and cut perimeter; scrap entered as a percentage.",
    parameters=[
        ParameterSpec(name="A", label="Net area", unit="mm2", min_value=1, allow_zero=False, order=1),
        mm("P", "Cut perimeter", 1, order=2),
        mm("t", "Thickness", 0.5, 500, order=3),
        pct("scrap", "Nesting scrap", 0, 80, default=25, order=4),
    ],
    formulas=ShapeFormulas(
        volume=f("A * t", "mm3"),
        surface_area=f("2 * A + P * t", "mm2"),
        edge_length=f("P", "mm"),
        scrap_percentage=f("scrap", "%"),
    ),
    fabrication=PLATE_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["plate"],
)

SHAPES = [RECTANGULAR_PLATE, CIRCULAR_PLATE, CUSTOM_PLATE]
