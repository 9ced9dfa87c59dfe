"""
Shell-and-tube heat exchanger components (TEMA).

hx_tube has no volume formula on purpose: its volume is derived from the
tube primitive through the dimensions role map.
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
from .common import PLATE_MATERIALS, SECTION_MATERIALS, TUBE_MATERIALS, count, f, mm, pct

TEMA = "TEMA 10th Ed."

# Segment area of a baffle cut of height cut% x D from a disc of diameter D
_BAFFLE_OUTLINE = (
    "pi / 4 * D^2 - ((D / 2)^2 * acos(1 - 2 * cut / 100)"
    " - (D / 2 - cut / 100 * D) * sqrt(D * cut / 100 * D - (cut / 100 * D)^2))"
)


def _square_blank(diameter_expr: str, finished_expr: str) -> BlankDefinition:
    return BlankDefinition(
        blank_type=BlankType.RECTANGULAR,
        thickness_param="t",
        length=f(f"{diameter_expr} + 2 * a", "mm"),
        width=f(f"{diameter_expr} + 2 * a", "mm"),
        finished_area=f(finished_expr, "mm2"),
    )


HX_TUBE = ShapeDefinition(
    id="hx_tube",
    name="Heat Exchanger Tube",
    category=GeometryCategory.TUBE,
    standard=TEMA,
    parameters=[
        mm("OD", "Outside diameter", 6, 100, default=19.05, order=1),
        mm("t", "Wall thickness", 0.5, 10, default=1.65, order=2),
        mm("L", "Length", 100, 20000, order=3),
    ],
    formulas=ShapeFormulas(
        inner_surface_area=f("pi * (OD - 2 * t) * L", "mm2"),
        outer_surface_area=f("pi * OD * L", "mm2"),
        custom={"bore": f("OD - 2 * t", "mm", min=0.001, warning="wall thicker than tube radius")},
    ),
    dimensions={"outer_diameter": "OD", "thickness": "t", "length": "L"},
    material_categories=TUBE_MATERIALS,
    tags=["tube", "heat_exchanger"],
)

HX_TUBE_BUNDLE = ShapeDefinition(
    id="hx_tube_bundle",
    name="Tube Bundle (tubes only)",
    category=GeometryCategory.TUBE_BUNDLE,
    standard=TEMA,
    parameters=[
        mm("OD", "Tube outside diameter", 6, 100, default=19.05, order=1),
        mm("t", "Tube wall thickness", 0.5, 10, default=1.65, order=2),
        mm("L", "Tube length", 100, 20000, order=3),
        count("N", "Number of tubes", 1, 20000, order=4),
    ],
    formulas=ShapeFormulas(
        volume=f("pi / 4 * (OD^2 - (OD - 2 * t)^2) * L * N", "mm3"),
        inner_surface_area=f("pi * (OD - 2 * t) * L * N", "mm2"),
        outer_surface_area=f("pi * OD * L * N", "mm2"),
    ),
    material_categories=TUBE_MATERIALS,
    tags=["tube", "heat_exchanger"],
)

HX_TUBE_SHEET = ShapeDefinition(
    id="hx_tube_sheet",
    name="Tube Sheet",
    category=GeometryCategory.TUBE_SHEET,
    standard=TEMA,
    parameters=[
        mm("D", "Outside diameter", 200, 3000, order=1),
        mm("t", "Thickness", 10, 300, order=2),
        mm("d_hole", "Tube hole diameter", 6, 100, default=19.3, order=3),
        count("N", "Number of tube holes", 1, 20000, order=4),
        mm("P", "Tube pitch", 8, 150, default=25.4, required=False, order=5),
        mm("a", "Cutting allowance per side", 0, 100, default=25, required=False, allow_zero=True, order=6),
    ],
    formulas=ShapeFormulas(
        volume=f("pi / 4 * (D^2 - N * d_hole^2) * t", "mm3"),
        surface_area=f("2 * pi / 4 * (D^2 - N * d_hole^2) + pi * D * t + N * pi * d_hole * t", "mm2"),
        edge_length=f("pi * D", "mm"),
        custom={
            "ligament_efficiency": f(
                "(P - d_hole) / P", "ratio", min=0.15, warning="ligament too thin for rolling/welding",
            ),
            "drilled_length": f("N * t", "mm"),
        },
    ),
    blank=_square_blank("D", "pi / 4 * D^2"),
    fabrication=FabricationModel(
        machining_hours=f("2 + N * t / 1200", "h", "Facing, drilling and grooving"),
        cutting=True,
    ),
    material_categories=PLATE_MATERIALS,
    tags=["tube_sheet", "heat_exchanger"],
)

HX_BAFFLE = ShapeDefinition(
    id="hx_baffle",
    name="Segmental Baffle",
    category=GeometryCategory.BAFFLE,
    standard=TEMA,
    parameters=[
        mm("D", "Outside diameter", 100, 3000, order=1),
        mm("t", "Thickness", 3, 25, order=2),
        pct("cut", "Baffle cut", 15, 45, default=25, order=3),
        mm("d_hole", "Tube hole diameter", 6, 100, default=19.8, order=4),
        count("N", "Tube holes in baffle", 0, 20000, allow_zero=True, order=5),
        mm("a", "Cutting allowance per side", 0, 100, default=10, required=False, allow_zero=True, order=6),
    ],
    formulas=ShapeFormulas(
        volume=f(f"({_BAFFLE_OUTLINE} - N * pi / 4 * d_hole^2) * t", "mm3"),
        surface_area=f(f"2 * ({_BAFFLE_OUTLINE} - N * pi / 4 * d_hole^2)", "mm2"),
        custom={"outline_area": f(_BAFFLE_OUTLINE, "mm2")},
    ),
    blank=_square_blank("D", _BAFFLE_OUTLINE),
    fabrication=FabricationModel(machining_hours=f("0.5 + N * t / 3000", "h", "Stack drilling")),
    material_categories=PLATE_MATERIALS,
    tags=["baffle", "heat_exchanger"],
)

HX_TUBE_SUPPORT = ShapeDefinition(
    id="hx_tube_support",
    name="Tube Support Plate",
    category=GeometryCategory.BAFFLE,
    standard=TEMA,
    parameters=[
        mm("D", "Outside diameter", 100, 3000, order=1),
        mm("t", "Thickness", 3, 50, order=2),
        mm("d_hole", "Tube hole diameter", 6, 100, default=19.8, order=3),
        count("N", "Tube holes", 0, 20000, allow_zero=True, order=4),
        mm("a", "Cutting allowance per side", 0, 100, default=10, required=False, allow_zero=True, order=5),
    ],
    formulas=ShapeFormulas(
        volume=f("(pi / 4 * D^2 - N * pi / 4 * d_hole^2) * t", "mm3"),
    ),
    blank=_square_blank("D", "pi / 4 * D^2"),
    material_categories=PLATE_MATERIALS,
    tags=["baffle", "heat_exchanger"],
)

STRUCTURAL_SECTION = ShapeDefinition(
    id="structural_section",
    name="Structural Section (tabulated)",
    category=GeometryCategory.SECTION,
    description="Rolled section priced from its tabulated mass per metre; volume follows from density.",
    parameters=[
        ParameterSpec(name="w", label="Mass per metre", unit="kg/m", min_value=0.1, max_value=1000,
                      allow_zero=False, order=1),
        mm("L", "Length", 10, 24000, order=2),
    ],
    formulas=ShapeFormulas(
        weight=f("w * L / 1000", "kg"),
    ),
    material_categories=SECTION_MATERIALS,
    tags=["section", "support"],
)

SHAPES = [HX_TUBE, HX_TUBE_BUNDLE, HX_TUBE_SHEET, HX_BAFFLE, HX_TUBE_SUPPORT, STRUCTURAL_SECTION]
