"""
Pressure vessel shells and heads.

Formed heads are cut from circular blanks: the finished area is the
developed (mean-surface) area of the head, and the blank diameter adds a
forming allowance `fa` (% of the developed diameter) for trimming after
pressing or spinning. With the default 9 % allowance the scrap of a formed
head is 1 - 1/1.09² = 15.8 %.

Torispherical heads are the standard flanged-and-dished form: crown radius
= ID, knuckle radius = 0.06 ID. Their dished mean-surface area is
0.9306 Dm² and the dish depth 0.1693 ID.
"""

from ..definitions import (
    BlankDefinition,
    BlankType,
    FabricationModel,
    GeometryCategory,
    ShapeDefinition,
    ShapeFormulas,
)
from .common import PLATE_MATERIALS, f, mm, pct

ASME = "ASME Sec. VIII Div. 1"

HEAD_FABRICATION = FabricationModel(
    labor_hours=f("2 + (ID + t)^2 / 500000", "h", "Pressing/spinning and trimming"),
    edge_preparation=True,
    surface_treatment=True,
)


def _formed_head_blank(developed_area):
    """Circular blank for a formed head with the given mean-surface area (mm²)."""
    return BlankDefinition(
        blank_type=BlankType.CIRCULAR,
        thickness_param="t",
        diameter=f(f"sqrt(4 / pi * ({developed_area})) * (1 + fa / 100)", "mm"),
        finished_area=f(developed_area, "mm2"),
        description="Circular blank: developed diameter plus forming allowance",
    )


def _head_parameters(t_default=12, sf_min=0, sf_default=50):
    return [
        mm("ID", "Inside diameter", 100, 10000, order=1),
        mm("t", "Thickness", 3, 200, default=t_default, order=2),
        mm("SF", "Straight flange", sf_min, 300, default=sf_default, required=False, allow_zero=True, order=3),
        pct("fa", "Forming allowance", 0, 30, default=9, order=4),
    ]


CYLINDRICAL_SHELL = ShapeDefinition(
    id="cylindrical_shell",
    name="Cylindrical Shell",
    category=GeometryCategory.SHELL_CYLINDRICAL,
    standard=ASME,
    description="Rolled plate shell with one longitudinal seam.",
    parameters=[
        mm("ID", "Inside diameter", 100, 10000, order=1),
        mm("t", "Thickness", 3, 200, order=2),
        mm("L", "Length", 100, 50000, order=3),
        mm("wa", "Weld allowance", 0, 200, default=25, required=False, allow_zero=True, order=4),
        mm("la", "Length allowance", 0, 500, default=100, required=False, allow_zero=True, order=5),
    ],
    formulas=ShapeFormulas(
        volume=f("pi * ((ID / 2 + t)^2 - (ID / 2)^2) * L", "mm3"),
        inner_surface_area=f("pi * ID * L", "mm2"),
        outer_surface_area=f("pi * (ID + 2 * t) * L", "mm2"),
        wetted_area=f("pi * ID * L", "mm2"),
        surface_area=f("pi * ID * L + pi * (ID + 2 * t) * L", "mm2"),
        edge_length=f("2 * (L + pi * (ID + t))", "mm"),
        weld_length=f("L", "mm", "Longitudinal seam"),
        custom={"mean_circumference": f("pi * (ID + t)", "mm")},
    ),
    dimensions={"inner_diameter": "ID", "thickness": "t", "length": "L"},
    blank=BlankDefinition(
        blank_type=BlankType.RECTANGULAR,
        thickness_param="t",
        length=f("L + la", "mm"),
        width=f("pi * (ID + t) + wa", "mm"),
        finished_area=f("pi * (ID + t) * L", "mm2"),
        description="Flat plate rolled on the mean diameter",
    ),
    fabrication=FabricationModel(
        labor_hours=f("1 + pi * (ID + t) * L / 5000000", "h", "Rolling and fit-up"),
        cutting=True,
        edge_preparation=True,
        welding=True,
        weld_thickness_param="t",
        surface_treatment=True,
    ),
    material_categories=PLATE_MATERIALS,
    tags=["shell", "vessel"],
)

CONICAL_SHELL = ShapeDefinition(
    id="conical_shell",
    name="Conical Shell (Reducer)",
    category=GeometryCategory.SHELL_CONICAL,
    standard=ASME,
    parameters=[
        mm("D1", "Large end inside diameter", 100, 10000, order=1),
        mm("D2", "Small end inside diameter", 50, 10000, order=2),
        mm("t", "Thickness", 3, 200, order=3),
        mm("H", "Axial height", 50, 10000, order=4),
    ],
    formulas=ShapeFormulas(
        volume=f("pi * (D1 / 2 + D2 / 2 + t) * sqrt(H^2 + ((D1 - D2) / 2)^2) * t", "mm3"),
        inner_surface_area=f("pi * (D1 + D2) / 2 * sqrt(H^2 + ((D1 - D2) / 2)^2)", "mm2"),
        outer_surface_area=f("pi * (D1 + D2 + 4 * t) / 2 * sqrt(H^2 + ((D1 - D2) / 2)^2)", "mm2"),
        surface_area=f("pi * (D1 + D2 + 2 * t) * sqrt(H^2 + ((D1 - D2) / 2)^2)", "mm2"),
        weld_length=f("sqrt(H^2 + ((D1 - D2) / 2)^2)", "mm", "Longitudinal seam along the slant"),
        custom={
            "slant_height": f("sqrt(H^2 + ((D1 - D2) / 2)^2)", "mm"),
            "half_apex_angle": f(
                "deg(atan(abs(D1 - D2) / (2 * H)))", "deg", max=30,
                warning="cone half-angle above 30 deg needs a knuckle",
            ),
        },
    ),
    fabrication=FabricationModel(welding=True, weld_thickness_param="t", surface_treatment=True),
    material_categories=PLATE_MATERIALS,
    tags=["shell", "vessel", "reducer"],
)

HEMISPHERICAL_HEAD = ShapeDefinition(
    id="hemispherical_head",
    name="Hemispherical Head",
    category=GeometryCategory.HEAD_HEMISPHERICAL,
    standard=ASME,
    parameters=_head_parameters(t_default=10, sf_default=0),
    formulas=ShapeFormulas(
        volume=f(
            "2 / 3 * pi * ((ID / 2 + t)^3 - (ID / 2)^3) + pi * ((ID / 2 + t)^2 - (ID / 2)^2) * SF",
            "mm3",
        ),
        inner_surface_area=f("pi / 2 * ID^2 + pi * ID * SF", "mm2"),
        outer_surface_area=f("pi / 2 * (ID + 2 * t)^2 + pi * (ID + 2 * t) * SF", "mm2"),
        wetted_area=f("pi / 2 * ID^2 + pi * ID * SF", "mm2"),
        surface_area=f("pi / 2 * (ID^2 + (ID + 2 * t)^2) + pi * (2 * ID + 2 * t) * SF", "mm2"),
        edge_length=f("pi * (ID + 2 * t)", "mm"),
        custom={"depth": f("ID / 2 + SF", "mm")},
    ),
    blank=_formed_head_blank("pi / 2 * (ID + t)^2 + pi * (ID + t) * SF"),
    fabrication=HEAD_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["head", "vessel"],
)

ELLIPSOIDAL_HEAD = ShapeDefinition(
    id="ellipsoidal_head",
    name="Ellipsoidal Head 2:1",
    category=GeometryCategory.HEAD_ELLIPSOIDAL,
    standard=ASME,
    parameters=_head_parameters(t_default=12, sf_default=50),
    formulas=ShapeFormulas(
        volume=f(
            "2 / 3 * pi * ((ID / 2 + t)^2 * (ID / 4 + t) - (ID / 2)^2 * ID / 4)"
            " + pi * ((ID / 2 + t)^2 - (ID / 2)^2) * SF",
            "mm3",
        ),
        inner_surface_area=f("1.09 * ID^2 + pi * ID * SF", "mm2"),
        outer_surface_area=f("1.09 * (ID + 2 * t)^2 + pi * (ID + 2 * t) * SF", "mm2"),
        wetted_area=f("1.09 * ID^2 + pi * ID * SF", "mm2"),
        surface_area=f("1.09 * (ID^2 + (ID + 2 * t)^2) + pi * (2 * ID + 2 * t) * SF", "mm2"),
        edge_length=f("pi * (ID + 2 * t)", "mm"),
        custom={"depth": f("ID / 4 + SF", "mm")},
    ),
    blank=_formed_head_blank("1.09 * (ID + t)^2 + pi * (ID + t) * SF"),
    fabrication=HEAD_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["head", "vessel"],
)

TORISPHERICAL_HEAD = ShapeDefinition(
    id="torispherical_head",
    name="Torispherical Head (F&D)",
    category=GeometryCategory.HEAD_TORISPHERICAL,
    standard=ASME,
    description="Flanged and dished head, crown radius = ID, knuckle radius = 6% ID.",
    parameters=_head_parameters(t_default=12, sf_min=25, sf_default=50),
    formulas=ShapeFormulas(
        volume=f("(0.9306 * (ID + t)^2 + pi * (ID + t) * SF) * t", "mm3"),
        inner_surface_area=f("0.9306 * ID^2 + pi * ID * SF", "mm2"),
        outer_surface_area=f("0.9306 * (ID + 2 * t)^2 + pi * (ID + 2 * t) * SF", "mm2"),
        wetted_area=f("0.9306 * ID^2 + pi * ID * SF", "mm2"),
        surface_area=f("0.9306 * (ID^2 + (ID + 2 * t)^2) + pi * (2 * ID + 2 * t) * SF", "mm2"),
        edge_length=f("pi * (ID + 2 * t)", "mm"),
        custom={
            "crown_radius": f("ID", "mm"),
            "knuckle_radius": f("0.06 * ID", "mm"),
            "dish_depth": f("0.1693 * ID", "mm"),
        },
    ),
    blank=_formed_head_blank("0.9306 * (ID + t)^2 + pi * (ID + t) * SF"),
    fabrication=HEAD_FABRICATION,
    material_categories=PLATE_MATERIALS,
    tags=["head", "vessel"],
)

FLAT_HEAD = ShapeDefinition(
    id="flat_head",
    name="Flat Head / Blind Cover",
    category=GeometryCategory.HEAD_FLAT,
    standard=ASME,
    parameters=[
        mm("D", "Diameter", 50, 10000, order=1),
        mm("t", "Thickness", 3, 500, order=2),
        mm("a", "Cutting allowance per side", 0, 100, default=10, required=False, allow_zero=True, order=3),
    ],
    formulas=ShapeFormulas(
        volume=f("pi / 4 * D^2 * t", "mm3"),
        wetted_area=f("pi / 4 * D^2", "mm2"),
        surface_area=f("pi / 2 * D^2 + pi * D * t", "mm2"),
        edge_length=f("pi * D", "mm"),
    ),
    blank=BlankDefinition(
        blank_type=BlankType.RECTANGULAR,
        thickness_param="t",
        length=f("D + 2 * a", "mm"),
        width=f("D + 2 * a", "mm"),
        finished_area=f("pi / 4 * D^2", "mm2"),
    ),
    fabrication=FabricationModel(cutting=True, edge_preparation=True, surface_treatment=True),
    material_categories=PLATE_MATERIALS,
    tags=["head", "vessel"],
)

SHAPES = [CYLINDRICAL_SHELL, CONICAL_SHELL, HEMISPHERICAL_HEAD, ELLIPSOIDAL_HEAD, TORISPHERICAL_HEAD, FLAT_HEAD]
