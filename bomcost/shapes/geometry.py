# Geometry helpers shared by the shape calculator and the catalog.
# All inputs in mm; volumes returned in mm³, areas in mm².

import math

from .definitions import BlankType, GeometryCategory

MM3_PER_M3 = 1e9
MM2_PER_M2 = 1e6

# Welding thicker plate costs more: 1 + (t - 10) / 50 above 10 mm
WELD_THICKNESS_THRESHOLD_MM = 10.0
WELD_THICKNESS_DIVISOR_MM = 50.0


def _plate_rectangular(d: dict) -> float:
    return d["length"] * d["width"] * d["thickness"]


def _plate_circular(d: dict) -> float:
    return math.pi / 4.0 * d["diameter"] ** 2 * d["thickness"]


def _tube(d: dict) -> float:
    od = d["outer_diameter"]
    bore = od - 2 * d["thickness"]
    return math.pi / 4.0 * (od ** 2 - bore ** 2) * d["length"]


def _shell_cylindrical(d: dict) -> float:
    r_in = d["inner_diameter"] / 2.0
    r_out = r_in + d["thickness"]
    return math.pi * (r_out ** 2 - r_in ** 2) * d["length"]


# Geometry category -> (dimension roles, volume function in mm³).
# Used when a shape has no volume formula but declares a dimensions role map.
VOLUME_PRIMITIVES = {
    GeometryCategory.PLATE_RECTANGULAR: (("length", "width", "thickness"), _plate_rectangular),
    GeometryCategory.PLATE_CIRCULAR: (("diameter", "thickness"), _plate_circular),
    GeometryCategory.TUBE: (("outer_diameter", "thickness", "length"), _tube),
    GeometryCategory.SHELL_CYLINDRICAL: (("inner_diameter", "thickness", "length"), _shell_cylindrical),
}


def can_derive_volume(category: GeometryCategory, dimensions: dict) -> bool:
    if category not in VOLUME_PRIMITIVES:
        return False
    roles, _ = VOLUME_PRIMITIVES[category]
    return all(role in dimensions for role in roles)


def derive_volume(category: GeometryCategory, values_by_role: dict) -> float:
    _, func = VOLUME_PRIMITIVES[category]
    return func(values_by_role)


def blank_area(blank_type: BlankType, length=None, width=None, diameter=None) -> float:
    """Area (mm²) of a rectangular or circular blank."""
    if blank_type == BlankType.CIRCULAR:
        return math.pi / 4.0 * diameter ** 2
    return length * width


def weld_thickness_multiplier(thickness_mm: float) -> float:
    if thickness_mm <= WELD_THICKNESS_THRESHOLD_MM:
        return 1.0
    return 1.0 + (thickness_mm - WELD_THICKNESS_THRESHOLD_MM) / WELD_THICKNESS_DIVISOR_MM
