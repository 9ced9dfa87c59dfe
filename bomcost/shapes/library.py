"""
Shape library — versioned registry of published ShapeDefinitions.

Publishing runs every definition-time check: formula syntax, variable
references, declared units against each formula slot, blank and fabrication
wiring. A published (id, version) pair is immutable; revise() stores the
edited definition under the next version number so historical BOMs keep
recalculating against the shape they were built with.
"""

import logging
import re
from typing import Dict, List, Optional

from ..errors import ShapeDefinitionError, ShapeNotFoundError
from ..formulas import validate
from ..units import dimension_of, is_known_unit
from .definitions import (
    SLOT_DIMENSIONS,
    BlankType,
    GeometryCategory,
    ParameterKind,
    ShapeDefinition,
)
from .geometry import can_derive_volume, VOLUME_PRIMITIVES

logger = logging.getLogger(__name__)

RESERVED_NAMES = {"density", "volume"}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_shape(shape: ShapeDefinition) -> None:
    """Raise FormulaSyntaxError, UnknownVariableError or ShapeDefinitionError."""
    names = shape.parameter_names
    _check_parameters(shape)

    for slot, dimension in SLOT_DIMENSIONS.items():
        formula = getattr(shape.formulas, slot)
        if formula is None:
            continue
        reserved = {"density"} if slot == "volume" else RESERVED_NAMES
        validate(formula, names, reserved)
        _check_unit(shape, slot, formula.unit, dimension)

    for name, formula in shape.formulas.custom.items():
        validate(formula, names, RESERVED_NAMES)
        if not is_known_unit(formula.unit):
            raise ShapeDefinitionError(f"{shape.id}: custom formula '{name}' has unknown unit '{formula.unit}'")

    for role, param in shape.dimensions.items():
        if param not in names:
            raise ShapeDefinitionError(
                f"{shape.id}: dimension role '{role}' maps to unknown parameter '{param}'",
                {"shape_id": shape.id, "role": role},
            )

    if shape.formulas.volume is None and shape.formulas.weight is None:
        if not can_derive_volume(shape.category, shape.dimensions):
            required = VOLUME_PRIMITIVES.get(shape.category, ((),))[0]
            raise ShapeDefinitionError(
                f"{shape.id}: no volume or weight formula, and category "
                f"'{shape.category.value}' cannot derive one (dimension roles needed: {list(required)})",
                {"shape_id": shape.id},
            )

    if shape.blank is not None:
        _check_blank(shape)
    if shape.fabrication is not None:
        _check_fabrication(shape)


def _check_parameters(shape: ShapeDefinition):
    seen = set()
    for spec in shape.parameters:
        if not _IDENTIFIER.match(spec.name):
            raise ShapeDefinitionError(f"{shape.id}: invalid parameter name '{spec.name}'")
        if spec.name in seen:
            raise ShapeDefinitionError(f"{shape.id}: duplicate parameter '{spec.name}'")
        if spec.name in RESERVED_NAMES:
            raise ShapeDefinitionError(f"{shape.id}: parameter name '{spec.name}' is reserved")
        seen.add(spec.name)
        if not is_known_unit(spec.unit):
            raise ShapeDefinitionError(f"{shape.id}: parameter '{spec.name}' has unknown unit '{spec.unit}'")
        if spec.kind == ParameterKind.CHOICE and not spec.options:
            raise ShapeDefinitionError(f"{shape.id}: choice parameter '{spec.name}' has no options")
        if spec.min_value is not None and spec.max_value is not None and spec.min_value > spec.max_value:
            raise ShapeDefinitionError(f"{shape.id}: parameter '{spec.name}' has min > max")
        if spec.kind == ParameterKind.NUMBER and isinstance(spec.default, (int, float)):
            if spec.min_value is not None and spec.default < spec.min_value:
                raise ShapeDefinitionError(f"{shape.id}: default of '{spec.name}' is below its minimum")
            if spec.max_value is not None and spec.default > spec.max_value:
                raise ShapeDefinitionError(f"{shape.id}: default of '{spec.name}' is above its maximum")


def _check_unit(shape: ShapeDefinition, slot: str, unit: str, dimension: str):
    if not is_known_unit(unit) or dimension_of(unit) != dimension:
        raise ShapeDefinitionError(
            f"{shape.id}: formula '{slot}' declares unit '{unit}', expected a {dimension} unit",
            {"shape_id": shape.id, "slot": slot, "unit": unit},
        )


def _check_blank(shape: ShapeDefinition):
    blank = shape.blank
    names = shape.parameter_names
    thickness = shape.parameter(blank.thickness_param)
    if thickness is None or thickness.kind != ParameterKind.NUMBER:
        raise ShapeDefinitionError(
            f"{shape.id}: blank thickness parameter '{blank.thickness_param}' is not a numeric parameter"
        )
    if dimension_of(thickness.unit) != "length":
        raise ShapeDefinitionError(f"{shape.id}: blank thickness parameter must be a length")

    if blank.blank_type == BlankType.RECTANGULAR:
        needed = {"length": blank.length, "width": blank.width}
    else:
        needed = {"diameter": blank.diameter}
    for role, formula in needed.items():
        if formula is None:
            raise ShapeDefinitionError(
                f"{shape.id}: {blank.blank_type.value} blank needs a '{role}' formula"
            )
        validate(formula, names, RESERVED_NAMES)
        _check_unit(shape, f"blank.{role}", formula.unit, "length")

    validate(blank.finished_area, names, RESERVED_NAMES)
    _check_unit(shape, "blank.finished_area", blank.finished_area.unit, "area")


def _check_fabrication(shape: ShapeDefinition):
    fab = shape.fabrication
    names = shape.parameter_names
    for slot in ("labor_hours", "machining_hours"):
        formula = getattr(fab, slot)
        if formula is not None:
            validate(formula, names, RESERVED_NAMES)
            _check_unit(shape, f"fabrication.{slot}", formula.unit, "time")
    if fab.weld_thickness_param and fab.weld_thickness_param not in names:
        raise ShapeDefinitionError(f"{shape.id}: unknown weld thickness parameter '{fab.weld_thickness_param}'")
    if fab.welding and shape.formulas.weld_length is None:
        raise ShapeDefinitionError(f"{shape.id}: welding cost needs a weld_length formula")
    if (fab.cutting or fab.edge_preparation) and shape.formulas.edge_length is None:
        raise ShapeDefinitionError(f"{shape.id}: cutting/edge preparation cost needs an edge_length formula")
    if fab.surface_treatment and shape.formulas.surface_area is None:
        raise ShapeDefinitionError(f"{shape.id}: surface treatment cost needs a surface_area formula")


class ShapeLibrary:
    """In-memory versioned catalog. Thread-compatible, not thread-safe."""

    def __init__(self, shapes=None):
        self._versions: Dict[str, Dict[int, ShapeDefinition]] = {}
        for shape in shapes or []:
            self.publish(shape)

    def publish(self, shape: ShapeDefinition) -> ShapeDefinition:
        validate_shape(shape)
        versions = self._versions.setdefault(shape.id, {})
        existing = versions.get(shape.version)
        if existing is not None:
            if existing == shape:
                return existing
            raise ShapeDefinitionError(
                f"Shape {shape.id} v{shape.version} is already published; revise it to create a new version",
                {"shape_id": shape.id, "version": shape.version},
            )
        versions[shape.version] = shape
        logger.info("Published shape %s v%d", shape.id, shape.version)
        return shape

    def revise(self, shape_id: str, **changes) -> ShapeDefinition:
        """Publish an edited copy of the latest version as version + 1."""
        latest = self.get(shape_id)
        changes["version"] = latest.version + 1
        revised = ShapeDefinition.model_validate({**latest.model_dump(), **changes})
        return self.publish(revised)

    def get(self, shape_id: str, version: Optional[int] = None) -> ShapeDefinition:
        versions = self._versions.get(shape_id)
        if not versions:
            raise ShapeNotFoundError(
                f"No shape registered with id: {shape_id}. Available: {self.list_ids()}",
                {"shape_id": shape_id},
            )
        if version is None:
            return versions[max(versions)]
        if version not in versions:
            raise ShapeNotFoundError(
                f"Shape {shape_id} has no version {version}",
                {"shape_id": shape_id, "version": version},
            )
        return versions[version]

    def has(self, shape_id: str) -> bool:
        return shape_id in self._versions

    def versions(self, shape_id: str) -> List[int]:
        return sorted(self._versions.get(shape_id, {}))

    def list_ids(self) -> List[str]:
        return sorted(self._versions)

    def list_shapes(self, category: Optional[GeometryCategory] = None,
                    material_category: Optional[str] = None) -> List[ShapeDefinition]:
        """Latest version of every shape, optionally filtered."""
        shapes = [self.get(shape_id) for shape_id in self.list_ids()]
        if category is not None:
            shapes = [s for s in shapes if s.category == category]
        if material_category is not None:
            shapes = [
                s for s in shapes
                if not s.material_categories or material_category in s.material_categories
            ]
        return shapes


def default_library() -> ShapeLibrary:
    """A fresh library holding the built-in catalog."""
    from .catalog import BUILTIN_SHAPES
    return ShapeLibrary(BUILTIN_SHAPES)
