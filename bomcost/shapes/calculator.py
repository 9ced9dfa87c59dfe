"""
Shape instance calculator.

Input: a published ShapeDefinition, parameter values, a MaterialRef fetched
for this calculation, quantity and wastage %.
Output: a frozen ShapeInstanceResult. A recalculation always produces a new
result object; nothing is patched field by field.

Steps:
1. Bind and check parameters (missing, bounds, zero thickness/count)
2. Volume from formula, or from the category's primitive
3. Weight = volume x density unless a weight formula overrides it
4. Surface areas that are defined (absent stays absent, never 0)
5. Blank dimensions, scrap % and scrap weight
6. Material cost on quantity x (1 + wastage/100)
7. Fabrication cost from the caller's rates, if the shape has a model
"""

import logging
import math
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import (
    DomainError,
    IncompatibleMaterialError,
    MissingParameterError,
    ParameterError,
    ParameterRangeError,
    UnitError,
)
from ..formulas import FormulaDefinition, evaluate_with_warnings
from ..materials import MaterialRef
from ..rates import CostRates
from ..units import Money, Quantity, as_quantity, dimension_of, q
from .definitions import AREA_SLOTS, BlankType, ParameterKind, ShapeDefinition
from .geometry import (
    MM2_PER_M2,
    MM3_PER_M3,
    blank_area,
    can_derive_volume,
    derive_volume,
    weld_thickness_multiplier,
)

logger = logging.getLogger(__name__)


class BlankResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    blank_type: BlankType
    thickness: Quantity
    length: Optional[Quantity] = None
    width: Optional[Quantity] = None
    diameter: Optional[Quantity] = None
    area: Quantity
    finished_area: Quantity
    scrap_pct: float
    scrap_weight: Quantity
    blank_weight: Quantity


class FabricationBreakdown(BaseModel):
    """Per-piece fabrication cost by component."""

    model_config = ConfigDict(frozen=True)

    labor: float = 0.0
    machining: float = 0.0
    cutting: float = 0.0
    edge_preparation: float = 0.0
    welding: float = 0.0
    surface_treatment: float = 0.0
    base: float = 0.0
    per_kg: float = 0.0

    @property
    def per_piece(self) -> float:
        return (self.labor + self.machining + self.cutting + self.edge_preparation
                + self.welding + self.surface_treatment + self.base + self.per_kg)


class ShapeInstanceResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    shape_id: str
    shape_version: int
    material_id: str
    density: Quantity
    price_per_unit: Money
    price_unit: str
    parameters: Dict[str, float]

    quantity: float
    wastage_pct: float
    total_quantity: float

    volume: Quantity
    weight: Quantity                       # one piece
    total_weight: Quantity                 # weight x quantity
    procurement_weight: Quantity           # weight x total_quantity
    surface_areas: Dict[str, Quantity] = {}
    edge_length: Optional[Quantity] = None
    weld_length: Optional[Quantity] = None
    custom: Dict[str, Quantity] = {}
    blank: Optional[BlankResult] = None
    scrap_pct: Optional[float] = None
    scrap_weight: Optional[Quantity] = None

    material_cost: float
    fabrication: Optional[FabricationBreakdown] = None
    fabrication_cost: float = 0.0
    scrap_recovery_value: Optional[float] = None
    total_cost: float
    currency: str
    warnings: List[str] = []


class ShapeCalculator:
    """Pure calculator; holds no state between calls."""

    def calculate(self, shape: ShapeDefinition, param_values: Mapping[str, object],
                  material: MaterialRef, quantity: float, wastage_pct: float = 0.0,
                  rates: Optional[CostRates] = None, currency: Optional[str] = None) -> ShapeInstanceResult:
        warnings: List[str] = []

        if quantity is None or not quantity > 0:
            raise ParameterRangeError(
                f"{shape.id}: quantity must be greater than zero, got {quantity}",
                {"shape_id": shape.id, "parameter": "quantity"},
            )
        if wastage_pct is None or wastage_pct < 0:
            raise ParameterRangeError(
                f"{shape.id}: wastage % cannot be negative, got {wastage_pct}",
                {"shape_id": shape.id, "parameter": "wastage_pct"},
            )
        self._check_material(shape, material)

        env = self.resolve_parameters(shape, param_values)
        density = material.density.magnitude("kg/m3")
        if not density > 0:
            raise ParameterError(f"Material {material.id} has non-positive density", {"material_id": material.id})
        env["density"] = density

        # --- volume and weight ---
        formulas = shape.formulas
        volume_mm3 = None
        if formulas.volume is not None:
            volume_mm3 = self._eval(formulas.volume, env, warnings).magnitude("mm3")
        elif can_derive_volume(shape.category, shape.dimensions):
            by_role = {role: env[param] for role, param in shape.dimensions.items()}
            volume_mm3 = derive_volume(shape.category, by_role)
        if volume_mm3 is not None:
            self._positive(shape, "volume", volume_mm3)
            env["volume"] = volume_mm3

        if formulas.weight is not None:
            weight_kg = self._eval(formulas.weight, env, warnings).magnitude("kg")
        else:
            weight_kg = volume_mm3 / MM3_PER_M3 * density
        self._positive(shape, "weight", weight_kg)

        if volume_mm3 is None:
            volume_mm3 = weight_kg / density * MM3_PER_M3
            env["volume"] = volume_mm3

        # --- areas and lengths ---
        surface_areas = {}
        for slot in AREA_SLOTS:
            formula = getattr(formulas, slot)
            if formula is not None:
                surface_areas[slot] = self._eval(formula, env, warnings).to("m2")

        edge_length = self._optional_length(formulas.edge_length, env, warnings)
        weld_length = self._optional_length(formulas.weld_length, env, warnings)
        custom = {name: self._eval(f, env, warnings) for name, f in formulas.custom.items()}

        # --- blank and scrap ---
        blank = None
        scrap_pct = None
        scrap_weight_kg = None
        if shape.blank is not None:
            blank = self._blank(shape, env, density, warnings)
            scrap_pct = blank.scrap_pct
            scrap_weight_kg = blank.scrap_weight.value
        elif formulas.scrap_percentage is not None:
            scrap_pct = self._eval(formulas.scrap_percentage, env, warnings).magnitude("%")
            if not 0 <= scrap_pct < 100:
                raise DomainError(
                    f"{shape.id}: scrap percentage {scrap_pct:g} outside [0, 100)",
                    {"shape_id": shape.id},
                )
            scrap_weight_kg = weight_kg * scrap_pct / (100.0 - scrap_pct)

        # --- material cost ---
        total_quantity = quantity * (1 + wastage_pct / 100.0)
        price = material.price_per_unit.require_currency(currency) if currency else material.price_per_unit.amount
        cost_currency = currency or material.price_per_unit.currency
        material_cost = self._material_cost(material, weight_kg, total_quantity, price)

        # --- fabrication ---
        fabrication = None
        fabrication_cost = 0.0
        if shape.fabrication is not None and rates is not None:
            fabrication = self._fabrication(shape, env, rates, weight_kg, edge_length,
                                            weld_length, surface_areas, warnings)
            fabrication_cost = fabrication.per_piece * quantity

        scrap_recovery_value = None
        if rates is not None and rates.scrap_recovery_pct is not None and scrap_weight_kg:
            if dimension_of(material.unit) == "mass":
                scrap_value = q(scrap_weight_kg, "kg").magnitude(material.unit) * total_quantity * price
                scrap_recovery_value = scrap_value * rates.scrap_recovery_pct / 100.0

        params = {name: value for name, value in env.items() if name not in ("density", "volume")}
        logger.debug("%s v%d with %s: %.3f kg x %g, cost %.2f %s",
                     shape.id, shape.version, material.id, weight_kg, quantity,
                     material_cost + fabrication_cost, cost_currency)

        return ShapeInstanceResult(
            shape_id=shape.id,
            shape_version=shape.version,
            material_id=material.id,
            density=material.density,
            price_per_unit=material.price_per_unit,
            price_unit=material.unit,
            parameters=params,
            quantity=quantity,
            wastage_pct=wastage_pct,
            total_quantity=total_quantity,
            volume=q(volume_mm3 / MM3_PER_M3, "m3"),
            weight=q(weight_kg, "kg"),
            total_weight=q(weight_kg * quantity, "kg"),
            procurement_weight=q(weight_kg * total_quantity, "kg"),
            surface_areas=surface_areas,
            edge_length=edge_length,
            weld_length=weld_length,
            custom=custom,
            blank=blank,
            scrap_pct=scrap_pct,
            scrap_weight=q(scrap_weight_kg, "kg") if scrap_weight_kg is not None else None,
            material_cost=material_cost,
            fabrication=fabrication,
            fabrication_cost=fabrication_cost,
            scrap_recovery_value=scrap_recovery_value,
            total_cost=material_cost + fabrication_cost,
            currency=cost_currency,
            warnings=warnings,
        )

    # --- step 1: parameters ---

    def resolve_parameters(self, shape: ShapeDefinition, param_values: Mapping[str, object]) -> Dict[str, float]:
        """Bind values in each parameter's declared unit. Raises ParameterError."""
        unknown = sorted(set(param_values) - set(shape.parameter_names))
        if unknown:
            raise ParameterError(
                f"{shape.id}: unknown parameter(s) {', '.join(unknown)}",
                {"shape_id": shape.id, "parameters": unknown},
            )

        env = {}
        for spec in sorted(shape.parameters, key=lambda p: p.order):
            raw = param_values.get(spec.name)
            if raw is None:
                raw = spec.default
            if raw is None:
                if spec.required:
                    raise MissingParameterError(
                        f"{shape.id}: required parameter '{spec.name}' has no value",
                        {"shape_id": shape.id, "parameter": spec.name},
                    )
                continue

            if spec.kind == ParameterKind.CHOICE:
                env[spec.name] = self._choice_value(shape, spec, raw)
                continue
            if spec.kind == ParameterKind.BOOLEAN:
                env[spec.name] = 1.0 if _truthy(raw) else 0.0
                continue

            try:
                value = as_quantity(raw, spec.unit).magnitude(spec.unit)
            except UnitError as e:
                e.detail.update({"shape_id": shape.id, "parameter": spec.name})
                raise
            except (TypeError, ValueError):
                raise ParameterError(
                    f"{shape.id}: parameter '{spec.name}' is not a number: {raw!r}",
                    {"shape_id": shape.id, "parameter": spec.name},
                )
            self._check_bounds(shape, spec, value)
            env[spec.name] = value
        return env

    def _check_bounds(self, shape, spec, value: float):
        detail = {"shape_id": shape.id, "parameter": spec.name, "value": value}
        if not math.isfinite(value):
            raise ParameterRangeError(f"{shape.id}: '{spec.name}' must be finite", detail)
        if value == 0 and not spec.allow_zero:
            raise ParameterRangeError(f"{shape.id}: '{spec.name}' cannot be zero", detail)
        if spec.min_value is not None and value < spec.min_value:
            raise ParameterRangeError(
                f"{shape.id}: '{spec.name}' = {value:g} {spec.unit} is below minimum {spec.min_value:g}", detail
            )
        if spec.max_value is not None and value > spec.max_value:
            raise ParameterRangeError(
                f"{shape.id}: '{spec.name}' = {value:g} {spec.unit} is above maximum {spec.max_value:g}", detail
            )

    def _choice_value(self, shape, spec, raw) -> float:
        for index, option in enumerate(spec.options):
            if option.value == str(raw):
                return option.numeric_value if option.numeric_value is not None else float(index)
        raise ParameterRangeError(
            f"{shape.id}: '{raw}' is not an option of '{spec.name}' "
            f"({', '.join(o.value for o in spec.options)})",
            {"shape_id": shape.id, "parameter": spec.name, "value": raw},
        )

    def _check_material(self, shape: ShapeDefinition, material: MaterialRef):
        if shape.material_categories and material.category not in shape.material_categories:
            raise IncompatibleMaterialError(
                f"{shape.id}: material {material.id} ({material.category}) is not one of "
                f"{shape.material_categories}",
                {"shape_id": shape.id, "material_id": material.id},
            )

    # --- evaluation helpers ---

    def _eval(self, formula: FormulaDefinition, env: dict, warnings: List[str]) -> Quantity:
        value, found = evaluate_with_warnings(formula, env)
        warnings.extend(found)
        return value

    def _optional_length(self, formula, env, warnings) -> Optional[Quantity]:
        if formula is None:
            return None
        return self._eval(formula, env, warnings).to("m")

    def _positive(self, shape, what: str, value: float):
        if not value > 0:
            raise DomainError(
                f"{shape.id}: computed {what} {value:g} is not positive; check the dimensions",
                {"shape_id": shape.id, "quantity": what},
            )

    # --- step 5: blank ---

    def _blank(self, shape: ShapeDefinition, env: dict, density: float, warnings) -> BlankResult:
        spec = shape.blank
        thickness_mm = env[spec.thickness_param]
        length = width = diameter = None
        if spec.blank_type == BlankType.RECTANGULAR:
            length = self._eval(spec.length, env, warnings).magnitude("mm")
            width = self._eval(spec.width, env, warnings).magnitude("mm")
        else:
            diameter = self._eval(spec.diameter, env, warnings).magnitude("mm")

        area_mm2 = blank_area(spec.blank_type, length, width, diameter)
        finished_mm2 = self._eval(spec.finished_area, env, warnings).magnitude("mm2")
        self._positive(shape, "blank area", area_mm2)
        if finished_mm2 > area_mm2:
            raise DomainError(
                f"{shape.id}: finished area exceeds blank area",
                {"shape_id": shape.id, "blank_mm2": area_mm2, "finished_mm2": finished_mm2},
            )

        scrap_mm2 = area_mm2 - finished_mm2
        return BlankResult(
            blank_type=spec.blank_type,
            thickness=q(thickness_mm, "mm"),
            length=q(length, "mm") if length is not None else None,
            width=q(width, "mm") if width is not None else None,
            diameter=q(diameter, "mm") if diameter is not None else None,
            area=q(area_mm2 / MM2_PER_M2, "m2"),
            finished_area=q(finished_mm2 / MM2_PER_M2, "m2"),
            scrap_pct=scrap_mm2 / area_mm2 * 100.0,
            scrap_weight=q(scrap_mm2 * thickness_mm / MM3_PER_M3 * density, "kg"),
            blank_weight=q(area_mm2 * thickness_mm / MM3_PER_M3 * density, "kg"),
        )

    # --- step 6/7: cost ---

    def _material_cost(self, material: MaterialRef, weight_kg: float, total_quantity: float, price: float) -> float:
        dimension = dimension_of(material.unit)
        if dimension == "mass":
            return q(weight_kg, "kg").magnitude(material.unit) * total_quantity * price
        if dimension == "count":
            return total_quantity * price
        raise UnitError(
            f"Material {material.id} is priced per '{material.unit}', which shapes cannot cost",
            {"material_id": material.id, "unit": material.unit},
        )

    def _fabrication(self, shape, env, rates: CostRates, weight_kg, edge_length,
                     weld_length, surface_areas, warnings) -> FabricationBreakdown:
        fab = shape.fabrication
        item = shape.id
        costs = {"base": fab.base_cost, "per_kg": fab.cost_per_kg * weight_kg}
        if fab.labor_hours is not None:
            hours = self._eval(fab.labor_hours, env, warnings).magnitude("h")
            costs["labor"] = hours * rates.require("labor_rate_per_hour", item)
        if fab.machining_hours is not None:
            hours = self._eval(fab.machining_hours, env, warnings).magnitude("h")
            costs["machining"] = hours * rates.require("machining_rate_per_hour", item)
        if fab.cutting:
            costs["cutting"] = edge_length.value * rates.require("cutting_rate_per_meter", item)
        if fab.edge_preparation:
            costs["edge_preparation"] = edge_length.value * rates.require("edge_preparation_rate_per_meter", item)
        if fab.welding:
            multiplier = 1.0
            if fab.weld_thickness_param:
                multiplier = weld_thickness_multiplier(env[fab.weld_thickness_param])
            costs["welding"] = weld_length.value * rates.require("welding_rate_per_meter", item) * multiplier
        if fab.surface_treatment:
            area = surface_areas["surface_area"].value
            costs["surface_treatment"] = area * rates.require("surface_treatment_rate_per_sqm", item)
        return FabricationBreakdown(**costs)


def _truthy(raw) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return bool(raw)


def calculate(shape: ShapeDefinition, param_values: Mapping[str, object], material: MaterialRef,
              quantity: float, wastage_pct: float = 0.0, rates: Optional[CostRates] = None,
              currency: Optional[str] = None) -> ShapeInstanceResult:
    return ShapeCalculator().calculate(shape, param_values, material, quantity, wastage_pct, rates, currency)
