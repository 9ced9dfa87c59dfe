"""
Template Instantiation Engine — turns a stored generic BOM structure plus a
parameter map into a concrete BOMTree.

Instantiation is all-or-nothing:
1. Static checks on the template (expressions parse, names resolve, shapes exist)
2. Parameter checks (required, bounds, choices)
3. Derived values, in declaration order
4. Every item expression resolved into a staging list
5. Only then is the tree built

Any failure before step 5 raises a TemplateError subtype and no tree exists.
Leaves come back uncalculated; BOMService.instantiate() prices them.

Templates live as JSON files in DATA_DIR, one per template id.
"""

import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..bom.tree import (
    AssemblyFabrication,
    BOMItem,
    BOMTree,
    BoughtOutSpec,
    ItemKind,
    ShapeInstance,
    new_id,
)
from ..errors import (
    BomCostError,
    FormulaSyntaxError,
    MissingTemplateParameterError,
    NotFoundError,
    TemplateDefinitionError,
    TemplateNotFoundError,
    TemplateParameterRangeError,
    UnitError,
    UnknownVariableError,
    UnresolvableTemplateFormulaError,
)
from ..formulas import FormulaDefinition, evaluate, validate
from ..shapes import ParameterKind, ParameterSpec, ShapeLibrary
from ..units import as_quantity

logger = logging.getLogger(__name__)

# Directory where template JSON files live
DATA_DIR = Path(__file__).parent / "data"

ValueExpr = Union[float, str]


class TemplateItem(BaseModel):
    """Placeholder for one BOM item; numbers are literal, strings are formulas."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ItemKind = ItemKind.PART
    quantity: ValueExpr = 1
    repeat: Optional[ValueExpr] = None
    include_if: Optional[str] = None
    wastage_pct: ValueExpr = 0
    shape_id: Optional[str] = None
    shape_version: Optional[int] = None
    parameters: Dict[str, ValueExpr] = {}
    material_id: Optional[str] = None
    material_param: Optional[str] = None
    bought_out: Optional[BoughtOutSpec] = None
    fabrication: Dict[str, ValueExpr] = {}
    notes: Optional[str] = None
    children: List["TemplateItem"] = []


class TemplateDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    version: int = 1
    name: str
    description: Optional[str] = None
    currency: str = "INR"
    parameters: List[ParameterSpec] = []
    derived: Dict[str, FormulaDefinition] = {}
    root: TemplateItem


class TemplateEngine:
    """Instantiates templates against a shape library."""

    def __init__(self, library: Optional[ShapeLibrary] = None):
        self.library = library

    # --- static validation ---

    def validate_template(self, template: TemplateDefinition) -> None:
        numeric = [p.name for p in template.parameters if p.kind != ParameterKind.CHOICE]
        choices = {p.name for p in template.parameters if p.kind == ParameterKind.CHOICE}

        names = list(numeric)
        for name, formula in template.derived.items():
            self._check_expression(formula, names, f"derived value '{name}'")
            names.append(name)

        for item in _iter_items(template.root):
            where = f"item '{item.name}'"
            for field in ("quantity", "repeat", "wastage_pct"):
                value = getattr(item, field)
                if isinstance(value, str):
                    self._check_expression(value, names, f"{field} of {where}")
            if item.include_if is not None:
                self._check_expression(item.include_if, names, f"include_if of {where}")
            for param, value in list(item.parameters.items()) + list(item.fabrication.items()):
                if isinstance(value, str):
                    self._check_expression(value, names, f"'{param}' of {where}")

            unknown_fab = set(item.fabrication) - set(AssemblyFabrication.model_fields)
            if unknown_fab:
                raise TemplateDefinitionError(f"{where}: unknown fabrication field(s) {sorted(unknown_fab)}")
            if item.material_param is not None and item.material_param not in choices:
                raise TemplateDefinitionError(
                    f"{where}: material_param '{item.material_param}' is not a choice parameter"
                )
            if item.kind == ItemKind.ASSEMBLY and (item.shape_id or item.bought_out):
                raise TemplateDefinitionError(f"{where}: assemblies cannot carry a shape or bought-out spec")
            if item.kind == ItemKind.ASSEMBLY and item.quantity != 1:
                raise TemplateDefinitionError(f"{where}: assemblies carry quantity 1; use repeat for copies")
            if item.children and item.kind != ItemKind.ASSEMBLY:
                raise TemplateDefinitionError(f"{where}: only assemblies can have children")
            if item.shape_id is not None and self.library is not None:
                self._check_shape(item, where)

    def _check_expression(self, expression, names, where: str):
        try:
            validate(expression, names)
        except UnknownVariableError as e:
            raise UnresolvableTemplateFormulaError(
                f"{where} references undefined name(s): {', '.join(e.names)}",
                {"where": where, "names": e.names},
            )
        except (FormulaSyntaxError, UnitError) as e:
            raise TemplateDefinitionError(f"{where}: {e.message}", e.detail)

    def _check_shape(self, item: TemplateItem, where: str):
        try:
            shape = self.library.get(item.shape_id, item.shape_version)
        except NotFoundError as e:
            raise TemplateDefinitionError(f"{where}: {e.message}", e.detail)
        unknown = set(item.parameters) - set(shape.parameter_names)
        if unknown:
            raise TemplateDefinitionError(
                f"{where}: shape {shape.id} has no parameter(s) {sorted(unknown)}",
                {"shape_id": shape.id},
            )

    # --- instantiation ---

    def instantiate(self, template: TemplateDefinition, parameter_map: Mapping[str, object]) -> BOMTree:
        self.validate_template(template)
        values, choices = self.resolve_parameters(template, parameter_map)
        env = self._derive(template, values)

        staged = self._stage(template.root, env, choices)
        if len(staged) != 1:
            raise TemplateDefinitionError("Template root must resolve to exactly one item")

        tree = self._build(template, staged[0], {**values, **choices})
        logger.info(
            "Instantiated template %s v%d into BOM %s with %d items",
            template.id, template.version, tree.id, len(tree.items),
        )
        return tree

    def resolve_parameters(self, template: TemplateDefinition, parameter_map: Mapping[str, object]):
        """Numeric values (in each parameter's unit) and choice values."""
        known = {p.name for p in template.parameters}
        unknown = sorted(set(parameter_map) - known)
        if unknown:
            raise TemplateParameterRangeError(
                f"Template {template.id} has no parameter(s) {', '.join(unknown)}",
                {"parameters": unknown},
            )

        values: Dict[str, float] = {}
        choices: Dict[str, str] = {}
        for spec in template.parameters:
            raw = parameter_map.get(spec.name)
            if raw is None:
                raw = spec.default
            if raw is None:
                if spec.required:
                    raise MissingTemplateParameterError(
                        f"Template {template.id}: required parameter '{spec.name}' was not supplied",
                        {"parameter": spec.name},
                    )
                continue

            if spec.kind == ParameterKind.CHOICE:
                allowed = [o.value for o in spec.options]
                if str(raw) not in allowed:
                    raise TemplateParameterRangeError(
                        f"'{raw}' is not an option of '{spec.name}' ({', '.join(allowed)})",
                        {"parameter": spec.name, "value": raw},
                    )
                choices[spec.name] = str(raw)
                continue
            if spec.kind == ParameterKind.BOOLEAN:
                values[spec.name] = 1.0 if raw in (True, 1, "true", "yes") else 0.0
                continue

            try:
                value = as_quantity(raw, spec.unit).magnitude(spec.unit)
            except UnitError as e:
                raise TemplateParameterRangeError(f"'{spec.name}': {e.message}", {"parameter": spec.name})
            except (TypeError, ValueError):
                raise TemplateParameterRangeError(
                    f"'{spec.name}' is not a number: {raw!r}", {"parameter": spec.name}
                )
            low, high = spec.min_value, spec.max_value
            if (low is not None and value < low) or (high is not None and value > high) \
                    or (value == 0 and not spec.allow_zero):
                raise TemplateParameterRangeError(
                    f"'{spec.name}' = {value:g} {spec.unit} is outside [{low}, {high}]",
                    {"parameter": spec.name, "value": value, "min": low, "max": high},
                )
            values[spec.name] = value
        return values, choices

    def _derive(self, template: TemplateDefinition, values: Dict[str, float]) -> Dict[str, float]:
        env = dict(values)
        for name, formula in template.derived.items():
            env[name] = self._eval(formula, env, f"derived value '{name}'")
        return env

    def _eval(self, expression, env: Dict[str, float], where: str) -> float:
        if not isinstance(expression, (str, FormulaDefinition)):
            return float(expression)
        try:
            return evaluate(expression, env).value
        except BomCostError as e:
            raise UnresolvableTemplateFormulaError(
                f"Cannot resolve {where}: {e.message}", {"where": where, **e.detail}
            )

    def _stage(self, item: TemplateItem, env, choices) -> List[dict]:
        """Resolve one template item (and its children) into plain records."""
        where = f"item '{item.name}'"
        if item.include_if is not None and self._eval(item.include_if, env, f"include_if of {where}") == 0:
            return []

        copies = 1
        if item.repeat is not None:
            repeat = self._eval(item.repeat, env, f"repeat of {where}")
            copies = round(repeat)
            if abs(repeat - copies) > 1e-9 or copies < 0:
                raise UnresolvableTemplateFormulaError(
                    f"repeat of {where} must be a non-negative whole number, got {repeat:g}",
                    {"where": where, "value": repeat},
                )

        quantity = self._eval(item.quantity, env, f"quantity of {where}")
        if not quantity > 0:
            raise UnresolvableTemplateFormulaError(
                f"quantity of {where} resolves to {quantity:g}", {"where": where, "value": quantity}
            )
        wastage = self._eval(item.wastage_pct, env, f"wastage of {where}")
        params = {name: self._eval(v, env, f"'{name}' of {where}") for name, v in item.parameters.items()}
        fabrication = {name: self._eval(v, env, f"'{name}' of {where}") for name, v in item.fabrication.items()}
        material_id = choices.get(item.material_param) if item.material_param else item.material_id

        records = []
        for index in range(1, copies + 1):
            name = f"{item.name} #{index}" if item.repeat is not None else item.name
            children = []
            for child in item.children:
                children.extend(self._stage(child, env, choices))
            records.append({
                "name": name,
                "kind": item.kind,
                "quantity": quantity,
                "wastage_pct": wastage,
                "shape_id": item.shape_id,
                "shape_version": item.shape_version,
                "parameters": params,
                "material_id": material_id,
                "bought_out": item.bought_out,
                "fabrication": fabrication,
                "notes": item.notes,
                "children": children,
            })
        return records

    def _build(self, template: TemplateDefinition, root_record: dict, resolved: Dict[str, object]) -> BOMTree:
        items: Dict[str, BOMItem] = {}

        def add(record: dict, parent_id: Optional[str]) -> str:
            item_id = new_id()
            shape = None
            if record["shape_id"]:
                shape = ShapeInstance(
                    shape_id=record["shape_id"],
                    shape_version=record["shape_version"],
                    parameters=dict(record["parameters"]),
                    material_id=record["material_id"],
                )
            child_ids = [add(child, item_id) for child in record["children"]]
            items[item_id] = BOMItem(
                id=item_id,
                name=record["name"],
                kind=record["kind"],
                parent_id=parent_id,
                children=child_ids,
                quantity=record["quantity"],
                wastage_pct=record["wastage_pct"],
                shape=shape,
                bought_out=record["bought_out"],
                fabrication=AssemblyFabrication(**record["fabrication"]) if record["fabrication"] else None,
                notes=record["notes"],
            )
            return item_id

        root_id = add(root_record, None)
        tree = BOMTree(
            id=new_id(),
            name=template.name,
            root_id=root_id,
            items=items,
            currency=template.currency,
            template_id=template.id,
            template_version=template.version,
            template_parameters=resolved,
        )
        tree.validate_structure()
        tree.renumber()
        return tree


def _iter_items(item: TemplateItem):
    yield item
    for child in item.children:
        yield from _iter_items(child)


class TemplateLibrary:
    """Loads template JSON files. Cached after first load."""

    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = data_dir
        self._cache: Dict[str, TemplateDefinition] = {}

    def load_template(self, template_id: str) -> TemplateDefinition:
        if template_id in self._cache:
            return self._cache[template_id]

        filepath = self.data_dir / f"{template_id}.json"
        if not filepath.exists():
            raise TemplateNotFoundError(f"No template found with id: {template_id}", {"template_id": template_id})

        with open(filepath) as f:
            template = TemplateDefinition.model_validate(json.load(f))

        self._cache[template_id] = template
        return template

    def find_by_name(self, name: str) -> TemplateDefinition:
        for template_id in self.list_available_templates():
            template = self.load_template(template_id)
            if template.name == name:
                return template
        raise TemplateNotFoundError(f"No template named '{name}'", {"name": name})

    def list_available_templates(self) -> List[str]:
        return sorted(p.stem for p in self.data_dir.glob("*.json"))
