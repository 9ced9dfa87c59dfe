"""
Formula engine — validate and evaluate FormulaDefinitions.

Operands are plain floats at the arithmetic level. Bindings that carry a unit
are converted on the way in (see _magnitude). Units are attached to the
result from the definition's declared unit; dimensional correctness is
checked where shapes are published (see shapes.library), plus the optional
expected-range check here, which warns instead of failing.

Evaluation is pure: the same bindings always give the same float, and
compiled ASTs are cached by expression text only.
"""

import logging
import math
from functools import lru_cache
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict

from ..errors import (
    BomCostError,
    DivisionByZeroError,
    DomainError,
    EvaluationError,
    FormulaSyntaxError,
    ParameterError,
    UnboundVariableError,
    UnitError,
    UnknownVariableError,
)
from ..units import Quantity, as_quantity, canonical_unit
from .nodes import Binary, Call, Name, Number, Unary, walk
from .parser import parse

logger = logging.getLogger(__name__)

BUILTIN_CONSTANTS = {
    "pi": math.pi,
    "PI": math.pi,
    "e": math.e,
    "E": math.e,
}


class ExpectedRange(BaseModel):
    """Sanity bounds for a formula result, in the formula's declared unit."""

    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None
    warning: Optional[str] = None


class FormulaDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    expression: str
    unit: str = "1"
    variables: List[str] = []          # optional declaration; checked when present
    variable_units: Dict[str, str] = {}  # unit each bound variable is read in
    constants: Dict[str, float] = {}
    description: Optional[str] = None
    expected_range: Optional[ExpectedRange] = None


FormulaLike = Union[FormulaDefinition, str]


class CompiledFormula:
    """A parsed expression and the names it references."""

    __slots__ = ("expression", "tree", "names")

    def __init__(self, expression: str, tree):
        self.expression = expression
        self.tree = tree
        self.names = frozenset(n.name for n in walk(tree) if isinstance(n, Name))

    @property
    def variables(self) -> Set[str]:
        """Referenced names other than the built-in constants."""
        return set(self.names - BUILTIN_CONSTANTS.keys())


@lru_cache(maxsize=2048)
def compile_expression(expression: str) -> CompiledFormula:
    return CompiledFormula(expression, parse(expression))


def _as_definition(formula: FormulaLike) -> FormulaDefinition:
    if isinstance(formula, FormulaDefinition):
        return formula
    return FormulaDefinition(expression=str(formula))


def extract_variables(formula: FormulaLike) -> List[str]:
    """Sorted variable names referenced by a formula, excluding constants."""
    definition = _as_definition(formula)
    names = compile_expression(definition.expression).variables
    return sorted(names - definition.constants.keys())


def validate(formula: FormulaLike, parameter_names: Iterable[str], reserved: Iterable[str] = ()) -> CompiledFormula:
    """
    Check a formula at definition time.

    Raises FormulaSyntaxError if it does not parse (or redeclares a built-in
    constant) and UnknownVariableError if it references a name outside
    parameter_names, its declared constants, and the reserved names.
    """
    definition = _as_definition(formula)
    compiled = compile_expression(definition.expression)

    shadowed = sorted(set(definition.constants) & BUILTIN_CONSTANTS.keys())
    if shadowed:
        raise FormulaSyntaxError(
            f"Declared constant(s) {', '.join(shadowed)} shadow built-in constants",
            definition.expression,
        )

    allowed = set(parameter_names) | set(definition.constants) | set(reserved)
    unknown = compiled.variables - allowed
    if unknown:
        raise UnknownVariableError(unknown, definition.expression)

    if definition.variables:
        undeclared = compiled.variables - set(definition.variables) - set(definition.constants)
        if undeclared:
            raise UnknownVariableError(undeclared, definition.expression)

    canonical_unit(definition.unit)
    for unit in definition.variable_units.values():
        canonical_unit(unit)
    return compiled


def evaluate(formula: FormulaLike, bindings: Mapping[str, object]) -> Quantity:
    """Evaluate a formula against name -> Quantity (or number) bindings."""
    value, _ = evaluate_with_warnings(formula, bindings)
    return value


def evaluate_with_warnings(formula: FormulaLike, bindings: Mapping[str, object]) -> Tuple[Quantity, List[str]]:
    definition = _as_definition(formula)
    compiled = compile_expression(definition.expression)

    env = dict(BUILTIN_CONSTANTS)
    env.update(definition.constants)
    for name, bound in bindings.items():
        env[name] = _magnitude(name, bound, definition)

    try:
        result = _eval(compiled.tree, env)
    except ZeroDivisionError:
        raise DivisionByZeroError(
            f"Division by zero in '{definition.expression}'",
            {"expression": definition.expression},
        )
    except OverflowError:
        raise EvaluationError(
            f"Numeric overflow in '{definition.expression}'",
            {"expression": definition.expression},
        )
    except EvaluationError as e:
        e.detail.setdefault("expression", definition.expression)
        raise

    if not math.isfinite(result):
        raise EvaluationError(
            f"Non-finite result {result} from '{definition.expression}'",
            {"expression": definition.expression},
        )

    warnings = []
    rng = definition.expected_range
    if rng is not None:
        low = rng.min if rng.min is not None else -math.inf
        high = rng.max if rng.max is not None else math.inf
        if not low <= result <= high:
            message = f"Result {result:g} {definition.unit} outside expected range [{_fmt(rng.min, '-inf')}, {_fmt(rng.max, 'inf')}]"
            if rng.warning:
                message = f"{message}: {rng.warning}"
            warnings.append(message)
            logger.debug(message)

    return Quantity(value=result, unit=canonical_unit(definition.unit)), warnings


def evaluate_many(formulas: Mapping[str, FormulaLike], bindings: Mapping[str, object]) -> Tuple[Dict[str, Quantity], Dict[str, BomCostError]]:
    """Evaluate several formulas, continuing past individual failures."""
    values = {}
    errors = {}
    for name, formula in formulas.items():
        try:
            values[name] = evaluate(formula, bindings)
        except BomCostError as e:
            errors[name] = e
    return values, errors


def _fmt(bound: Optional[float], unbounded: str) -> str:
    return unbounded if bound is None else f"{bound:g}"


def _magnitude(name: str, bound, definition: FormulaDefinition) -> float:
    """
    Plain float for one binding.

    Bare numbers are taken as already being in the variable's unit. A
    Quantity (or {"value", "unit"} dict) is converted to the declared unit
    of the variable, or else to the formula's own unit when the dimensions
    match; a dimensioned value with neither is rejected rather than having
    its unit dropped.
    """
    if isinstance(bound, bool):
        return 1.0 if bound else 0.0
    if not isinstance(bound, (Quantity, dict)):
        try:
            return float(bound)
        except (TypeError, ValueError):
            raise ParameterError(
                f"Binding '{name}' is not a number: {bound!r}", {"name": name, "value": repr(bound)}
            )

    try:
        quantity = as_quantity(bound)
    except (KeyError, TypeError, ValueError):
        raise ParameterError(
            f"Binding '{name}' must be a number or a value with a unit: {bound!r}",
            {"name": name, "value": repr(bound)},
        )

    declared = definition.variable_units.get(name)
    if declared is not None:
        return quantity.magnitude(declared)
    if quantity.dimension == "dimensionless":
        return quantity.value
    if quantity.is_compatible(definition.unit):
        return quantity.magnitude(definition.unit)
    raise UnitError(
        f"Binding '{name}' is in {quantity.unit}; declare the unit of '{name}' to use it in a "
        f"{definition.unit} formula",
        {"name": name, "unit": quantity.unit, "formula_unit": definition.unit},
    )


# --- Tree-walking evaluator ---

def _eval(node, env: Dict[str, float]) -> float:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Name):
        if node.name not in env:
            raise UnboundVariableError(f"Variable '{node.name}' is not bound", {"name": node.name})
        return env[node.name]
    if isinstance(node, Unary):
        value = _eval(node.operand, env)
        return -value if node.op == "-" else value
    if isinstance(node, Binary):
        return _binary(node, env)
    if isinstance(node, Call):
        return _call(node, env)
    raise EvaluationError(f"Unsupported node {node!r}")


def _binary(node: Binary, env: Dict[str, float]) -> float:
    left = _eval(node.left, env)
    right = _eval(node.right, env)
    op = node.op
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        return left / right
    if op == "^":
        return _pow(left, right)
    if op == "<":
        return float(left < right)
    if op == "<=":
        return float(left <= right)
    if op == ">":
        return float(left > right)
    if op == ">=":
        return float(left >= right)
    if op == "==":
        return float(left == right)
    if op == "!=":
        return float(left != right)
    raise EvaluationError(f"Unsupported operator '{op}'")


def _pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except ValueError:
        if base == 0:
            raise DivisionByZeroError(f"0 raised to negative power {exponent:g}")
        raise DomainError(f"{base:g} raised to non-integer power {exponent:g}")


def _require(condition: bool, message: str):
    if not condition:
        raise DomainError(message)


def _call(node: Call, env: Dict[str, float]) -> float:
    func = node.func
    if func == "if":
        # Only the chosen branch is evaluated.
        cond = _eval(node.args[0], env)
        return _eval(node.args[1] if cond != 0 else node.args[2], env)

    args = [_eval(arg, env) for arg in node.args]

    if func == "sqrt":
        _require(args[0] >= 0, f"sqrt of negative value {args[0]:g}")
        return math.sqrt(args[0])
    if func == "pow":
        return _pow(args[0], args[1])
    if func == "abs":
        return abs(args[0])
    if func in ("sin", "cos", "tan", "atan", "exp"):
        return getattr(math, func)(args[0])
    if func in ("asin", "acos"):
        _require(-1 <= args[0] <= 1, f"{func} of {args[0]:g} outside [-1, 1]")
        return getattr(math, func)(args[0])
    if func == "atan2":
        return math.atan2(args[0], args[1])
    if func in ("log", "log10"):
        _require(args[0] > 0, f"{func} of non-positive value {args[0]:g}")
        return getattr(math, func)(args[0])
    if func == "min":
        return min(args)
    if func == "max":
        return max(args)
    if func == "floor":
        return float(math.floor(args[0]))
    if func == "ceil":
        return float(math.ceil(args[0]))
    if func == "round":
        digits = int(args[1]) if len(args) > 1 else 0
        return float(round(args[0], digits))
    if func == "rad":
        return math.radians(args[0])
    if func == "deg":
        return math.degrees(args[0])
    raise EvaluationError(f"Unsupported function '{func}'")
