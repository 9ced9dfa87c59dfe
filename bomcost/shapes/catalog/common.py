# Builders shared by the built-in shape catalog modules.

from ...formulas import ExpectedRange, FormulaDefinition
from ..definitions import ParameterSpec

PLATE_MATERIALS = ["plate_carbon_steel", "plate_stainless_steel", "plate_aluminium"]
TUBE_MATERIALS = ["tube_carbon_steel", "tube_stainless_steel", "tube_copper"]
SECTION_MATERIALS = ["section_carbon_steel"]


def mm(name, label, min_value=None, max_value=None, default=None, required=True, allow_zero=False, order=0):
    return ParameterSpec(
        name=name, label=label, unit="mm", min_value=min_value, max_value=max_value,
        default=default, required=required, allow_zero=allow_zero, order=order,
    )


def pct(name, label, min_value=0.0, max_value=100.0, default=None, order=0):
    return ParameterSpec(
        name=name, label=label, unit="%", min_value=min_value, max_value=max_value,
        default=default, required=False, order=order,
    )


def count(name, label, min_value=1, max_value=None, default=None, allow_zero=False, order=0):
    return ParameterSpec(
        name=name, label=label, unit="count", min_value=min_value, max_value=max_value,
        default=default, allow_zero=allow_zero, order=order,
    )


def f(expression, unit, description=None, min=None, max=None, warning=None):
    expected = None
    if min is not None or max is not None:
        expected = ExpectedRange(min=min, max=max, warning=warning)
    return FormulaDefinition(expression=expression, unit=unit, description=description, expected_range=expected)
