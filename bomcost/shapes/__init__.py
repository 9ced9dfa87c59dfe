"""
Parametric shape definitions, the versioned shape library, and the
shape instance calculator.
"""

from .calculator import ShapeCalculator, ShapeInstanceResult, calculate
from .definitions import (
    BlankDefinition,
    BlankType,
    FabricationModel,
    GeometryCategory,
    ParameterKind,
    ParameterOption,
    ParameterSpec,
    ShapeDefinition,
    ShapeFormulas,
)
from .library import ShapeLibrary, default_library, validate_shape
