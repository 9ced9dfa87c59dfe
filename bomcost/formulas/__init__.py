from .engine import (
    BUILTIN_CONSTANTS,
    CompiledFormula,
    ExpectedRange,
    FormulaDefinition,
    compile_expression,
    evaluate,
    evaluate_many,
    evaluate_with_warnings,
    extract_variables,
    validate,
)
from .parser import FUNCTIONS, parse

__all__ = [
    "BUILTIN_CONSTANTS",
    "CompiledFormula",
    "ExpectedRange",
    "FUNCTIONS",
    "FormulaDefinition",
    "compile_expression",
    "evaluate",
    "evaluate_many",
    "evaluate_with_warnings",
    "extract_variables",
    "parse",
    "validate",
]
