"""
Error taxonomy for the shape and BOM cost engine.

Every error carries a `detail` dict so callers (and the HTTP layer) can react
without parsing messages: item ids, parameter names, conflicting versions.

Authoring errors (syntax, unknown variables) block publishing a shape or
template. Leaf-level errors (parameter, evaluation) become a `partial` flag on
the enclosing rollup. Structural and conflict errors abort the attempted
mutation before anything is committed.
"""

from typing import Optional


class BomCostError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "detail": self.detail,
        }


# --- Formula authoring ---

class FormulaSyntaxError(BomCostError):
    """Expression text could not be parsed."""

    def __init__(self, message: str, expression: str = "", position: Optional[int] = None):
        super().__init__(message, {"expression": expression, "position": position})
        self.expression = expression
        self.position = position


class UnknownVariableError(BomCostError):
    """Expression references names that are neither parameters nor constants."""

    def __init__(self, names, expression: str = ""):
        names = sorted(names)
        super().__init__(
            f"Unknown variable(s) in '{expression}': {', '.join(names)}",
            {"names": names, "expression": expression},
        )
        self.names = names


# --- Parameter binding ---

class ParameterError(BomCostError):
    """A bound value is missing, out of range, or otherwise unusable."""


class MissingParameterError(ParameterError):
    pass


class ParameterRangeError(ParameterError):
    pass


class IncompatibleMaterialError(ParameterError):
    pass


class UnitError(ParameterError):
    """Incompatible units or currencies were mixed."""


# --- Evaluation ---

class EvaluationError(BomCostError):
    """Runtime numeric failure while evaluating a formula."""


class DivisionByZeroError(EvaluationError):
    pass


class DomainError(EvaluationError):
    pass


class UnboundVariableError(EvaluationError):
    pass


# --- Tree structure and concurrency ---

class StructuralError(BomCostError):
    """A mutation would break the strict-tree shape of a BOM."""


class ConflictError(BomCostError):
    """The caller's observed version is stale."""

    def __init__(self, expected_version: int, actual_version: int, tree_id: str = ""):
        super().__init__(
            f"Version conflict on BOM {tree_id}: expected {expected_version}, "
            f"current is {actual_version}. Re-fetch and retry.",
            {"tree_id": tree_id, "expected_version": expected_version, "actual_version": actual_version},
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


# --- Templates ---

class TemplateError(BomCostError):
    """Template instantiation failed; no tree was created."""


class MissingTemplateParameterError(TemplateError):
    pass


class TemplateParameterRangeError(TemplateError):
    pass


class UnresolvableTemplateFormulaError(TemplateError):
    pass


class TemplateDefinitionError(TemplateError):
    pass


# --- Lookups ---

class NotFoundError(BomCostError):
    pass


class MaterialNotFoundError(NotFoundError):
    def __init__(self, material_id: str):
        super().__init__(f"Material not found: {material_id}", {"material_id": material_id})
        self.material_id = material_id


class ShapeNotFoundError(NotFoundError):
    pass


class ItemNotFoundError(NotFoundError):
    pass


class TemplateNotFoundError(NotFoundError):
    pass


class ShapeDefinitionError(BomCostError):
    """A shape definition failed publish-time checks."""


# Errors that mark a single leaf as broken without aborting a whole-tree pass.
LEAF_ERRORS = (ParameterError, EvaluationError, NotFoundError)
