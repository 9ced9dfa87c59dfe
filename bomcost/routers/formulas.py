from fastapi import APIRouter

from .. import schemas
from ..formulas import FormulaDefinition, evaluate_with_warnings, extract_variables, validate

router = APIRouter(prefix="/formulas", tags=["formulas"])


@router.post("/validate", response_model=schemas.FormulaValidateResponse)
def validate_formula(body: schemas.FormulaValidateRequest):
    """Syntax and name check. Failures come back as 422 with the error kind."""
    formula = FormulaDefinition(expression=body.expression, unit=body.unit, constants=body.constants)
    validate(formula, body.parameter_names)
    return schemas.FormulaValidateResponse(valid=True, variables=extract_variables(formula))


@router.post("/evaluate", response_model=schemas.FormulaEvaluateResponse)
def evaluate_formula(body: schemas.FormulaEvaluateRequest):
    formula = FormulaDefinition(
        expression=body.expression, unit=body.unit, constants=body.constants,
        variable_units=body.variable_units, expected_range=body.expected_range,
    )
    value, warnings = evaluate_with_warnings(formula, body.bindings)
    return schemas.FormulaEvaluateResponse(value=value.value, unit=value.unit, warnings=warnings)
