"""
Cost-rate policy supplied by the caller on every calculation.

Nothing here has a default value: rates are business policy, and a missing
rate that a fabrication component needs is reported as a ParameterError on
that item instead of being filled in.
"""

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ParameterError


class OverheadBasis(str, enum.Enum):
    ALL = "all"
    MATERIAL = "material"
    FABRICATION = "fabrication"


class CostRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    labor_rate_per_hour: Optional[float] = Field(default=None, ge=0)
    welding_rate_per_meter: Optional[float] = Field(default=None, ge=0)
    machining_rate_per_hour: Optional[float] = Field(default=None, ge=0)
    cutting_rate_per_meter: Optional[float] = Field(default=None, ge=0)
    edge_preparation_rate_per_meter: Optional[float] = Field(default=None, ge=0)
    surface_treatment_rate_per_sqm: Optional[float] = Field(default=None, ge=0)
    scrap_recovery_pct: Optional[float] = Field(default=None, ge=0, le=100)

    # Applied once, at the top of the tree
    overhead_pct: Optional[float] = Field(default=None, ge=0)
    overhead_amount: Optional[float] = Field(default=None, ge=0)
    overhead_basis: OverheadBasis = OverheadBasis.ALL
    contingency_pct: Optional[float] = Field(default=None, ge=0)
    margin_pct: Optional[float] = None
    target_profit: Optional[float] = None

    @model_validator(mode="after")
    def _one_mode_each(self):
        if self.overhead_pct is not None and self.overhead_amount is not None:
            raise ValueError("Give either overhead_pct or overhead_amount, not both")
        if self.margin_pct is not None and self.target_profit is not None:
            raise ValueError("Give either margin_pct or target_profit, not both")
        return self

    def require(self, name: str, item_id: Optional[str] = None) -> float:
        """Return a rate the caller must have supplied."""
        value = getattr(self, name)
        if value is None:
            raise ParameterError(
                f"Cost rate '{name}' is required but was not supplied",
                {"rate": name, "item_id": item_id},
            )
        return value
