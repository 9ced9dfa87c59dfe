"""Request-scoped helpers shared by the routers."""

from typing import Optional

from sqlalchemy.orm import Session

from ..bom.service import BOMService
from ..config import settings
from ..rates import CostRates
from ..repository import DBMaterialLookup, load_library


def resolve_rates(requested: Optional[CostRates]) -> CostRates:
    """Fill rates the client omitted from the configured defaults."""
    rates = {
        "labor_rate_per_hour": settings.LABOR_RATE_DEFAULT,
        "welding_rate_per_meter": settings.WELDING_RATE_DEFAULT,
        "machining_rate_per_hour": settings.MACHINING_RATE_DEFAULT,
        "cutting_rate_per_meter": settings.CUTTING_RATE_DEFAULT,
        "edge_preparation_rate_per_meter": settings.EDGE_PREP_RATE_DEFAULT,
        "surface_treatment_rate_per_sqm": settings.SURFACE_RATE_DEFAULT,
        "overhead_pct": settings.OVERHEAD_PCT_DEFAULT,
        "margin_pct": settings.MARGIN_PCT_DEFAULT,
    }
    given = requested.model_dump(exclude_none=True) if requested is not None else {}
    # A fixed overhead or profit replaces the percentage default
    if "overhead_amount" in given:
        rates.pop("overhead_pct")
    if "target_profit" in given:
        rates.pop("margin_pct")
    rates.update(given)
    return CostRates(**rates)


def bom_service(db: Session, requested: Optional[CostRates] = None) -> BOMService:
    return BOMService(
        load_library(db),
        DBMaterialLookup(db),
        rates=resolve_rates(requested),
        lookup_budget_ms=settings.MATERIAL_LOOKUP_BUDGET_MS,
    )
