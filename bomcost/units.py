"""
Unit/value model — numeric quantities tagged with a unit symbol.

Shape formulas work in millimeters (mm, mm², mm³) the way drawings are
dimensioned; results are reported in SI (m, m², m³, kg). Conversions only
happen between units of the same dimension; anything else is a UnitError.
"""

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import UnitError

# symbol -> (dimension, factor to the SI base unit of that dimension)
UNITS = {
    # Length (base: m)
    "mm": ("length", 1e-3),
    "cm": ("length", 1e-2),
    "m": ("length", 1.0),
    "in": ("length", 0.0254),
    "ft": ("length", 0.3048),
    # Area (base: m²)
    "mm2": ("area", 1e-6),
    "cm2": ("area", 1e-4),
    "m2": ("area", 1.0),
    # Volume (base: m³)
    "mm3": ("volume", 1e-9),
    "cm3": ("volume", 1e-6),
    "l": ("volume", 1e-3),
    "m3": ("volume", 1.0),
    # Mass (base: kg)
    "g": ("mass", 1e-3),
    "kg": ("mass", 1.0),
    "t": ("mass", 1e3),
    "lb": ("mass", 0.45359237),
    # Density (base: kg/m³)
    "kg/m3": ("density", 1.0),
    "g/cm3": ("density", 1e3),
    # Mass per length (base: kg/m), for tabulated sections
    "kg/m": ("linear_density", 1.0),
    # Ratios
    "%": ("ratio", 1e-2),
    "ratio": ("ratio", 1.0),
    # Angles (base: rad)
    "rad": ("angle", 1.0),
    "deg": ("angle", math.pi / 180.0),
    # Time (base: h)
    "h": ("time", 1.0),
    "min": ("time", 1.0 / 60.0),
    # Counts and plain numbers
    "count": ("count", 1.0),
    "ea": ("count", 1.0),
    "1": ("dimensionless", 1.0),
}

# Alternate spellings accepted on input; stored quantities use the canonical key.
ALIASES = {
    "mm²": "mm2",
    "cm²": "cm2",
    "m²": "m2",
    "sqm": "m2",
    "mm³": "mm3",
    "cm³": "cm3",
    "m³": "m3",
    "kg/m³": "kg/m3",
    "g/cm³": "g/cm3",
    "L": "l",
    "pct": "%",
    "percent": "%",
    "hr": "h",
    "hours": "h",
    "nos": "count",
    "pcs": "count",
    "": "1",
}

# SI unit each dimension is reported in
BASE_UNITS = {
    "length": "m",
    "area": "m2",
    "volume": "m3",
    "mass": "kg",
    "density": "kg/m3",
    "linear_density": "kg/m",
    "ratio": "ratio",
    "angle": "rad",
    "time": "h",
    "count": "count",
    "dimensionless": "1",
}


def canonical_unit(symbol: str) -> str:
    """Normalize a unit symbol, raising UnitError if it is not known."""
    unit = ALIASES.get(symbol, symbol)
    if unit not in UNITS:
        raise UnitError(f"Unknown unit: '{symbol}'", {"unit": symbol})
    return unit


def dimension_of(symbol: str) -> str:
    return UNITS[canonical_unit(symbol)][0]


def is_known_unit(symbol: str) -> bool:
    return ALIASES.get(symbol, symbol) in UNITS


def convert(value: float, from_unit: str, to_unit: str) -> float:
    """Convert a magnitude between two units of the same dimension."""
    src = canonical_unit(from_unit)
    dst = canonical_unit(to_unit)
    if src == dst:
        return value
    src_dim, src_factor = UNITS[src]
    dst_dim, dst_factor = UNITS[dst]
    if src_dim != dst_dim:
        raise UnitError(
            f"Cannot convert {from_unit} ({src_dim}) to {to_unit} ({dst_dim})",
            {"from": from_unit, "to": to_unit},
        )
    return value * src_factor / dst_factor


class Quantity(BaseModel):
    """A value with an explicit unit. Immutable."""

    model_config = ConfigDict(frozen=True)

    value: float
    unit: str

    def to(self, unit: str) -> "Quantity":
        return Quantity(value=convert(self.value, self.unit, unit), unit=canonical_unit(unit))

    def to_base(self) -> "Quantity":
        return self.to(BASE_UNITS[self.dimension])

    def magnitude(self, unit: str) -> float:
        return convert(self.value, self.unit, unit)

    @property
    def dimension(self) -> str:
        return dimension_of(self.unit)

    def is_compatible(self, unit: str) -> bool:
        return is_known_unit(unit) and dimension_of(unit) == self.dimension

    def __str__(self):
        return f"{self.value:g} {self.unit}"


class Money(BaseModel):
    """An amount in a specific currency."""

    model_config = ConfigDict(frozen=True)

    amount: float
    currency: str = "INR"

    def require_currency(self, currency: str) -> float:
        """Return the amount, refusing silent conversion between currencies."""
        if self.currency != currency:
            raise UnitError(
                f"Currency mismatch: priced in {self.currency}, expected {currency}",
                {"currency": self.currency, "expected": currency},
            )
        return self.amount


def q(value: float, unit: str) -> Quantity:
    """Shorthand constructor used throughout the catalog and tests."""
    return Quantity(value=value, unit=canonical_unit(unit))


def as_quantity(value, default_unit: str = "1") -> Quantity:
    """Accept a Quantity, a {"value", "unit"} dict, or a bare number."""
    if isinstance(value, Quantity):
        return value
    if isinstance(value, dict):
        return Quantity(value=value["value"], unit=canonical_unit(value.get("unit", default_unit)))
    if isinstance(value, bool):
        return Quantity(value=1.0 if value else 0.0, unit="1")
    return Quantity(value=float(value), unit=canonical_unit(default_unit))


def optional_to(quantity: Optional[Quantity], unit: str) -> Optional[Quantity]:
    return quantity.to(unit) if quantity is not None else None
