"""
Unit model tests.

Tests:
1. test_convert_within_dimension        — mm -> m, mm3 -> m3, lb -> kg
2. test_convert_across_dimensions_fails — length -> mass raises UnitError
3. test_aliases_normalize               — m², sqm, hr resolve to canonical symbols
4. test_unknown_unit_rejected           — canonical_unit raises UnitError
5. test_quantity_to_base                — to_base reports SI units
6. test_as_quantity_inputs              — number, dict, Quantity, bool
7. test_money_currency_guard            — no silent currency conversion
"""

import pytest

from bomcost.errors import UnitError
from bomcost.units import Money, as_quantity, canonical_unit, convert, q


def test_convert_within_dimension():
    assert convert(1500, "mm", "m") == pytest.approx(1.5)
    assert convert(2e9, "mm3", "m3") == pytest.approx(2.0)
    assert convert(1, "lb", "kg") == pytest.approx(0.45359237)
    assert convert(25, "%", "ratio") == pytest.approx(0.25)
    assert convert(90, "min", "h") == pytest.approx(1.5)


def test_convert_across_dimensions_fails():
    with pytest.raises(UnitError):
        convert(1, "mm", "kg")
    with pytest.raises(UnitError):
        q(3, "m2").to("m")


def test_aliases_normalize():
    assert canonical_unit("m²") == "m2"
    assert canonical_unit("sqm") == "m2"
    assert canonical_unit("hr") == "h"
    assert canonical_unit("") == "1"
    assert q(1, "kg/m³").unit == "kg/m3"


def test_unknown_unit_rejected():
    with pytest.raises(UnitError):
        canonical_unit("furlong")


def test_quantity_to_base():
    base = q(2500, "mm").to_base()
    assert base.unit == "m"
    assert base.value == pytest.approx(2.5)
    assert q(7.85, "g/cm3").to_base().value == pytest.approx(7850)
    assert q(1, "t").magnitude("kg") == 1000
    assert q(10, "mm").is_compatible("in")
    assert not q(10, "mm").is_compatible("kg")


def test_as_quantity_inputs():
    assert as_quantity(12, "mm") == q(12, "mm")
    assert as_quantity({"value": 1.2, "unit": "m"}, "mm").magnitude("mm") == pytest.approx(1200)
    assert as_quantity(q(3, "in"), "mm").unit == "in"
    assert as_quantity(True).value == 1.0


def test_money_currency_guard():
    price = Money(amount=85.0, currency="INR")
    assert price.require_currency("INR") == 85.0
    with pytest.raises(UnitError):
        price.require_currency("USD")
