"""
Material lookup tests — fallback chain and per-pass caching.

Tests:
1. test_default_catalog                 — density and price as Quantity / Money
2. test_seeded_entries_override         — supplier list wins over the defaults
3. test_missing_seed_file_is_ignored    — falls back to defaults
4. test_unknown_material                — MaterialNotFoundError
5. test_pass_cache_reads_once           — one inner read per material per pass
6. test_pass_cache_logs_slow_reads      — budget overrun is a warning, not an error
"""

import json
import logging

import pytest

from bomcost.errors import MaterialNotFoundError
from bomcost.materials import MaterialLookup, PassCache, StaticMaterialLookup


class CountingLookup(MaterialLookup):
    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def get_material(self, material_id):
        self.calls.append(material_id)
        return self.inner.get_material(material_id)


def test_default_catalog(materials):
    steel = materials.get_material("CS_SA516_70")
    assert steel.density.magnitude("kg/m3") == 7850.0
    assert steel.price_per_unit.amount == 85.0
    assert steel.price_per_unit.currency == "INR"
    assert steel.category == "plate_carbon_steel"
    assert "SS316L_PLATE" in materials.list_ids()


def test_seeded_entries_override(tmp_path):
    seed = tmp_path / "seeded_materials.json"
    seed.write_text(json.dumps({
        "CS_SA516_70": {"name": "SA516-70 (supplier)", "category": "plate_carbon_steel",
                        "density_kg_m3": 7850.0, "price": 81.5},
    }))
    lookup = StaticMaterialLookup(seed_path=str(seed))
    assert lookup.get_material("CS_SA516_70").price_per_unit.amount == 81.5
    assert lookup.get_material("SS304_PLATE").price_per_unit.amount > 0


def test_missing_seed_file_is_ignored(tmp_path):
    lookup = StaticMaterialLookup(seed_path=str(tmp_path / "nope.json"))
    assert lookup.get_material("CS_SA516_70").price_per_unit.amount == 85.0


def test_unknown_material(materials):
    with pytest.raises(MaterialNotFoundError) as exc:
        materials.get_material("UNOBTAINIUM")
    assert exc.value.detail == {"material_id": "UNOBTAINIUM"}
    with pytest.raises(MaterialNotFoundError):
        materials.set_price("UNOBTAINIUM", 10.0)


def test_pass_cache_reads_once(materials):
    counting = CountingLookup(materials)
    cache = PassCache(counting)
    for _ in range(3):
        cache.get_material("CS_SA516_70")
    cache.get_material("SS304_PLATE")
    assert counting.calls == ["CS_SA516_70", "SS304_PLATE"]
    assert cache.reads == 2


def test_pass_cache_logs_slow_reads(materials, caplog):
    cache = PassCache(materials, budget_ms=-1.0)
    with caplog.at_level(logging.WARNING, logger="bomcost.materials"):
        material = cache.get_material("CS_SA516_70")
    assert material.id == "CS_SA516_70"
    assert "budget" in caplog.text
