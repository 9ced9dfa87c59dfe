"""
Serialization tests — plain-structure round trips.

Tests:
1. test_tree_round_trip_rolls_up_identically  — same summary, bit for bit
2. test_round_trip_keeps_structure            — ids, numbers, errors survive
3. test_loaded_tree_checked                   — damaged payload -> StructuralError
4. test_shape_round_trip                      — reloaded shape still publishes
5. test_template_round_trip                   — reloaded template instantiates the same tree shape
"""

import json

import pytest

from bomcost.bom import BOMItem, BOMTree, BoughtOutSpec, ShapeInstance, new_id
from bomcost.bom.serialization import (
    dump_shape,
    dump_template,
    dump_tree,
    load_shape,
    load_template,
    load_tree,
    tree_from_json,
    tree_to_json,
)
from bomcost.errors import StructuralError
from bomcost.shapes import ShapeLibrary, validate_shape
from bomcost.templates import TemplateEngine, TemplateLibrary


def priced_tree(service):
    tree = BOMTree.create("Tank")
    shell = BOMItem(id=new_id(), name="Shell", wastage_pct=2.5, shape=ShapeInstance(
        shape_id="cylindrical_shell", parameters={"ID": 1234.5, "t": 7.3, "L": 4321.0}, material_id="SS316L_PLATE",
    ))
    head = BOMItem(id=new_id(), name="Head", quantity=2, shape=ShapeInstance(
        shape_id="torispherical_head", parameters={"ID": 1234.5, "t": 8}, material_id="SS316L_PLATE",
    ))
    broken = BOMItem(id=new_id(), name="Nozzle pad", shape=ShapeInstance(
        shape_id="rectangular_plate", parameters={"L": 300, "W": 300, "t": 10}, material_id="UNOBTAINIUM",
    ))
    valve = BOMItem(id=new_id(), name="Drain valve", bought_out=BoughtOutSpec(
        description="Ball valve 1\"", unit_price=3333.33, unit_weight_kg=1.7,
    ))
    for item in (shell, head, broken, valve):
        tree.add_item(tree.root_id, item, tree.version)
    service.calculate_all(tree, tree.version)
    return tree


def test_tree_round_trip_rolls_up_identically(service):
    tree = priced_tree(service)
    before = service.summary(tree)

    reloaded = tree_from_json(tree_to_json(tree))
    after = service.summary(reloaded)

    assert after.total_weight.value == before.total_weight.value
    assert after.total_material_cost == before.total_material_cost
    assert after.final_price == before.final_price
    assert after == before


def test_round_trip_keeps_structure(service):
    tree = priced_tree(service)
    reloaded = load_tree(json.loads(json.dumps(dump_tree(tree))))
    assert reloaded.version == tree.version
    assert [i.item_number for i in reloaded.walk()] == [i.item_number for i in tree.walk()]
    assert [i.id for i in reloaded.walk()] == [i.id for i in tree.walk()]
    pad = [i for i in reloaded.walk() if i.name == "Nozzle pad"][0]
    assert pad.error.kind == "MaterialNotFoundError"
    assert dump_tree(reloaded) == dump_tree(tree)


def test_loaded_tree_checked(service):
    data = dump_tree(priced_tree(service))
    root = data["items"][data["root_id"]]
    root["children"].append(root["children"][0])
    with pytest.raises(StructuralError):
        load_tree(data)


def test_shape_round_trip(library):
    shape = library.get("hx_baffle")
    reloaded = load_shape(json.loads(json.dumps(dump_shape(shape))))
    assert reloaded == shape
    validate_shape(reloaded)
    assert ShapeLibrary([reloaded]).get("hx_baffle").version == shape.version


def test_template_round_trip(library):
    template = TemplateLibrary().load_template("hx_tema_bem")
    reloaded = load_template(json.loads(json.dumps(dump_template(template))))
    assert reloaded == template

    params = {"SHELL_DIAMETER": 600, "SHELL_LENGTH": 2000, "TUBE_COUNT": 40}
    engine = TemplateEngine(library)
    first = engine.instantiate(template, params)
    second = engine.instantiate(reloaded, params)
    assert [i.name for i in first.walk()] == [i.name for i in second.walk()]
