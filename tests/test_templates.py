"""
Template tests — heat exchanger template, parameter checks, all-or-nothing build.

Tests:
1.  test_library_lists_builtin_templates      — hx_tema_bem is shipped
2.  test_unknown_template                     — TemplateNotFoundError
3.  test_builtin_template_validates           — every name and shape resolves
4.  test_tube_count_creates_tube_leaves       — TUBE_COUNT=100 -> 100 tube leaves
5.  test_weight_matches_hand_calculation      — within 5 % of a textbook estimate
6.  test_derived_values_flow_into_items       — baffle count, tube length, tie rods
7.  test_missing_required_parameter           — MissingTemplateParameterError
8.  test_out_of_range_parameter               — TemplateParameterRangeError
9.  test_unknown_parameter_rejected           — TemplateParameterRangeError
10. test_undefined_derived_name               — UnresolvableTemplateFormulaError
11. test_include_if_drops_saddles             — SADDLES=false
12. test_material_choice                      — SHELL_MATERIAL picks the shell material
13. test_invalid_choice_rejected              — not an option
14. test_units_accepted_on_parameters         — {"value": 1, "unit": "m"}
15. test_bad_template_definition              — children on a part, assembly quantity
16. test_tree_records_resolved_parameters     — magnitudes and choices kept on the tree
"""

import math

import pytest

from bomcost.errors import (
    MissingTemplateParameterError,
    TemplateDefinitionError,
    TemplateNotFoundError,
    TemplateParameterRangeError,
    UnresolvableTemplateFormulaError,
)
from bomcost.formulas import FormulaDefinition
from bomcost.shapes import ParameterSpec
from bomcost.templates import TemplateDefinition, TemplateEngine, TemplateItem, TemplateLibrary

HX_PARAMS = {"SHELL_DIAMETER": 1000, "SHELL_LENGTH": 3000, "TUBE_COUNT": 100}


@pytest.fixture
def hx_template():
    return TemplateLibrary().load_template("hx_tema_bem")


@pytest.fixture
def engine(library):
    return TemplateEngine(library)


def by_name(tree, name):
    return [item for item in tree.walk() if item.name == name]


def plate_template(**overrides):
    """Small template: one assembly holding a plate sized by parameter A."""
    fields = dict(
        id="test_plate",
        name="Test plate",
        parameters=[ParameterSpec(name="A", unit="mm", min_value=10, max_value=5000)],
        root=TemplateItem(name="Frame", kind="assembly", children=[
            TemplateItem(name="Plate", shape_id="rectangular_plate",
                         parameters={"L": "A", "W": "A / 2", "t": 10}, material_id="CS_SA516_70"),
        ]),
    )
    fields.update(overrides)
    return TemplateDefinition(**fields)


def test_library_lists_builtin_templates():
    library = TemplateLibrary()
    assert "hx_tema_bem" in library.list_available_templates()
    assert library.find_by_name("Heat Exchanger TEMA BEM").id == "hx_tema_bem"
    assert library.load_template("hx_tema_bem") is library.load_template("hx_tema_bem")


def test_unknown_template():
    with pytest.raises(TemplateNotFoundError):
        TemplateLibrary().load_template("hx_tema_xyz")


def test_builtin_template_validates(engine, hx_template):
    engine.validate_template(hx_template)


def test_tube_count_creates_tube_leaves(engine, hx_template):
    tree = engine.instantiate(hx_template, HX_PARAMS)
    bundle = by_name(tree, "Tube Bundle")[0]
    tubes = [c for c in tree.children_of(bundle.id) if c.shape and c.shape.shape_id == "hx_tube"]
    assert len(tubes) == 100
    assert tubes[0].name == "Tube #1"
    assert tubes[-1].name == "Tube #100"
    assert all(not t.children for t in tubes)
    assert tree.version == 0
    assert tree.template_id == "hx_tema_bem"
    tree.validate_structure()


def test_weight_matches_hand_calculation(service, hx_template):
    tree, summary = service.instantiate(hx_template, HX_PARAMS)
    assert summary.partial is False
    assert tree.version == 1

    steel = 7850 / 1e9  # kg per mm3
    SD, SL, N, t = 1000, 3000, 100, 10
    shell = math.pi * (SD + t) * t * SL * steel
    tubesheet_d = SD + 2 * t + 100
    tubesheets = 2 * (math.pi / 4 * (tubesheet_d ** 2 - N * 19.3 ** 2)) * 40 * steel
    tubes = N * math.pi / 4 * (19.05 ** 2 - 15.75 ** 2) * (SL + 2 * 40 + 6) * steel
    # 25 % baffle cut removes about 19.5 % of the disc area
    baffle_d = SD - 5
    baffle = (0.8045 * math.pi / 4 * baffle_d ** 2 - 75 * math.pi / 4 * 19.85 ** 2) * 6 * steel
    baffles = 5 * baffle
    tie_rods = 8 * 0.888 * SL / 1000
    channels = 2 * math.pi * (SD + t) * t * 400 * steel
    # 2:1 ellipsoidal head: dished area about 1.084 D^2 plus the straight flange
    heads = 2 * (1.084 * SD ** 2 + math.pi * SD * 50) * t * steel
    saddles = 2 * (SD + 200) * 250 * 12 * steel
    bought_out = 4 * 12 + 2 * 1.5
    hand = shell + tubesheets + tubes + baffles + tie_rods + channels + heads + saddles + bought_out

    assert summary.total_weight.value == pytest.approx(hand, rel=0.05)


def test_derived_values_flow_into_items(engine, hx_template):
    tree = engine.instantiate(hx_template, HX_PARAMS)
    baffle = by_name(tree, "Baffle")[0]
    assert baffle.quantity == 5
    assert baffle.wastage_pct == 5
    tube = by_name(tree, "Tube #1")[0]
    assert tube.shape.parameters["L"] == pytest.approx(3086)
    assert by_name(tree, "Tie Rod 12 mm")[0].quantity == 8
    assert by_name(tree, "Nozzle Flange")[0].quantity == 4
    assert len(by_name(tree, "Channel Shell")) == 2


def test_missing_required_parameter(engine, hx_template):
    with pytest.raises(MissingTemplateParameterError) as exc:
        engine.instantiate(hx_template, {"SHELL_DIAMETER": 1000, "SHELL_LENGTH": 3000})
    assert exc.value.detail["parameter"] == "TUBE_COUNT"


def test_out_of_range_parameter(engine, hx_template):
    with pytest.raises(TemplateParameterRangeError) as exc:
        engine.instantiate(hx_template, {**HX_PARAMS, "SHELL_DIAMETER": 5000})
    assert exc.value.detail["parameter"] == "SHELL_DIAMETER"
    with pytest.raises(TemplateParameterRangeError):
        engine.instantiate(hx_template, {**HX_PARAMS, "TUBE_COUNT": 0})


def test_unknown_parameter_rejected(engine, hx_template):
    with pytest.raises(TemplateParameterRangeError):
        engine.instantiate(hx_template, {**HX_PARAMS, "PASSES": 2})


def test_undefined_derived_name(engine):
    template = plate_template(derived={"B": FormulaDefinition(expression="A * SCALE", unit="mm")})
    with pytest.raises(UnresolvableTemplateFormulaError):
        engine.instantiate(template, {"A": 1000})

    template = plate_template(root=TemplateItem(name="Frame", kind="assembly", children=[
        TemplateItem(name="Plate", shape_id="rectangular_plate",
                     parameters={"L": "A", "W": "WIDTH", "t": 10}, material_id="CS_SA516_70"),
    ]))
    with pytest.raises(UnresolvableTemplateFormulaError):
        engine.instantiate(template, {"A": 1000})


def test_include_if_drops_saddles(engine, hx_template):
    with_saddles = engine.instantiate(hx_template, HX_PARAMS)
    without = engine.instantiate(hx_template, {**HX_PARAMS, "SADDLES": False})
    assert len(by_name(with_saddles, "Support Saddles")) == 1
    assert by_name(without, "Support Saddles") == []
    assert len(with_saddles.items) - len(without.items) == 2


def test_material_choice(engine, hx_template):
    tree = engine.instantiate(hx_template, {**HX_PARAMS, "SHELL_MATERIAL": "SS304_PLATE"})
    assert by_name(tree, "Shell")[0].shape.material_id == "SS304_PLATE"
    assert by_name(tree, "Tube #1")[0].shape.material_id == "CS_SA179_TUBE"
    assert by_name(tree, "Tie Rod 12 mm")[0].shape.material_id == "CS_IS2062"


def test_invalid_choice_rejected(engine, hx_template):
    with pytest.raises(TemplateParameterRangeError):
        engine.instantiate(hx_template, {**HX_PARAMS, "TUBE_MATERIAL": "UNOBTAINIUM"})


def test_units_accepted_on_parameters(engine, hx_template):
    in_mm = engine.instantiate(hx_template, HX_PARAMS)
    in_m = engine.instantiate(hx_template, {**HX_PARAMS, "SHELL_LENGTH": {"value": 3, "unit": "m"}})
    assert by_name(in_m, "Shell")[0].shape.parameters["L"] == pytest.approx(
        by_name(in_mm, "Shell")[0].shape.parameters["L"])


def test_bad_template_definition(engine):
    template = plate_template(root=TemplateItem(name="Frame", kind="assembly", children=[
        TemplateItem(name="Plate", shape_id="rectangular_plate", parameters={"L": "A", "W": 100, "t": 10},
                     material_id="CS_SA516_70",
                     children=[TemplateItem(name="Stiffener", bought_out=None)]),
    ]))
    with pytest.raises(TemplateDefinitionError):
        engine.instantiate(template, {"A": 1000})

    template = plate_template(root=TemplateItem(name="Frame", kind="assembly", quantity=2))
    with pytest.raises(TemplateDefinitionError):
        engine.instantiate(template, {"A": 1000})

    template = plate_template(root=TemplateItem(name="Frame", kind="assembly", children=[
        TemplateItem(name="Blob", shape_id="dodecahedron", material_id="CS_SA516_70"),
    ]))
    with pytest.raises(TemplateDefinitionError):
        engine.instantiate(template, {"A": 1000})


def test_tree_records_resolved_parameters(engine, hx_template):
    tree = engine.instantiate(hx_template, {**HX_PARAMS, "SHELL_LENGTH": {"value": 3, "unit": "m"},
                                            "SHELL_MATERIAL": "SS304_PLATE"})
    recorded = tree.template_parameters
    assert recorded["SHELL_LENGTH"] == pytest.approx(3000)
    assert recorded["SHELL_DIAMETER"] == 1000
    assert recorded["TUBE_COUNT"] == 100
    assert recorded["SHELL_MATERIAL"] == "SS304_PLATE"
    assert recorded["SADDLES"] == 1.0
