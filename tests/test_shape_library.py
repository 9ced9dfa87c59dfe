"""
Shape library tests — publish-time validation and versioning.

Tests:
1.  test_builtin_catalog_publishes          — every built-in shape passes validation
2.  test_builtin_catalog_covers_categories  — plates, shells, heads, HX parts, sections
3.  test_unknown_variable_rejected          — formula naming a missing parameter
4.  test_syntax_error_rejected              — unparseable formula
5.  test_wrong_unit_dimension_rejected      — volume formula declared in mm2
6.  test_reserved_parameter_name_rejected   — parameter called 'density'
7.  test_volume_cannot_reference_itself     — 'volume' only visible after volume
8.  test_missing_volume_and_primitive       — nothing to derive a volume from
9.  test_fabrication_wiring_checked         — welding without weld_length
10. test_publish_is_idempotent_per_version  — same body twice is fine, different body fails
11. test_revise_creates_next_version        — old version stays retrievable
12. test_get_unknown_shape                  — ShapeNotFoundError
13. test_list_shapes_filters                — by geometry category and material category
"""

import pytest

from bomcost.errors import FormulaSyntaxError, ShapeDefinitionError, ShapeNotFoundError, UnknownVariableError
from bomcost.formulas import FormulaDefinition
from bomcost.shapes import (
    FabricationModel,
    GeometryCategory,
    ParameterSpec,
    ShapeDefinition,
    ShapeFormulas,
    ShapeLibrary,
    default_library,
    validate_shape,
)
from bomcost.shapes.catalog import BUILTIN_SHAPES


def bar_shape(**overrides):
    """A minimal valid shape: square bar of side s and length L."""
    fields = dict(
        id="square_bar",
        name="Square Bar",
        category=GeometryCategory.OTHER,
        parameters=[
            ParameterSpec(name="s", unit="mm", min_value=1, allow_zero=False),
            ParameterSpec(name="L", unit="mm", min_value=1, allow_zero=False),
        ],
        formulas=ShapeFormulas(
            volume=FormulaDefinition(expression="s^2 * L", unit="mm3"),
            edge_length=FormulaDefinition(expression="4 * s", unit="mm"),
        ),
    )
    fields.update(overrides)
    return ShapeDefinition(**fields)


def test_builtin_catalog_publishes():
    for shape in BUILTIN_SHAPES:
        validate_shape(shape)
    library = default_library()
    assert len(library.list_ids()) == len({s.id for s in BUILTIN_SHAPES})


def test_builtin_catalog_covers_categories():
    library = default_library()
    for shape_id in ["rectangular_plate", "circular_plate", "custom_plate", "cylindrical_shell",
                     "conical_shell", "hemispherical_head", "ellipsoidal_head", "torispherical_head",
                     "flat_head", "hx_tube", "hx_tube_sheet", "hx_baffle", "structural_section"]:
        assert library.has(shape_id), shape_id


def test_unknown_variable_rejected():
    shape = bar_shape(formulas=ShapeFormulas(volume=FormulaDefinition(expression="s^2 * LEN", unit="mm3")))
    with pytest.raises(UnknownVariableError):
        validate_shape(shape)


def test_syntax_error_rejected():
    shape = bar_shape(formulas=ShapeFormulas(volume=FormulaDefinition(expression="s^2 * (L", unit="mm3")))
    with pytest.raises(FormulaSyntaxError):
        validate_shape(shape)


def test_wrong_unit_dimension_rejected():
    shape = bar_shape(formulas=ShapeFormulas(volume=FormulaDefinition(expression="s^2 * L", unit="mm2")))
    with pytest.raises(ShapeDefinitionError):
        validate_shape(shape)


def test_reserved_parameter_name_rejected():
    shape = bar_shape(parameters=[
        ParameterSpec(name="s", unit="mm"),
        ParameterSpec(name="L", unit="mm"),
        ParameterSpec(name="density", unit="kg/m3"),
    ])
    with pytest.raises(ShapeDefinitionError):
        validate_shape(shape)


def test_volume_cannot_reference_itself():
    shape = bar_shape(formulas=ShapeFormulas(volume=FormulaDefinition(expression="volume * 2", unit="mm3")))
    with pytest.raises(UnknownVariableError):
        validate_shape(shape)

    # Other formulas may use the evaluated volume and the material density
    shape = bar_shape(formulas=ShapeFormulas(
        volume=FormulaDefinition(expression="s^2 * L", unit="mm3"),
        weight=FormulaDefinition(expression="volume / 1e9 * density", unit="kg"),
    ))
    validate_shape(shape)


def test_missing_volume_and_primitive():
    shape = bar_shape(formulas=ShapeFormulas(edge_length=FormulaDefinition(expression="4 * s", unit="mm")))
    with pytest.raises(ShapeDefinitionError):
        validate_shape(shape)


def test_fabrication_wiring_checked():
    shape = bar_shape(fabrication=FabricationModel(welding=True))
    with pytest.raises(ShapeDefinitionError):
        validate_shape(shape)

    shape = bar_shape(fabrication=FabricationModel(
        cutting=True, labor_hours=FormulaDefinition(expression="L / 1000", unit="kg"),
    ))
    with pytest.raises(ShapeDefinitionError):
        validate_shape(shape)


def test_publish_is_idempotent_per_version():
    library = ShapeLibrary()
    first = library.publish(bar_shape())
    assert library.publish(bar_shape()) == first
    with pytest.raises(ShapeDefinitionError):
        library.publish(bar_shape(name="Square Bar (edited)"))


def test_revise_creates_next_version():
    library = ShapeLibrary([bar_shape()])
    revised = library.revise("square_bar", description="Bright bar")
    assert revised.version == 2
    assert library.versions("square_bar") == [1, 2]
    assert library.get("square_bar").description == "Bright bar"
    assert library.get("square_bar", 1).description is None


def test_get_unknown_shape():
    library = default_library()
    with pytest.raises(ShapeNotFoundError):
        library.get("dodecahedron")
    with pytest.raises(ShapeNotFoundError):
        library.get("rectangular_plate", 99)


def test_list_shapes_filters():
    library = default_library()
    heads = library.list_shapes(category=GeometryCategory.HEAD_TORISPHERICAL)
    assert [s.id for s in heads] == ["torispherical_head"]

    tube_shapes = {s.id for s in library.list_shapes(material_category="tube_carbon_steel")}
    assert "hx_tube" in tube_shapes
    assert "rectangular_plate" not in tube_shapes
