"""
API tests — HTTP surface over formulas, shapes, materials, BOMs and templates.

Tests:
1.  test_health                              — /health responds
2.  test_seed_and_list_materials             — seed is idempotent
3.  test_update_material                     — price edit, unknown unit rejected
4.  test_formula_validate                    — variables listed; unknown name -> 422 body
5.  test_formula_evaluate                    — value in declared unit; unit bindings; 1/0 -> 422
6.  test_list_and_get_shapes                 — category filter, version lookup
7.  test_calculate_shape                     — 157 kg plate priced from the catalog
8.  test_publish_shape                       — stored and served back; edited body rejected
9.  test_create_bom_and_add_items            — version bumps, rollup returned
10. test_stale_write_conflict                — 409 with both versions
11. test_move_cycle_rejected                 — 422 StructuralError, nothing saved
12. test_update_and_delete_item              — PATCH parameters, DELETE subtree
13. test_recalculate_picks_up_new_prices     — summary changes only after recalculate
14. test_items_export                        — flattened rows
15. test_instantiate_template                — priced, stored, listed
16. test_failed_instantiation_stores_nothing — 422 and no BOM row
17. test_not_found                           — 404 for every resource
"""


def create_bom(client, name="Pump skid"):
    response = client.post("/api/boms/", json={"name": name})
    assert response.status_code == 200
    return response.json()["tree"]


def add_plate(client, bom_id, parent_id, version, name="Base plate", **overrides):
    body = {
        "expected_version": version,
        "parent_id": parent_id,
        "name": name,
        "shape": {
            "shape_id": "rectangular_plate",
            "parameters": {"L": 1000, "W": 2000, "t": 10},
            "material_id": "CS_SA516_70",
        },
    }
    body.update(overrides)
    return client.post(f"/api/boms/{bom_id}/items", json=body)


def add_assembly(client, bom_id, parent_id, version, name):
    return client.post(f"/api/boms/{bom_id}/items", json={
        "expected_version": version, "parent_id": parent_id, "name": name, "kind": "assembly",
    })


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "app": "bomcost"}


def test_seed_and_list_materials(client):
    first = client.get("/api/materials/seed").json()
    assert first["seeded"] > 0
    assert client.get("/api/materials/seed").json()["seeded"] == 0

    materials = client.get("/api/materials/").json()
    assert len(materials) == first["seeded"]
    plate = client.get("/api/materials/CS_SA516_70").json()
    assert plate["density_kg_m3"] == 7850.0
    assert plate["price"] == 85.0


def test_update_material(seeded_client):
    response = seeded_client.patch("/api/materials/CS_SA516_70", json={"price": 92.5})
    assert response.status_code == 200
    assert response.json()["price"] == 92.5

    response = seeded_client.patch("/api/materials/CS_SA516_70", json={"unit": "furlong"})
    assert response.status_code == 422
    assert response.json()["error"] == "UnitError"


def test_formula_validate(client):
    response = client.post("/api/formulas/validate", json={
        "expression": "L * W * t", "unit": "mm3", "parameter_names": ["L", "W", "t"],
    })
    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert sorted(response.json()["variables"]) == ["L", "W", "t"]

    response = client.post("/api/formulas/validate", json={
        "expression": "L * W * THICK", "parameter_names": ["L", "W", "t"],
    })
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "UnknownVariableError"
    assert body["detail"]["names"] == ["THICK"]
    assert "THICK" in body["message"]


def test_formula_evaluate(client):
    response = client.post("/api/formulas/evaluate", json={
        "expression": "L * W", "unit": "mm2", "bindings": {"L": 1000, "W": 2000},
    })
    assert response.status_code == 200
    assert response.json()["value"] == 2000000.0
    assert response.json()["unit"] == "mm2"

    response = client.post("/api/formulas/evaluate", json={"expression": "L / (W - W)", "bindings": {"L": 1, "W": 2}})
    assert response.status_code == 422
    assert response.json()["error"] == "DivisionByZeroError"

    response = client.post("/api/formulas/evaluate", json={
        "expression": "L * 2", "unit": "mm", "bindings": {"L": {"value": 1, "unit": "m"}},
    })
    assert response.status_code == 200
    assert abs(response.json()["value"] - 2000.0) < 1e-6

    response = client.post("/api/formulas/evaluate", json={
        "expression": "L * W", "unit": "mm2", "bindings": {"L": {"value": 1, "unit": "m"}, "W": 10},
    })
    assert response.status_code == 422
    assert response.json()["error"] == "UnitError"

    response = client.post("/api/formulas/evaluate", json={"expression": "L * 2", "bindings": {"L": [1, 2]}})
    assert response.status_code == 422
    assert response.json()["error"] == "ParameterError"


def test_list_and_get_shapes(client):
    shapes = client.get("/api/shapes/").json()
    assert "rectangular_plate" in {s["id"] for s in shapes}

    heads = client.get("/api/shapes/", params={"category": "head_torispherical"}).json()
    assert [s["id"] for s in heads] == ["torispherical_head"]

    shape = client.get("/api/shapes/hx_tube", params={"version": 1}).json()
    assert shape["category"] == "tube"


def test_calculate_shape(seeded_client):
    response = seeded_client.post("/api/shapes/rectangular_plate/calculate", json={
        "parameters": {"L": 1000, "W": 2000, "t": 10}, "material_id": "CS_SA516_70", "quantity": 2,
    })
    assert response.status_code == 200
    result = response.json()
    assert abs(result["weight"]["value"] - 157.0) < 1e-6
    assert result["weight"]["unit"] == "kg"
    assert abs(result["material_cost"] - 2 * 157.0 * 85.0) < 1e-6
    assert result["fabrication_cost"] > 0

    response = seeded_client.post("/api/shapes/rectangular_plate/calculate", json={
        "parameters": {"L": 1000, "W": 2000, "t": 0}, "material_id": "CS_SA516_70",
    })
    assert response.status_code == 422
    assert response.json()["error"] == "ParameterRangeError"


def test_publish_shape(client):
    shape = {
        "id": "square_bar",
        "name": "Square Bar",
        "category": "other",
        "parameters": [
            {"name": "s", "unit": "mm", "min_value": 1, "allow_zero": False},
            {"name": "L", "unit": "mm", "min_value": 1, "allow_zero": False},
        ],
        "formulas": {"volume": {"expression": "s^2 * L", "unit": "mm3"}},
    }
    response = client.post("/api/shapes/", json=shape)
    assert response.status_code == 200
    assert response.json()["version"] == 1
    assert client.get("/api/shapes/square_bar").json()["name"] == "Square Bar"

    response = client.post("/api/shapes/", json={**shape, "name": "Square Bar (edited)"})
    assert response.status_code == 422

    response = client.post("/api/shapes/", json={
        **shape, "id": "bad_bar", "formulas": {"volume": {"expression": "s^2 * LEN", "unit": "mm3"}},
    })
    assert response.status_code == 422
    assert response.json()["error"] == "UnknownVariableError"


def test_create_bom_and_add_items(seeded_client):
    tree = create_bom(seeded_client)
    assert tree["version"] == 0

    response = add_plate(seeded_client, tree["id"], tree["root_id"], 0)
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 1
    assert body["item"]["item_number"] == "1.1"
    assert abs(body["item_rollup"]["weight_kg"] - 157.0) < 1e-6
    assert abs(body["summary"]["total_weight"]["value"] - 157.0) < 1e-6

    response = add_plate(seeded_client, tree["id"], tree["root_id"], 1, name="Cover", quantity=3)
    assert response.json()["version"] == 2
    assert abs(response.json()["summary"]["total_weight"]["value"] - 4 * 157.0) < 1e-6

    stored = seeded_client.get(f"/api/boms/{tree['id']}").json()
    assert stored["tree"]["version"] == 2
    assert len(stored["tree"]["items"]) == 3


def test_stale_write_conflict(seeded_client):
    tree = create_bom(seeded_client)
    assert add_plate(seeded_client, tree["id"], tree["root_id"], 0).status_code == 200

    response = add_plate(seeded_client, tree["id"], tree["root_id"], 0, name="Late edit")
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "ConflictError"
    assert body["detail"]["expected_version"] == 0
    assert body["detail"]["actual_version"] == 1
    assert seeded_client.get(f"/api/boms/{tree['id']}").json()["tree"]["version"] == 1


def test_move_cycle_rejected(seeded_client):
    tree = create_bom(seeded_client)
    outer = add_assembly(seeded_client, tree["id"], tree["root_id"], 0, "Frame").json()["item"]
    inner = add_assembly(seeded_client, tree["id"], outer["id"], 1, "Sub-frame").json()["item"]

    response = seeded_client.post(f"/api/boms/{tree['id']}/items/{outer['id']}/move", json={
        "expected_version": 2, "new_parent_id": inner["id"],
    })
    assert response.status_code == 422
    assert response.json()["error"] == "StructuralError"
    assert seeded_client.get(f"/api/boms/{tree['id']}").json()["tree"]["version"] == 2

    response = seeded_client.post(f"/api/boms/{tree['id']}/items/{inner['id']}/move", json={
        "expected_version": 2, "new_parent_id": tree["root_id"], "position": 0,
    })
    assert response.status_code == 200
    assert response.json()["item"]["item_number"] == "1.1"


def test_update_and_delete_item(seeded_client):
    tree = create_bom(seeded_client)
    frame = add_assembly(seeded_client, tree["id"], tree["root_id"], 0, "Frame").json()["item"]
    plate = add_plate(seeded_client, tree["id"], frame["id"], 1).json()["item"]

    response = seeded_client.patch(f"/api/boms/{tree['id']}/items/{plate['id']}", json={
        "expected_version": 2, "parameters": {"t": 20},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 3
    assert body["item"]["shape"]["parameters"]["t"] == 20
    assert abs(body["item_rollup"]["weight_kg"] - 314.0) < 1e-6

    response = seeded_client.delete(f"/api/boms/{tree['id']}/items/{frame['id']}",
                                    params={"expected_version": 3})
    assert response.status_code == 200
    assert set(response.json()["removed"]) == {frame["id"], plate["id"]}
    assert response.json()["summary"]["total_weight"]["value"] == 0


def test_recalculate_picks_up_new_prices(seeded_client):
    tree = create_bom(seeded_client)
    before = add_plate(seeded_client, tree["id"], tree["root_id"], 0).json()["summary"]

    seeded_client.patch("/api/materials/CS_SA516_70", json={"price": 170.0})
    unchanged = seeded_client.get(f"/api/boms/{tree['id']}/summary").json()
    assert unchanged["total_material_cost"] == before["total_material_cost"]

    response = seeded_client.post(f"/api/boms/{tree['id']}/recalculate", json={"expected_version": 1})
    assert response.status_code == 200
    after = response.json()["summary"]
    assert abs(after["total_material_cost"] - 2 * before["total_material_cost"]) < 1e-6
    assert after["tree_version"] == 2


def test_items_export(seeded_client):
    tree = create_bom(seeded_client)
    add_plate(seeded_client, tree["id"], tree["root_id"], 0)
    rows = seeded_client.get(f"/api/boms/{tree['id']}/items").json()
    assert [r["item_number"] for r in rows] == ["1", "1.1"]
    assert rows[1]["material_id"] == "CS_SA516_70"


def test_instantiate_template(seeded_client):
    templates = seeded_client.get("/api/templates/").json()
    assert "hx_tema_bem" in {t["id"] for t in templates}

    response = seeded_client.post("/api/templates/hx_tema_bem/instantiate", json={
        "parameters": {"SHELL_DIAMETER": 1000, "SHELL_LENGTH": 3000, "TUBE_COUNT": 100},
        "name": "E-101 Feed preheater",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["tree"]["name"] == "E-101 Feed preheater"
    assert body["summary"]["partial"] is False
    assert body["summary"]["final_price"] > body["summary"]["direct_cost"]
    tubes = [i for i in body["tree"]["items"].values() if i["shape"] and i["shape"]["shape_id"] == "hx_tube"]
    assert len(tubes) == 100

    listed = seeded_client.get("/api/boms/").json()
    assert [b["id"] for b in listed] == [body["tree"]["id"]]
    assert listed[0]["template_id"] == "hx_tema_bem"


def test_failed_instantiation_stores_nothing(seeded_client):
    response = seeded_client.post("/api/templates/hx_tema_bem/instantiate", json={
        "parameters": {"SHELL_DIAMETER": 1000, "SHELL_LENGTH": 3000},
    })
    assert response.status_code == 422
    assert response.json()["error"] == "MissingTemplateParameterError"
    assert response.json()["detail"]["parameter"] == "TUBE_COUNT"

    response = seeded_client.post("/api/templates/hx_tema_bem/instantiate", json={
        "parameters": {"SHELL_DIAMETER": 9000, "SHELL_LENGTH": 3000, "TUBE_COUNT": 100},
    })
    assert response.status_code == 422
    assert response.json()["error"] == "TemplateParameterRangeError"
    assert seeded_client.get("/api/boms/").json() == []


def test_not_found(seeded_client):
    assert seeded_client.get("/api/boms/missing").status_code == 404
    assert seeded_client.get("/api/templates/missing").status_code == 404
    assert seeded_client.get("/api/shapes/missing").status_code == 404
    assert seeded_client.get("/api/materials/missing").status_code == 404

    tree = create_bom(seeded_client)
    response = seeded_client.patch(f"/api/boms/{tree['id']}/items/missing", json={
        "expected_version": 0, "name": "x",
    })
    assert response.status_code == 404
    assert response.json()["error"] == "ItemNotFoundError"
