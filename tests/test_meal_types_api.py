def _create(client, headers, **body):
    r = client.post("/meal-types", json=body, headers=headers)
    assert r.status_code == 201, r.get_json()
    return r.get_json()


def test_append_and_list_in_course_order(client, member):
    pid, headers = member
    a = _create(client, headers, **{"course-type": "APPETIZER"})
    b = _create(client, headers, **{"course-type": "DESSERT"})
    c = _create(client, headers, **{"course-type": "APPETIZER", "course-number": 1})
    assert a["course-number"] == 1 and b["course-number"] == 2 and c["course-number"] == 1
    assert c["author-reference"] == pid

    r = client.get("/meal-types", headers=headers)
    assert r.status_code == 200
    assert [m["id"] for m in r.get_json()] == [c["id"], a["id"], b["id"]]
    assert [m["course-number"] for m in r.get_json()] == [1, 2, 3]


def test_filter_and_paging(client, member):
    _, headers = member
    for ct in ("APPETIZER", "MAIN_COURSE", "APPETIZER", "DESSERT"):
        _create(client, headers, **{"course-type": ct})
    r = client.get("/meal-types?course-type=APPETIZER", headers=headers)
    assert [m["course-number"] for m in r.get_json()] == [1, 3]
    r = client.get("/meal-types?paging-offset=1&paging-limit=2", headers=headers)
    assert [m["course-number"] for m in r.get_json()] == [2, 3]
    r = client.get("/meal-types?course-type=SOUP", headers=headers)
    assert r.status_code == 422
    r = client.get("/meal-types?paging-limit=0", headers=headers)
    assert r.status_code == 400


def test_update_moves_and_bumps_version(client, member):
    _, headers = member
    rows = [_create(client, headers) for _ in range(4)]
    moved = rows[1]
    r = client.post(
        "/meal-types",
        json={"id": moved["id"], "version": moved["version"], "course-number": 4},
        headers=headers,
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["course-number"] == 4
    assert body["version"] == moved["version"] + 1
    numbers = {m["id"]: m["course-number"] for m in client.get("/meal-types", headers=headers).get_json()}
    assert numbers == {rows[0]["id"]: 1, rows[1]["id"]: 4, rows[2]["id"]: 2, rows[3]["id"]: 3}


def test_stale_version_is_409(client, member):
    _, headers = member
    row = _create(client, headers)
    r = client.post("/meal-types", json={"id": row["id"], "version": 99, "course-type": "DESSERT"}, headers=headers)
    assert r.status_code == 409
    assert r.get_json()["detail"] == "version_mismatch"


def test_out_of_range_positions_are_400(client, member):
    _, headers = member
    row = _create(client, headers)
    assert client.post("/meal-types", json={"course-number": 3}, headers=headers).status_code == 400
    assert client.post("/meal-types", json={"id": row["id"], "course-number": 0}, headers=headers).status_code == 400


def test_invalid_body_is_422(client, member):
    _, headers = member
    r = client.post("/meal-types", json={"course-number": "two"}, headers=headers)
    assert r.status_code == 422
    assert r.get_json()["errors"] == [{"name": "course-number", "reason": "not_an_integer"}]
    r = client.post("/meal-types", data="[]", content_type="application/json", headers=headers)
    assert r.status_code == 422


def test_find_and_delete(client, member):
    _, headers = member
    first, second = _create(client, headers), _create(client, headers)
    r = client.get(f"/meal-types/{second['id']}", headers=headers)
    assert r.status_code == 200 and r.get_json()["course-number"] == 2
    r = client.delete(f"/meal-types/{first['id']}", headers=headers)
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "id": first["id"]}
    assert client.get(f"/meal-types/{first['id']}", headers=headers).status_code == 404
    assert client.get(f"/meal-types/{second['id']}", headers=headers).get_json()["course-number"] == 1
    assert client.delete(f"/meal-types/{first['id']}", headers=headers).status_code == 404


def test_writes_need_gate_identity(client):
    r = client.post("/meal-types", json={})
    assert r.status_code == 429


def test_dish_reference(client, member):
    _, headers = member
    dish = int(client.post("/dishes", json={"dish-type": "Soup"}, headers=headers).get_data())
    row = _create(client, headers, **{"dish-reference": dish})
    assert row["dish-reference"] == dish

    # the reference travels with every save; leaving it out clears it
    r = client.post("/meal-types", json={"id": row["id"], "version": row["version"]}, headers=headers)
    assert r.status_code == 200
    assert r.get_json()["dish-reference"] is None

    assert client.post("/meal-types", json={"dish-reference": 999}, headers=headers).status_code == 404
    r = client.post("/meal-types", json={"dish-reference": "soup"}, headers=headers)
    assert r.status_code == 422
    assert r.get_json()["errors"] == [{"name": "dish-reference", "reason": "not_an_integer"}]
