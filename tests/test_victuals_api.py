from conftest import basic_auth, seed_person, seed_plan


def _create(client, headers, **body):
    r = client.post("/victuals", json=body, headers=headers)
    assert r.status_code == 201, r.get_json()
    return int(r.get_data(as_text=True))


def _bob(client):
    pid = seed_person(email="bob@example.org", password="pw", forename="Bob", surname="Builder")
    return pid, {"X-Access-Key": seed_plan(pid, application="bob-app"), "Authorization": basic_auth("bob@example.org", "pw")}


def test_insert_find_and_author(client, member):
    pid, headers = member
    vid = _create(client, headers, alias="Carrot", description="orange root", diet="VEGAN")
    r = client.get(f"/victuals/{vid}", headers=headers)
    assert r.status_code == 200
    body = r.get_json()
    assert body["alias"] == "Carrot"
    assert body["diet"] == "VEGAN"
    assert body["author-reference"] == pid
    assert body["version"] == 1

    r = client.get(f"/victuals/{vid}/author", headers=headers)
    assert r.get_json()["email"] == "ada@example.org"
    assert client.get("/victuals/999", headers=headers).status_code == 404


def test_update_checks_version_and_author(client, member):
    _, headers = member
    vid = _create(client, headers, alias="Trout", diet="PESCATARIAN")
    r = client.post("/victuals", json={"id": vid, "version": 1, "alias": "Rainbow trout", "diet": "PESCATARIAN"}, headers=headers)
    assert r.status_code == 200
    assert client.get(f"/victuals/{vid}", headers=headers).get_json()["alias"] == "Rainbow trout"
    r = client.post("/victuals", json={"id": vid, "version": 1, "alias": "Trout"}, headers=headers)
    assert r.status_code == 409

    _, bob = _bob(client)
    r = client.post("/victuals", json={"id": vid, "version": 2, "alias": "Mine now"}, headers=bob)
    assert r.status_code == 403


def test_validation(client, member):
    _, headers = member
    r = client.post("/victuals", json={"diet": "FRUITARIAN"}, headers=headers)
    assert r.status_code == 422
    names = {e["name"] for e in r.get_json()["errors"]}
    assert names == {"alias", "diet"}
    assert client.post("/victuals", json={"alias": "x" * 129}, headers=headers).status_code == 422
    assert client.post("/victuals", json={"alias": "Salt", "avatar-reference": "one"}, headers=headers).status_code == 400
    assert client.post("/victuals", json={"alias": "Salt", "avatar-reference": 999}, headers=headers).status_code == 404
    _create(client, headers, alias="Salt")
    assert client.post("/victuals", json={"alias": "Salt"}, headers=headers).status_code == 409


def test_query_filters_sorted_by_alias(client, member):
    _, headers = member
    _create(client, headers, alias="Milk", diet="LACTO_VEGETARIAN", description="whole milk")
    _create(client, headers, alias="Egg", diet="LACTO_OVO_VEGETARIAN")
    _create(client, headers, alias="Beef", diet="CARNIVORIAN", description="minced 100%")
    _create(client, headers, alias="Apple")

    def aliases(query):
        r = client.get(f"/victuals{query}", headers=headers)
        assert r.status_code == 200
        return [v["alias"] for v in r.get_json()]

    assert aliases("") == ["Apple", "Beef", "Egg", "Milk"]
    assert aliases("?diet=VEGAN&diet=CARNIVORIAN") == ["Apple", "Beef"]
    assert aliases("?description-fragment=milk") == ["Milk"]
    assert aliases("?description-fragment=100%25") == ["Beef"]
    assert aliases("?alias=Egg") == ["Egg"]
    assert aliases("?authored=false") == []
    assert aliases("?authored=true&paging-offset=1&paging-limit=2") == ["Beef", "Egg"]
    assert aliases("?max-created=0") == []
    assert client.get("/victuals?diet=PALEO", headers=headers).status_code == 400
    assert client.get("/victuals?authored=maybe", headers=headers).status_code == 400


def test_delete_rules(client, member, admin):
    _, headers = member
    _, admin_headers = admin
    _, bob = _bob(client)
    mine = _create(client, headers, alias="Rice")
    theirs = _create(client, bob, alias="Oats")

    assert client.delete(f"/victuals/{theirs}", headers=headers).status_code == 403
    r = client.delete(f"/victuals/{mine}", headers=headers)
    assert r.status_code == 200
    assert int(r.get_data(as_text=True)) == mine
    assert client.get(f"/victuals/{mine}", headers=headers).status_code == 404
    assert client.delete(f"/victuals/{theirs}", headers=admin_headers).status_code == 200
    assert client.delete(f"/victuals/{theirs}", headers=admin_headers).status_code == 404


def test_victual_used_by_a_recipe_cannot_be_deleted(client, member):
    _, headers = member
    vid = _create(client, headers, alias="Flour")
    rid = int(client.post("/recipes", json={"title": "Bread"}, headers=headers).get_data())
    r = client.post(f"/recipes/{rid}/ingredients", json={"amount": 500, "victual-reference": vid}, headers=headers)
    assert r.status_code == 201
    r = client.delete(f"/victuals/{vid}", headers=headers)
    assert r.status_code == 409
    assert r.get_json()["detail"] == "victual_in_use"
