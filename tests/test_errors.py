import pytest
from flask import abort

from dinner_planner.errors import ConflictError, QuotaExceededError, UnauthorizedError, ValidationError
from dinner_planner.pagination import PaginationError, apply_page, parse_page_params


def _install(app):
    @app.get("/boom/<kind>")
    def boom(kind):
        if kind == "conflict":
            raise ConflictError("counter_conflict")
        if kind == "quota":
            raise QuotaExceededError()
        if kind == "auth":
            raise UnauthorizedError()
        if kind == "gone":
            abort(410)
        if kind == "validation":
            raise ValidationError([{"name": "x", "reason": "required"}])
        raise RuntimeError("secret internals")


@pytest.fixture
def boom_client(app_session, member):
    _install(app_session)
    c = app_session.test_client()
    return c, member[1]


@pytest.mark.parametrize(
    "kind,status,detail",
    [("conflict", 409, "counter_conflict"), ("quota", 429, "rate_limited"), ("auth", 401, "unauthorized")],
)
def test_domain_errors_map_to_problem_json(boom_client, kind, status, detail):
    c, headers = boom_client
    r = c.get(f"/boom/{kind}", headers=headers)
    assert r.status_code == status
    assert r.mimetype == "application/problem+json"
    body = r.get_json()
    assert body["status"] == status
    assert body["detail"] == detail
    assert "traceback" not in r.get_data(as_text=True).lower()


def test_validation_error_lists_fields(boom_client):
    c, headers = boom_client
    r = c.get("/boom/validation", headers=headers)
    assert r.status_code == 422
    assert r.get_json()["errors"] == [{"name": "x", "reason": "required"}]


def test_unhandled_exception_is_500_with_incident(boom_client):
    c, headers = boom_client
    r = c.get("/boom/other", headers=headers)
    assert r.status_code == 500
    body = r.get_json()
    assert body["incident_id"]
    assert "secret internals" not in r.get_data(as_text=True)


def test_unknown_route_is_404_problem(client, member):
    r = client.get("/nowhere", headers=member[1])
    assert r.status_code == 404
    assert r.mimetype == "application/problem+json"


def test_wrong_method_is_405_with_allow_header(client, member):
    r = client.put("/meal-types", headers=member[1], json={})
    assert r.status_code == 405
    assert r.mimetype == "application/problem+json"
    assert r.get_json()["status"] == 405
    allowed = {m.strip() for m in r.headers["Allow"].split(",")}
    assert {"GET", "POST"} <= allowed


def test_other_client_errors_keep_their_status(boom_client):
    c, headers = boom_client
    r = c.get("/boom/gone", headers=headers)
    assert r.status_code == 410
    assert r.mimetype == "application/problem+json"
    assert r.get_json()["type"].endswith("gone")


def test_parse_page_params():
    assert parse_page_params({}) == {"offset": 0, "limit": None}
    assert parse_page_params({"paging-offset": "5", "paging-limit": "5000"}) == {"offset": 5, "limit": 1000}
    for bad in ({"paging-offset": "-1"}, {"paging-limit": "0"}, {"paging-limit": "ten"}):
        with pytest.raises(PaginationError):
            parse_page_params(bad)


def test_apply_page():
    items = list(range(10))
    assert apply_page(items, {"offset": 8, "limit": None}) == [8, 9]
    assert apply_page(items, {"offset": 2, "limit": 3}) == [2, 3, 4]
