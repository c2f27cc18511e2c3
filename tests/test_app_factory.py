import pytest

from dinner_planner.config import Config
from dinner_planner.logging_setup import LOG_BUFFER


def test_request_id_echoed_or_generated(client):
    r = client.get("/openapi.json", headers={"X-Request-Id": "abc-123"})
    assert r.headers["X-Request-Id"] == "abc-123"
    r = client.get("/openapi.json")
    assert len(r.headers["X-Request-Id"]) == 36


def test_security_headers_present(client):
    r = client.get("/openapi.json")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert "Strict-Transport-Security" not in r.headers  # TESTING


def test_discovery_lists_routes(client):
    spec = client.get("/openapi.json").get_json()
    paths = spec["paths"]
    assert set(paths["/meal-types"]) == {"get", "post"}
    assert set(paths["/meal-types/{meal_type_id}"]) == {"get", "delete"}
    assert "post" in paths["/people/{person_id}/access-plans"]
    assert "get" in paths["/documents/{document_id}"]
    assert {"get", "post"} <= set(paths["/recipes/{recipe_id}/ingredients"])
    assert {"patch", "delete"} <= set(paths["/recipes/{recipe_id}/illustrations/{document_id}"])
    assert {"get", "post"} <= set(paths["/victuals"]) and {"get", "post"} <= set(paths["/dishes"])
    assert not any("{path}" in p for p in paths)


def test_cors_allow_list(tmp_path):
    from dinner_planner.app_factory import create_app
    from dinner_planner.db import create_all

    app = create_app(
        {
            "TESTING": True,
            "database_url": f"sqlite:///{tmp_path / 'cors.db'}",
            "FORCE_DB_REINIT": True,
            "cors_allowed_origins": ["https://planner.example"],
        }
    )
    with app.app_context():
        create_all()
    c = app.test_client()
    r = c.options("/meal-types", headers={"Origin": "https://planner.example"})
    assert r.headers["Access-Control-Allow-Origin"] == "https://planner.example"
    assert "X-Access-Key" in r.headers["Access-Control-Allow-Headers"]
    r = c.options("/meal-types", headers={"Origin": "https://evil.example"})
    assert "Access-Control-Allow-Origin" not in r.headers


def test_init_db_cli(app_session):
    result = app_session.test_cli_runner().invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "schema created" in result.output


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("QUOTA_LOCK_SCOPE", "GLOBAL")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    cfg = Config.from_env()
    assert cfg.cors_allowed_origins == ["https://a.example", "https://b.example"]
    assert cfg.quota_lock_scope == "global"
    assert cfg.log_level == "DEBUG"
    flask_cfg = cfg.to_flask_dict()
    assert flask_cfg["DISCOVERY_PATH"] == "/openapi.json"
    assert flask_cfg["SEQUENCER_ISOLATION_LEVEL"] == "SERIALIZABLE"


def test_unknown_lock_scope_fails_fast(tmp_path):
    from dinner_planner.app_factory import create_app

    with pytest.raises(ValueError):
        create_app({"database_url": f"sqlite:///{tmp_path / 'x.db'}", "FORCE_DB_REINIT": True, "quota_lock_scope": "tenant"})


def test_warnings_land_in_support_buffer(client):
    LOG_BUFFER.clear()
    client.get("/people/requester", headers={"X-Request-Id": "rid-42"})
    entries = [e for e in LOG_BUFFER if e["request_id"] == "rid-42"]
    assert entries
    assert entries[0]["level"] == "WARNING"
    assert entries[0]["path"] == "/people/requester"
