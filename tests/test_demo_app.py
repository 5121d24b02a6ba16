from __future__ import annotations

from fastapi.testclient import TestClient

from formguard.config.guard import GuardSettings
from formguard.demo import create_app
from formguard.infrastructure.state.token_store import InMemoryTokenStore


def _settings(monkeypatch, **env: str) -> GuardSettings:
    for name in ("CSRF_PREFIX", "CSRF_STORAGE_LIMIT", "CSRF_STRENGTH", "CSRF_PERSISTENT_TOKEN_MODE"):
        monkeypatch.delenv(name, raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return GuardSettings()


def test_health_route_issues_session_cookie(monkeypatch) -> None:
    client = TestClient(create_app(_settings(monkeypatch), session_secret="demo-secret"))

    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "session" in response.cookies


def test_form_submission_round_trip_through_cookie_session(monkeypatch) -> None:
    client = TestClient(create_app(_settings(monkeypatch), session_secret="demo-secret"))

    pair = client.get("/form").json()
    response = client.post(
        "/submit",
        data={"csrf_name": pair["csrf_name"], "csrf_value": pair["csrf_value"], "title": "hello"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["fields"] == {"title": "hello"}
    assert body["next"]["csrf_name"] != pair["csrf_name"]


def test_submission_without_token_is_rejected(monkeypatch) -> None:
    client = TestClient(create_app(_settings(monkeypatch), session_secret="demo-secret"))

    response = client.post("/submit", data={"title": "forged"})

    assert response.status_code == 400
    assert response.text == "Failed CSRF check!"


def test_environment_settings_shape_the_demo(monkeypatch) -> None:
    store = InMemoryTokenStore()
    settings = _settings(monkeypatch, CSRF_PREFIX="xsrf", CSRF_PERSISTENT_TOKEN_MODE="true")
    client = TestClient(create_app(settings, session_secret="demo-secret", storage=store))

    first = client.get("/form").json()
    second = client.get("/form").json()

    assert first == second
    assert first["xsrf_name"].startswith("xsrf")
    assert len(store) == 1
