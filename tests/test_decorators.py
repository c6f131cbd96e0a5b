# tests/test_decorators.py
from conftest import CRON_SECRET


def test_login_required_answers_401_json(client):
    for method, path in [("get", "/api/subscription/limits"), ("post", "/api/ads/credit"),
                         ("get", "/api/settings"), ("post", "/api/cleanup")]:
        resp = getattr(client, method)(path)
        assert resp.status_code == 401, path
        assert resp.get_json() == {"error": "Unauthorized"}


def test_session_without_id_is_anonymous(client):
    with client.session_transaction() as sess:
        sess["user"] = {"email": "ghost@test.com"}
    assert client.get("/api/links").status_code == 401


def test_cron_required_needs_exact_bearer(client, app, monkeypatch):
    assert client.get("/api/cleanup", headers={"Authorization": CRON_SECRET}).status_code == 401
    assert client.get("/api/cleanup", headers={"Authorization": f"Bearer {CRON_SECRET}"}).status_code == 200
    monkeypatch.setitem(app.config, "CRON_SECRET", "")
    assert client.get("/api/cleanup", headers={"Authorization": "Bearer "}).status_code == 401


def test_health_is_public(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()
