from unittest.mock import patch


def test_health_returns_ok(anon_client):
    resp = anon_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_ready_with_store(anon_client):
    resp = anon_client.get("/ready")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ready"
    assert data["store"] is True


def test_ready_degraded_when_store_fails(anon_client, store):
    with patch.object(store, "ping", side_effect=RuntimeError("connection lost")):
        resp = anon_client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"status": "degraded", "store": False, "detail": "connection lost"}
