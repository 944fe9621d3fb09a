from fastapi.testclient import TestClient

from taskboard.main import app


def test_health():
    client = TestClient(app)
    body = client.get("/api/health").json()
    assert body["success"] is True
    assert body["data"]["status"] == "ok"
    assert "timestamp" in body["data"]
    assert "uptime" in body["data"]


def test_root_welcome():
    client = TestClient(app)
    assert client.get("/").json() == {"success": True, "message": "Welcome to the Taskboard API"}


def test_version():
    client = TestClient(app)
    assert client.get("/api/version").json()["data"] == {"version": "1.0.0"}


def test_unknown_route_uses_error_envelope():
    client = TestClient(app)
    res = client.get("/nonexistent")
    assert res.status_code == 404
    assert res.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "The requested resource was not found"},
    }
