from fastapi.testclient import TestClient

from assesscore.utils import invitations


def test_health(client):
    assert client.get("/api/health").json()["status"] == "ok"


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_unexpected_error_uses_envelope(app, headers, sample_test, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(invitations, "list_for_test", broken)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get(f"/api/invitations/test/{sample_test}/invitations", headers=headers["employer"])

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}
