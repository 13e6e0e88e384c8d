"""Application wiring: health, error envelope, request logging."""
from fastapi.testclient import TestClient

from core.storage import get_storage
from main import _loggable_path, app

from conftest import API


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Welcome to Cherry Studio API"}
    assert client.get("/health").json() == {"status": "ok"}


def test_unknown_route_uses_envelope(client):
    resp = client.get(f"{API}/nowhere")

    assert resp.status_code == 404
    assert resp.json() == {"status": "error", "message": "Resource not found"}


def test_malformed_json_is_400(client):
    resp = client.post(
        f"{API}/auth/login",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json()["status"] == "error"


def test_unexpected_error_is_generic_500(member_headers):
    class ExplodingStorage:
        base_url = "https://storage.local"

        def put_bytes(self, key, body, content_type):
            raise RuntimeError("bucket credentials leaked here")

        def delete(self, key):
            pass

    app.dependency_overrides[get_storage] = ExplodingStorage
    try:
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = client.post(
                f"{API}/auth/upload-avatar",
                files={"avatar": ("me.png", b"\x89PNG", "image/png")},
                headers=member_headers,
            )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {"status": "error", "message": "Internal server error"}


def test_reset_token_is_masked_in_logs():
    path = f"{API}/auth/reset-password/abcdef0123"

    assert _loggable_path(path) == f"{API}/auth/reset-password/***"
    assert _loggable_path(f"{API}/auth/me") == f"{API}/auth/me"
