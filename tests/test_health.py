"""
tests/test_health.py -- Tests for the unauthenticated health and version endpoints.

Coverage:
  - GET /api/health returns 200 with status ok and database ok
  - GET /api/version reports name, version and runtime mode
  - Neither endpoint requires authentication
  - Unknown /api paths return the JSON "Route not found" envelope for any method
"""

from __future__ import annotations


def test_health_returns_ok(api):
    resp = api.client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == {"status": "ok", "database": "ok"}


def test_version_reports_name_and_mode(api):
    body = api.client.get("/api/version").json()
    assert body["success"] is True
    assert body["data"]["name"] == "garage-manager"
    assert body["data"]["version"] == "1.0.0"
    assert body["data"]["env"] == "development"


def test_health_no_auth_required(api):
    """Health endpoint is accessible without any authentication headers."""
    resp = api.client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_security_headers_present(api):
    resp = api.client.get("/api/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_unknown_api_route_is_json_404(api):
    resp = api.client.get("/api/no-such-thing")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Route not found"


def test_unknown_api_route_any_method(api):
    resp = api.client.post("/api/no-such-thing", json={})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Route not found"


def test_oversized_body_rejected(api):
    resp = api.client.post(
        "/api/auth/login",
        content=b"x" * (1024 * 1024 + 1),
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 413
    assert resp.json()["success"] is False
