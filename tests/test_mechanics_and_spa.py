"""
tests/test_mechanics_and_spa.py -- Mechanic roster CRUD and single-page-app hosting.
"""

from __future__ import annotations

import pytest

import web.routes


class TestMechanics:
    BODY = {"name": "Ravi Kumar", "email": "ravi@garage.test", "skills": ["brakes", "electrical"]}

    def test_create_and_read(self, api) -> None:
        resp = api.client.post("/api/mechanics", json=self.BODY, headers=api.headers("owner"))
        assert resp.status_code == 201, resp.text
        mechanic = resp.json()["data"]
        assert mechanic["skills"] == ["brakes", "electrical"]
        assert mechanic["availability"] == "available"

        listing = api.client.get("/api/mechanics", headers=api.headers("mechanic")).json()
        assert listing["total"] == 1

    def test_duplicate_email_conflicts(self, api) -> None:
        resp = api.client.post("/api/mechanics", json=self.BODY, headers=api.headers("owner"))
        assert resp.status_code == 409
        assert resp.json()["message"] == "A mechanic with this email already exists"

    def test_receptionist_cannot_write(self, api) -> None:
        body = {**self.BODY, "email": "other@garage.test"}
        assert api.client.post("/api/mechanics", json=body, headers=api.headers("receptionist")).status_code == 403

    def test_update_availability(self, api) -> None:
        mechanic = api.client.get("/api/mechanics", headers=api.headers("owner")).json()["data"][0]
        resp = api.client.put(
            f"/api/mechanics/{mechanic['id']}", json={"availability": "busy"}, headers=api.headers("owner")
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["availability"] == "busy"
        assert resp.json()["data"]["skills"] == ["brakes", "electrical"]

    def test_delete_unknown_is_404(self, api) -> None:
        resp = api.client.delete("/api/mechanics/999999", headers=api.headers("owner"))
        assert resp.status_code == 404


class TestSpaHosting:
    @pytest.fixture()
    def dist(self, tmp_path, monkeypatch):
        (tmp_path / "index.html").write_text("<html>garage</html>")
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "app.js").write_text("console.log('garage')")
        monkeypatch.setattr(web.routes, "frontend_root", lambda: tmp_path)
        return tmp_path

    def test_static_asset_served(self, api, dist) -> None:
        resp = api.client.get("/assets/app.js")
        assert resp.status_code == 200
        assert "garage" in resp.text

    def test_deep_link_falls_back_to_index(self, api, dist) -> None:
        resp = api.client.get("/jobs/42")
        assert resp.status_code == 200
        assert resp.text == "<html>garage</html>"

    def test_path_traversal_falls_back_to_index(self, api, dist) -> None:
        resp = api.client.get("/..%2f..%2fetc/passwd")
        assert resp.status_code == 200
        assert resp.text == "<html>garage</html>"

    def test_api_paths_never_fall_back(self, api, dist) -> None:
        resp = api.client.get("/api/not-a-route")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Route not found"

    def test_missing_build(self, api, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(web.routes, "frontend_root", lambda: tmp_path / "missing")
        resp = api.client.get("/")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Frontend not built"
