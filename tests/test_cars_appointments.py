"""
tests/test_cars_appointments.py -- Vehicle and appointment CRUD through the API.

Coverage:
  - Create/list/get/update/delete for cars, including pagination totals
  - VIN uniqueness surfaces as 409
  - Customers see only appointments carrying their own email
"""

from __future__ import annotations


def _car(plate: str, **extra) -> dict:
    return {
        "licensePlate": plate,
        "customerName": "Sunil Fernando",
        "customerPhone": "0719876543",
        "make": "Honda",
        "model": "Civic",
        "year": 2018,
        **extra,
    }


class TestCars:
    def test_pagination(self, api) -> None:
        created = []
        for n in range(12):
            resp = api.client.post("/api/cars", json=_car(f"PG-{n:04d}"), headers=api.headers("receptionist"))
            assert resp.status_code == 201, resp.text
            created.append(resp.json()["data"]["id"])

        body = api.client.get("/api/cars?page=2&limit=5", headers=api.headers("owner")).json()
        assert body["page"] == 2
        assert body["limit"] == 5
        assert body["total"] == 12
        newest_first = created[::-1]
        assert [c["id"] for c in body["data"]] == newest_first[5:10]

    def test_search_matches_plate(self, api) -> None:
        api.client.post("/api/cars", json=_car("SRCH-777"), headers=api.headers("owner"))
        body = api.client.get("/api/cars?search=srch", headers=api.headers("owner")).json()
        assert [c["licensePlate"] for c in body["data"]] == ["SRCH-777"]

    def test_partial_update_keeps_other_fields(self, api) -> None:
        car = api.client.post("/api/cars", json=_car("UPD-0001"), headers=api.headers("owner")).json()["data"]
        resp = api.client.put(f"/api/cars/{car['id']}", json={"color": "Blue"}, headers=api.headers("owner"))
        assert resp.status_code == 200
        updated = resp.json()["data"]
        assert updated["color"] == "Blue"
        assert updated["make"] == "Honda"
        assert "version" not in updated

    def test_empty_update_is_400(self, api) -> None:
        car = api.client.post("/api/cars", json=_car("UPD-0002"), headers=api.headers("owner")).json()["data"]
        resp = api.client.put(f"/api/cars/{car['id']}", json={}, headers=api.headers("owner"))
        assert resp.status_code == 400

    def test_duplicate_vin_conflicts(self, api) -> None:
        first = api.client.post("/api/cars", json=_car("VIN-0001", vin="JH4KA8260MC000001"), headers=api.headers("owner"))
        assert first.status_code == 201
        second = api.client.post("/api/cars", json=_car("VIN-0002", vin="JH4KA8260MC000001"), headers=api.headers("owner"))
        assert second.status_code == 409
        assert second.json()["message"] == "A car with this VIN already exists"

    def test_blank_vins_do_not_conflict(self, api) -> None:
        a = api.client.post("/api/cars", json=_car("BLANK-01", vin=""), headers=api.headers("owner"))
        b = api.client.post("/api/cars", json=_car("BLANK-02", vin="  "), headers=api.headers("owner"))
        assert a.status_code == 201
        assert b.status_code == 201

    def test_delete_then_get_is_404(self, api) -> None:
        car = api.client.post("/api/cars", json=_car("DEL-0001"), headers=api.headers("owner")).json()["data"]
        resp = api.client.delete(f"/api/cars/{car['id']}", headers=api.headers("owner"))
        assert resp.status_code == 200
        resp = api.client.get(f"/api/cars/{car['id']}", headers=api.headers("owner"))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Car not found"

    def test_invalid_year_is_400(self, api) -> None:
        resp = api.client.post("/api/cars", json=_car("OLD-0001", year=1850), headers=api.headers("owner"))
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "year"


class TestAppointments:
    BOOKING = {
        "customerName": "Test Customer",
        "vehicle": "Toyota Axio",
        "serviceType": "Full service",
        "preferredDate": "2030-01-15T09:00:00Z",
    }

    def test_customer_booking_is_stamped_with_own_email(self, api) -> None:
        body = {**self.BOOKING, "customerEmail": "someone-else@test.com"}
        resp = api.client.post("/api/appointments", json=body, headers=api.headers("customer"))
        assert resp.status_code == 201, resp.text
        assert resp.json()["data"]["customerEmail"] == "customer@test.com"
        assert resp.json()["data"]["status"] == "pending"

    def test_customer_sees_only_own_appointments(self, api) -> None:
        other = {**self.BOOKING, "customerName": "Other", "customerEmail": "other@test.com"}
        other_id = api.client.post("/api/appointments", json=other, headers=api.headers("receptionist")).json()["data"]["id"]

        listing = api.client.get("/api/appointments", headers=api.headers("customer")).json()
        assert listing["total"] >= 1
        assert all(a["customerEmail"] == "customer@test.com" for a in listing["data"])

        resp = api.client.get(f"/api/appointments/{other_id}", headers=api.headers("customer"))
        assert resp.status_code == 404

    def test_staff_updates_status(self, api) -> None:
        created = api.client.post("/api/appointments", json=self.BOOKING, headers=api.headers("owner")).json()["data"]
        resp = api.client.put(
            f"/api/appointments/{created['id']}", json={"status": "scheduled"}, headers=api.headers("receptionist")
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "scheduled"

    def test_bad_status_is_400(self, api) -> None:
        created = api.client.post("/api/appointments", json=self.BOOKING, headers=api.headers("owner")).json()["data"]
        resp = api.client.put(
            f"/api/appointments/{created['id']}", json={"status": "teleported"}, headers=api.headers("owner")
        )
        assert resp.status_code == 400
