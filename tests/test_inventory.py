"""
tests/test_inventory.py -- Stock reduction, bulk reduction and reorder endpoints.

Store-level tests use the per-test shop_store fixture; endpoint tests use
the module-scoped api harness.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.errors import InsufficientStock, NotFound
from shop.models import InventoryItem
from shop.store import ShopStore


def _item(name: str, quantity: float, min_threshold: float = 5, price: float = 10, **extra) -> dict:
    return {
        "name": name,
        "category": extra.pop("category", "Parts"),
        "supplier": extra.pop("supplier", "Acme Spares"),
        "quantity": quantity,
        "price": price,
        "minThreshold": min_threshold,
        **extra,
    }


def _create(api, **kwargs) -> dict:
    resp = api.client.post("/api/inventory", json=_item(**kwargs), headers=api.headers("owner"))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class TestReduceStockStore:
    def test_reduction_writes_movement(self, shop_store) -> None:
        item = shop_store.create_item(InventoryItem(name="Brake pad", quantity=10, min_threshold=3, price=25))
        result = shop_store.reduce_stock(item.id, 4, reason="job_usage", job_id="J-1")

        assert result.item.quantity == 6
        assert result.stock_status == "good"
        assert result.movement.quantity == -4
        assert result.movement.previous_quantity == 10
        assert result.movement.new_quantity == 6

        movements = shop_store.list_movements(item.id)
        assert movements.total == 1
        assert movements.items[0].reason == "job_usage"
        assert movements.items[0].job_id == "J-1"

    def test_insufficient_stock_leaves_quantity_unchanged(self, shop_store) -> None:
        item = shop_store.create_item(InventoryItem(name="Spark plug", quantity=5, min_threshold=2))
        with pytest.raises(InsufficientStock) as excinfo:
            shop_store.reduce_stock(item.id, 8)
        assert excinfo.value.message == "Insufficient stock. Available: 5, Requested: 8"
        assert shop_store.get_item(item.id).quantity == 5
        assert shop_store.list_movements(item.id).total == 0

    def test_unknown_item(self, shop_store) -> None:
        with pytest.raises(NotFound):
            shop_store.reduce_stock(12345, 1)

    def test_reduce_to_zero_is_out(self, shop_store) -> None:
        item = shop_store.create_item(InventoryItem(name="Fuse", quantity=2, min_threshold=1))
        result = shop_store.reduce_stock(item.id, 2)
        assert result.item.quantity == 0
        assert result.stock_status == "out"

    def test_concurrent_reductions_never_oversell(self, tmp_path) -> None:
        store = ShopStore(db_url=f"sqlite:///{tmp_path / 'shop.db'}")
        try:
            item = store.create_item(InventoryItem(name="Oil filter", quantity=5, min_threshold=1))
            barrier = threading.Barrier(2)

            def take_three():
                barrier.wait()
                try:
                    store.reduce_stock(item.id, 3)
                    return True
                except InsufficientStock:
                    return False

            with ThreadPoolExecutor(max_workers=2) as pool:
                results = list(pool.map(lambda _: take_three(), range(2)))

            assert sorted(results) == [False, True]
            assert store.get_item(item.id).quantity == 2
            assert store.list_movements(item.id).total == 1
        finally:
            store.close()

    def test_update_bumps_version(self, shop_store) -> None:
        item = shop_store.create_item(InventoryItem(name="Wiper", quantity=2))
        updated = shop_store.update_item(item.id, price=7.5)
        assert updated.version == item.version + 1
        assert updated.price == 7.5


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestInventoryRoutes:
    def test_duplicate_sku_conflicts(self, api) -> None:
        _create(api, name="Air filter", quantity=3, sku="AF-100")
        resp = api.client.post("/api/inventory", json=_item("Air filter 2", 3, sku="AF-100"), headers=api.headers("owner"))
        assert resp.status_code == 409
        assert resp.json()["message"] == "An item with this SKU already exists"

    def test_reduce_endpoint(self, api) -> None:
        item = _create(api, name="Coolant", quantity=10, min_threshold=4)
        resp = api.client.put(
            f"/api/inventory/{item['id']}/reduce", json={"quantity": 7, "reason": "job_usage"}, headers=api.headers("owner")
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"] == "Stock reduced by 7 units. New quantity: 3"
        assert body["data"]["quantity"] == 3
        assert body["data"]["stockStatus"] == "low"
        assert body["data"]["previousQuantity"] == 10
        assert body["data"]["reductionAmount"] == 7
        assert body["stockMovement"]["newQuantity"] == 3

    def test_reduce_too_much_is_400(self, api) -> None:
        item = _create(api, name="Gasket", quantity=2)
        resp = api.client.put(f"/api/inventory/{item['id']}/reduce", json={"quantity": 3}, headers=api.headers("owner"))
        assert resp.status_code == 400
        assert resp.json()["code"] == "insufficient_stock"
        assert api.client.get(f"/api/inventory/{item['id']}", headers=api.headers("owner")).json()["data"]["quantity"] == 2

    def test_reduce_zero_quantity_is_400(self, api) -> None:
        item = _create(api, name="Bolt", quantity=2)
        resp = api.client.put(f"/api/inventory/{item['id']}/reduce", json={"quantity": 0}, headers=api.headers("owner"))
        assert resp.status_code == 400

    def test_bulk_reduce_reports_each_line(self, api) -> None:
        a = _create(api, name="Bulk A", quantity=10)
        b = _create(api, name="Bulk B", quantity=10)
        c = _create(api, name="Bulk C", quantity=1)
        body = {
            "items": [
                {"itemId": a["id"], "quantity": 2},
                {"itemId": b["id"], "quantity": 3},
                {"itemId": c["id"], "quantity": 5},
            ],
            "jobId": "JOB-9",
        }
        resp = api.client.post("/api/inventory/bulk-reduce", json=body, headers=api.headers("receptionist"))
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["processed"] == 2
        assert data["failed"] == 1
        assert data["errors"][0]["itemId"] == c["id"]
        assert resp.json()["message"] == "Processed 2 items successfully, 1 errors"

        movements = api.client.get(f"/api/inventory/{a['id']}/movements", headers=api.headers("owner")).json()
        assert movements["total"] == 1
        assert movements["data"][0]["reason"] == "bulk_adjustment"
        assert movements["data"][0]["jobId"] == "JOB-9"
        assert api.shop_store.get_item(c["id"]).quantity == 1

    def test_bulk_reduce_line_without_item_id(self, api) -> None:
        body = {"items": [{"quantity": 1}]}
        data = api.client.post("/api/inventory/bulk-reduce", json=body, headers=api.headers("owner")).json()["data"]
        assert data["processed"] == 0
        assert data["errors"] == [{"itemId": None, "error": "itemId is required"}]

    def test_low_stock_critical(self, api) -> None:
        _create(api, name="Zero stock part", quantity=0, min_threshold=3)
        body = api.client.get("/api/inventory/low-stock?critical=true", headers=api.headers("mechanic")).json()
        assert body["critical"] is True
        assert body["count"] == len(body["data"])
        assert all(i["quantity"] == 0 for i in body["data"])
        assert all(i["stockStatus"] == "out" for i in body["data"])

    def test_reorder_suggestions_summary(self, api) -> None:
        body = api.client.get("/api/inventory/reorder-suggestions?maxItems=5", headers=api.headers("owner")).json()
        assert body["success"] is True
        assert len(body["data"]) <= 5
        assert body["summary"]["totalItems"] == len(body["data"])
        if body["data"]:
            assert body["data"][0]["priority"] == "critical"

    def test_analytics_shape(self, api) -> None:
        data = api.client.get("/api/inventory/analytics", headers=api.headers("owner")).json()["data"]
        assert set(data) == {"overview", "categoryBreakdown", "topSuppliers", "stockLevels"}
        assert data["overview"]["totalItems"] >= 1

    def test_mechanic_cannot_see_analytics(self, api) -> None:
        assert api.client.get("/api/inventory/analytics", headers=api.headers("mechanic")).status_code == 403

    def test_null_only_update_is_400(self, api) -> None:
        item = _create(api, name="Wheel nut", quantity=40)
        before = api.shop_store.get_item(item["id"])
        resp = api.client.put(f"/api/inventory/{item['id']}", json={"quantity": None}, headers=api.headers("owner"))
        assert resp.status_code == 400
        assert resp.json()["message"] == "No fields to update."
        stored = api.shop_store.get_item(item["id"])
        assert stored.quantity == 40
        assert stored.version == before.version
        assert stored.last_updated == before.last_updated
