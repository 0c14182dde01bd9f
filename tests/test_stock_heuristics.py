"""
tests/test_stock_heuristics.py -- Unit tests for shop/inventory.py.

Pure functions over InventoryItem lists; no database involved.
"""

from __future__ import annotations

from shop.inventory import analytics, low_stock, reorder_quantity, reorder_suggestions, stock_status
from shop.models import InventoryItem


def _item(name, quantity, threshold, price=10.0, category="Parts", supplier="Acme", item_id=None):
    return InventoryItem(
        name=name,
        quantity=quantity,
        min_threshold=threshold,
        price=price,
        category=category,
        supplier=supplier,
        id=item_id,
    )


class TestStockStatus:
    def test_out(self):
        assert stock_status(_item("a", 0, 5)) == "out"

    def test_low_at_threshold(self):
        assert stock_status(_item("a", 5, 5)) == "low"

    def test_good_above_threshold(self):
        assert stock_status(_item("a", 6, 5)) == "good"


class TestReorderQuantity:
    def test_out_of_stock_floor(self):
        assert reorder_quantity(_item("a", 0, 2)) == 20

    def test_out_of_stock_scales_with_threshold(self):
        assert reorder_quantity(_item("a", 0, 10)) == 30

    def test_low_stock_floor(self):
        assert reorder_quantity(_item("a", 1, 3)) == 10

    def test_low_stock_scales_with_threshold(self):
        assert reorder_quantity(_item("a", 4, 8)) == 16


def test_low_stock_sorted_by_quantity_then_name():
    items = [_item("b", 2, 5), _item("a", 2, 5), _item("c", 0, 5), _item("d", 9, 5)]
    names = [entry["name"] for entry in low_stock(items)]
    assert names == ["c", "a", "b"]


def test_low_stock_critical_only_depleted():
    items = [_item("b", 2, 5), _item("c", 0, 5)]
    result = low_stock(items, critical=True)
    assert [entry["name"] for entry in result] == ["c"]
    assert result[0]["stock_status"] == "out"
    assert result[0]["needs_reorder"] is True


def test_low_stock_respects_limit():
    items = [_item(f"i{n}", 0, 5) for n in range(10)]
    assert len(low_stock(items, limit=3)) == 3


def test_reorder_suggestions_rank_critical_first():
    items = [
        _item("cheap-low", 1, 5, price=1.0),
        _item("pricey-low", 1, 5, price=100.0),
        _item("out", 0, 5, price=1.0),
        _item("fine", 50, 5, price=100.0),
    ]
    result = reorder_suggestions(items)
    names = [s["name"] for s in result["suggestions"]]
    assert names == ["out", "pricey-low", "cheap-low"]
    assert result["summary"]["critical_items"] == 1
    assert result["summary"]["low_stock_items"] == 2
    # out: 20 * 1.0; pricey-low: 10 * 100.0; cheap-low: 10 * 1.0
    assert result["summary"]["total_estimated_cost"] == 20 + 1000 + 10


def test_reorder_suggestions_min_value_and_cap():
    items = [_item("cheap", 1, 5, price=0.5), _item("dear", 1, 5, price=50.0), _item("dearer", 0, 5, price=60.0)]
    result = reorder_suggestions(items, min_value=100, max_items=1)
    assert [s["name"] for s in result["suggestions"]] == ["dearer"]
    assert result["summary"]["total_items"] == 1


def test_analytics_overview_and_breakdown():
    items = [
        _item("a", 0, 4, price=5.0, category="Filters", supplier="Acme", item_id=1),
        _item("b", 2, 4, price=10.0, category="Filters", supplier="Acme", item_id=2),
        _item("c", 10, 4, price=3.0, category="Oils", supplier="Lube Co", item_id=3),
    ]
    report = analytics(items)
    overview = report["overview"]
    assert overview["total_items"] == 3
    assert overview["out_of_stock"] == 1
    assert overview["low_stock"] == 1
    assert overview["in_stock"] == 1
    assert overview["total_value"] == 2 * 10.0 + 10 * 3.0
    assert overview["out_of_stock_value"] == 4 * 5.0

    filters = next(c for c in report["category_breakdown"] if c["category"] == "Filters")
    assert filters["total"] == 2
    assert filters["low_stock"] == 1
    assert filters["out_of_stock"] == 1

    assert report["top_suppliers"][0]["supplier"] == "Lube Co"
    assert [lvl["id"] for lvl in report["stock_levels"]["out_of_stock"]] == [1]


def test_analytics_empty_inventory():
    report = analytics([])
    assert report["overview"]["total_items"] == 0
    assert report["category_breakdown"] == []
    assert report["top_suppliers"] == []
