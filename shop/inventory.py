"""
shop/inventory.py -- Stock classification, reorder heuristics and analytics.

Pure functions over InventoryItem lists. No I/O: the route layer loads items
from ShopStore and passes them in, which keeps every rule here unit-testable
without a database.

Classification (threshold = item.min_threshold):
  out   quantity == 0
  low   0 < quantity <= threshold
  good  quantity > threshold

Reorder quantity:
  out   max(3 * threshold, 20)
  low   max(2 * threshold, 10)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict
from typing import Iterable

from shop.models import InventoryItem

_TOP_SUPPLIERS = 5


def stock_status(item: InventoryItem) -> str:
    if item.quantity <= 0:
        return "out"
    if item.quantity <= item.min_threshold:
        return "low"
    return "good"


def reorder_quantity(item: InventoryItem) -> float:
    if item.quantity <= 0:
        return max(3 * item.min_threshold, 20)
    return max(2 * item.min_threshold, 10)


def low_stock(items: Iterable[InventoryItem], critical: bool = False, limit: int = 50) -> list[dict]:
    """Items at or below their threshold, or only depleted items when critical.

    Sorted by quantity ascending, then name. Each entry is the item's fields
    plus stock_status, needs_reorder and suggested_reorder_qty.
    """
    if critical:
        selected = [i for i in items if i.quantity == 0]
    else:
        selected = [i for i in items if i.quantity <= i.min_threshold]
    selected.sort(key=lambda i: (i.quantity, i.name))
    return [
        {
            **asdict(item),
            "stock_status": "out" if item.quantity == 0 else "low",
            "needs_reorder": True,
            "suggested_reorder_qty": max(2 * item.min_threshold, 10),
        }
        for item in selected[: max(limit, 0)]
    ]


def reorder_suggestions(items: Iterable[InventoryItem], min_value: float = 0, max_items: int = 20) -> dict:
    """Purchase suggestions for every item at or below its threshold.

    Ranked critical (out of stock) first, then by estimated cost descending;
    suggestions below min_value are dropped and the rest truncated to max_items.
    """
    suggestions = []
    for item in sorted(items, key=lambda i: (i.quantity, i.name)):
        if item.quantity > item.min_threshold:
            continue
        qty = reorder_quantity(item)
        cost = qty * item.price
        if cost < min_value:
            continue
        suggestions.append(
            {
                **asdict(item),
                "suggested_reorder_qty": qty,
                "estimated_cost": cost,
                "priority": "critical" if item.quantity <= 0 else "high",
                "stock_status": stock_status(item),
            }
        )
    suggestions.sort(key=lambda s: (s["priority"] != "critical", -s["estimated_cost"]))
    suggestions = suggestions[: max(max_items, 0)]
    return {
        "suggestions": suggestions,
        "summary": {
            "total_items": len(suggestions),
            "total_estimated_cost": sum(s["estimated_cost"] for s in suggestions),
            "critical_items": sum(1 for s in suggestions if s["priority"] == "critical"),
            "low_stock_items": sum(1 for s in suggestions if s["priority"] == "high"),
        },
    }


def analytics(items: list[InventoryItem]) -> dict:
    """Inventory-wide aggregates: overview, per-category, top suppliers, stock levels.

    Values are quantity * price, except out-of-stock value which is the cost
    of restocking to threshold (threshold * price).
    """
    out = [i for i in items if i.quantity <= 0]
    low = [i for i in items if 0 < i.quantity <= i.min_threshold]

    categories: dict[str, dict] = defaultdict(lambda: {"total": 0, "low_stock": 0, "out_of_stock": 0, "value": 0.0})
    suppliers: dict[str, dict] = defaultdict(lambda: {"total_items": 0, "total_value": 0.0, "low_stock_items": 0})
    for item in items:
        status = stock_status(item)
        cat = categories[item.category or "Uncategorized"]
        cat["total"] += 1
        cat["value"] += item.quantity * item.price
        if status == "low":
            cat["low_stock"] += 1
        elif status == "out":
            cat["out_of_stock"] += 1

        sup = suppliers[item.supplier or "Unknown"]
        sup["total_items"] += 1
        sup["total_value"] += item.quantity * item.price
        if item.quantity <= item.min_threshold:
            sup["low_stock_items"] += 1

    top_suppliers = sorted(
        ({"supplier": name, **stats} for name, stats in suppliers.items()),
        key=lambda s: -s["total_value"],
    )[:_TOP_SUPPLIERS]

    def _level(item: InventoryItem) -> dict:
        return {
            "id": item.id,
            "name": item.name,
            "quantity": item.quantity,
            "min_threshold": item.min_threshold,
            "category": item.category,
        }

    return {
        "overview": {
            "total_items": len(items),
            "out_of_stock": len(out),
            "low_stock": len(low),
            "in_stock": len(items) - len(out) - len(low),
            "total_value": sum(i.quantity * i.price for i in items),
            "low_stock_value": sum(i.quantity * i.price for i in low),
            "out_of_stock_value": sum(i.min_threshold * i.price for i in out),
        },
        "category_breakdown": [{"category": name, **stats} for name, stats in sorted(categories.items())],
        "top_suppliers": top_suppliers,
        "stock_levels": {
            "out_of_stock": [_level(i) for i in out],
            "low_stock": [_level(i) for i in low],
        },
    }
