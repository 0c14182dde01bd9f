"""
api/routes/v1/inventory.py -- Parts inventory, stock reduction and reorder planning.

Routes (literal paths registered before /inventory/{item_id}):
  GET    /api/inventory                      -- owner, receptionist, mechanic
  POST   /api/inventory                      -- owner, receptionist
  GET    /api/inventory/low-stock            -- owner, receptionist, mechanic
  GET    /api/inventory/analytics            -- owner, receptionist
  GET    /api/inventory/reorder-suggestions  -- owner, receptionist
  POST   /api/inventory/bulk-reduce          -- owner, receptionist
  GET    /api/inventory/{item_id}            -- owner, receptionist, mechanic
  PUT    /api/inventory/{item_id}            -- owner, receptionist
  DELETE /api/inventory/{item_id}            -- owner
  PUT    /api/inventory/{item_id}/reduce     -- owner, receptionist
  GET    /api/inventory/{item_id}/movements  -- owner, receptionist

Stock reduction is one atomic conditional UPDATE in the store. A bulk
reduction runs each line independently: a missing item or insufficient stock
on one line is reported in errors and the remaining lines still apply.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from api.models import BulkReduceRequest, InventoryCreate, InventoryPatch, StockReduceRequest
from api.shaping import ok, paged, shape
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import ApiError, NotFound
from shop import inventory
from shop.models import InventoryItem, StockReduction, SupplierInfo
from shop.store import ShopStore

logger = logging.getLogger("garage.shop")

router = APIRouter(dependencies=[Depends(get_current_user)])

_readers = require_roles("owner", "receptionist", "mechanic")
_managers = require_roles("owner", "receptionist")
_owner = require_roles("owner")


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


def _reduction_view(reduction: StockReduction, requested: float) -> dict:
    return {
        **shape(reduction.item),
        "stockStatus": reduction.stock_status,
        "previousQuantity": reduction.movement.previous_quantity,
        "reductionAmount": requested,
        "reason": reduction.movement.reason,
    }


@router.get("/inventory")
def list_items(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    search: str = Query("", max_length=100),
    identity: Identity = Depends(_readers),
) -> dict:
    return paged(_store(request).list_items(page, limit, search.strip()))


@router.post("/inventory", status_code=201)
def create_item(request: Request, body: InventoryCreate, identity: Identity = Depends(_managers)) -> dict:
    fields = body.store_fields()
    fields["supplier_info"] = SupplierInfo(**fields["supplier_info"])
    item = _store(request).create_item(InventoryItem(**fields))
    return ok(item, "Item created")


@router.get("/inventory/low-stock")
def low_stock(
    request: Request,
    critical: bool = False,
    limit: int = Query(50, ge=1, le=1000),
    identity: Identity = Depends(_readers),
) -> dict:
    """Items at or below threshold; critical=true narrows to items with none left."""
    items = inventory.low_stock(_store(request).all_items(), critical=critical, limit=limit)
    return {"success": True, "data": shape(items), "count": len(items), "critical": critical}


@router.get("/inventory/analytics")
def analytics(request: Request, identity: Identity = Depends(_managers)) -> dict:
    return ok(inventory.analytics(_store(request).all_items()))


@router.get("/inventory/reorder-suggestions")
def reorder_suggestions(
    request: Request,
    min_value: float = Query(0, ge=0, alias="minValue"),
    max_items: int = Query(20, ge=1, le=1000, alias="maxItems"),
    identity: Identity = Depends(_managers),
) -> dict:
    result = inventory.reorder_suggestions(_store(request).all_items(), min_value=min_value, max_items=max_items)
    return {"success": True, "data": shape(result["suggestions"]), "summary": shape(result["summary"])}


@router.post("/inventory/bulk-reduce")
def bulk_reduce(request: Request, body: BulkReduceRequest, identity: Identity = Depends(_managers)) -> dict:
    store = _store(request)
    results: list[dict] = []
    errors: list[dict] = []
    for line in body.items:
        if line.item_id is None:
            errors.append({"itemId": None, "error": "itemId is required"})
            continue
        if line.quantity is None or line.quantity <= 0:
            errors.append({"itemId": line.item_id, "error": "Quantity must be a positive number"})
            continue
        try:
            reduction = store.reduce_stock(
                line.item_id,
                line.quantity,
                reason=line.reason or body.reason,
                job_id=body.job_id,
                notes=body.notes,
            )
        except ApiError as exc:
            errors.append({"itemId": line.item_id, "error": exc.message})
            continue
        results.append(
            {
                "itemId": reduction.item.id,
                "itemName": reduction.item.name,
                "previousQuantity": reduction.movement.previous_quantity,
                "reductionAmount": line.quantity,
                "newQuantity": reduction.movement.new_quantity,
                "stockStatus": reduction.stock_status,
                "reason": reduction.movement.reason,
            }
        )
    logger.info("bulk reduce by user id=%s processed=%d failed=%d", identity.id, len(results), len(errors))
    return {
        "success": True,
        "data": {"processed": len(results), "failed": len(errors), "results": results, "errors": errors},
        "message": f"Processed {len(results)} items successfully, {len(errors)} errors",
    }


@router.get("/inventory/{item_id}")
def get_item(request: Request, item_id: int, identity: Identity = Depends(_readers)) -> dict:
    item = _store(request).get_item(item_id)
    if item is None:
        raise NotFound("Item not found")
    return ok(item)


@router.put("/inventory/{item_id}")
def update_item(request: Request, item_id: int, body: InventoryPatch, identity: Identity = Depends(_managers)) -> dict:
    item = _store(request).update_item(item_id, **body.patch_fields())
    if item is None:
        raise NotFound("Item not found")
    return ok(item, "Item updated")


@router.delete("/inventory/{item_id}")
def delete_item(request: Request, item_id: int, identity: Identity = Depends(_owner)) -> dict:
    if not _store(request).delete_item(item_id):
        raise NotFound("Item not found")
    return ok(message="Deleted")


@router.put("/inventory/{item_id}/reduce")
def reduce_stock(
    request: Request, item_id: int, body: StockReduceRequest, identity: Identity = Depends(_managers)
) -> dict:
    reduction = _store(request).reduce_stock(
        item_id, body.quantity, reason=body.reason or "adjustment", job_id=body.job_id, notes=body.notes
    )
    return {
        "success": True,
        "data": _reduction_view(reduction, body.quantity),
        "message": f"Stock reduced by {body.quantity:g} units. New quantity: {reduction.item.quantity:g}",
        "stockMovement": shape(reduction.movement),
    }


@router.get("/inventory/{item_id}/movements")
def list_movements(
    request: Request,
    item_id: int,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(20, ge=1, le=1000),
    identity: Identity = Depends(_managers),
) -> dict:
    store = _store(request)
    if store.get_item(item_id) is None:
        raise NotFound("Item not found")
    return paged(store.list_movements(item_id, page, limit))
