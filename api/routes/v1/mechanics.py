"""
api/routes/v1/mechanics.py -- Mechanic roster.

Reads are open to owner, receptionist and mechanic; writes are owner only.
search matches name or email. A duplicate email is a 409 Conflict.
"""

from fastapi import APIRouter, Depends, Query, Request

from api.models import MechanicCreate, MechanicPatch
from api.shaping import ok, paged
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import NotFound
from shop.models import Mechanic
from shop.store import ShopStore

router = APIRouter(dependencies=[Depends(get_current_user)])

_readers = require_roles("owner", "receptionist", "mechanic")
_owner = require_roles("owner")


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


@router.get("/mechanics")
def list_mechanics(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    search: str = Query("", max_length=100),
    identity: Identity = Depends(_readers),
) -> dict:
    return paged(_store(request).list_mechanics(page, limit, search.strip()))


@router.get("/mechanics/{mechanic_id}")
def get_mechanic(request: Request, mechanic_id: int, identity: Identity = Depends(_readers)) -> dict:
    mechanic = _store(request).get_mechanic(mechanic_id)
    if mechanic is None:
        raise NotFound("Mechanic not found")
    return ok(mechanic)


@router.post("/mechanics", status_code=201)
def create_mechanic(request: Request, body: MechanicCreate, identity: Identity = Depends(_owner)) -> dict:
    return ok(_store(request).create_mechanic(Mechanic(**body.store_fields())), "Mechanic created")


@router.put("/mechanics/{mechanic_id}")
def update_mechanic(
    request: Request, mechanic_id: int, body: MechanicPatch, identity: Identity = Depends(_owner)
) -> dict:
    mechanic = _store(request).update_mechanic(mechanic_id, **body.patch_fields())
    if mechanic is None:
        raise NotFound("Mechanic not found")
    return ok(mechanic, "Mechanic updated")


@router.delete("/mechanics/{mechanic_id}")
def delete_mechanic(request: Request, mechanic_id: int, identity: Identity = Depends(_owner)) -> dict:
    if not _store(request).delete_mechanic(mechanic_id):
        raise NotFound("Mechanic not found")
    return ok(message="Deleted")
