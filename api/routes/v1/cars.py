"""
api/routes/v1/cars.py -- Customer vehicle records.

Routes:
  GET    /api/cars             -- owner, receptionist, mechanic, customer
  GET    /api/cars/{car_id}    -- owner, receptionist, mechanic, customer
  POST   /api/cars             -- owner, receptionist, customer
  PUT    /api/cars/{car_id}    -- owner, receptionist
  DELETE /api/cars/{car_id}    -- owner, receptionist

search matches license plate, customer name, customer phone, make and model
(case-insensitive substring, any field).
"""

from fastapi import APIRouter, Depends, Query, Request

from api.models import CarCreate, CarPatch
from api.shaping import ok, paged
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import NotFound
from shop.models import Car
from shop.store import ShopStore

router = APIRouter(dependencies=[Depends(get_current_user)])

_readers = require_roles("owner", "receptionist", "mechanic", "customer")
_creators = require_roles("owner", "receptionist", "customer")
_editors = require_roles("owner", "receptionist")


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


@router.get("/cars")
def list_cars(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    search: str = Query("", max_length=100),
    identity: Identity = Depends(_readers),
) -> dict:
    return paged(_store(request).list_cars(page, limit, search.strip()))


@router.get("/cars/{car_id}")
def get_car(request: Request, car_id: int, identity: Identity = Depends(_readers)) -> dict:
    car = _store(request).get_car(car_id)
    if car is None:
        raise NotFound("Car not found")
    return ok(car)


@router.post("/cars", status_code=201)
def create_car(request: Request, body: CarCreate, identity: Identity = Depends(_creators)) -> dict:
    car = _store(request).create_car(Car(**body.store_fields()))
    return ok(car, "Car created")


@router.put("/cars/{car_id}")
def update_car(request: Request, car_id: int, body: CarPatch, identity: Identity = Depends(_editors)) -> dict:
    car = _store(request).update_car(car_id, **body.patch_fields())
    if car is None:
        raise NotFound("Car not found")
    return ok(car, "Car updated")


@router.delete("/cars/{car_id}")
def delete_car(request: Request, car_id: int, identity: Identity = Depends(_editors)) -> dict:
    if not _store(request).delete_car(car_id):
        raise NotFound("Car not found")
    return ok(message="Deleted")
