"""
api/routes/v1/appointments.py -- Service bookings.

Routes:
  GET    /api/appointments                   -- owner, receptionist, customer
  GET    /api/appointments/{appointment_id}  -- owner, receptionist, customer
  POST   /api/appointments                   -- owner, receptionist, customer
  PUT    /api/appointments/{appointment_id}  -- owner, receptionist
  DELETE /api/appointments/{appointment_id}  -- owner, receptionist

Customers only ever see appointments booked under their own email, and an
appointment a customer creates is stamped with their email whatever the body
says. Another customer's appointment is reported as not found.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import AppointmentCreate, AppointmentPatch, AppointmentStatus
from api.shaping import ok, paged
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import NotFound
from shop.models import Appointment
from shop.store import ShopStore

router = APIRouter(dependencies=[Depends(get_current_user)])

_bookers = require_roles("owner", "receptionist", "customer")
_editors = require_roles("owner", "receptionist")


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


def _scope(identity: Identity) -> Optional[str]:
    """The email a listing is restricted to, or None for staff."""
    return identity.email if identity.role == "customer" else None


@router.get("/appointments")
def list_appointments(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    status: Optional[AppointmentStatus] = None,
    identity: Identity = Depends(_bookers),
) -> dict:
    return paged(
        _store(request).list_appointments(
            page, limit, status=status.value if status else None, customer_email=_scope(identity)
        )
    )


@router.get("/appointments/{appointment_id}")
def get_appointment(request: Request, appointment_id: int, identity: Identity = Depends(_bookers)) -> dict:
    appointment = _store(request).get_appointment(appointment_id, customer_email=_scope(identity))
    if appointment is None:
        raise NotFound("Appointment not found")
    return ok(appointment)


@router.post("/appointments", status_code=201)
def create_appointment(request: Request, body: AppointmentCreate, identity: Identity = Depends(_bookers)) -> dict:
    fields = body.store_fields()
    if identity.role == "customer":
        fields["customer_email"] = identity.email
    appointment = _store(request).create_appointment(Appointment(**fields))
    return ok(appointment, "Appointment created")


@router.put("/appointments/{appointment_id}")
def update_appointment(
    request: Request, appointment_id: int, body: AppointmentPatch, identity: Identity = Depends(_editors)
) -> dict:
    appointment = _store(request).update_appointment(appointment_id, **body.patch_fields())
    if appointment is None:
        raise NotFound("Appointment not found")
    return ok(appointment, "Appointment updated")


@router.delete("/appointments/{appointment_id}")
def delete_appointment(request: Request, appointment_id: int, identity: Identity = Depends(_editors)) -> dict:
    if not _store(request).delete_appointment(appointment_id):
        raise NotFound("Appointment not found")
    return ok(message="Deleted")
