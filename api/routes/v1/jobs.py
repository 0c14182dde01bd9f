"""
api/routes/v1/jobs.py -- Repair job sheets.

Routes:
  GET    /api/jobs             -- owner, receptionist, mechanic, customer
  GET    /api/jobs/{job_id}    -- owner, receptionist, mechanic, customer
  POST   /api/jobs             -- owner, receptionist (upsert by appointment)
  PUT    /api/jobs/{job_id}    -- owner, receptionist, mechanic
  DELETE /api/jobs/{job_id}    -- owner, receptionist

Customers see only jobs whose linked car carries their email. The scoping is
done by the store in SQL, so paging and totals reflect the scoped result.

A job must reference a car, an appointment, or both; every referenced record
must exist; every task needs a non-empty description. POSTing a job for an
appointment that already has one updates that job (200) instead of creating
a second (201).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.models import JobCreate, JobPatch, JobStatus
from api.shaping import ok, paged
from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from core.errors import NotFound, ValidationFailed
from shop.models import Job, JobTask
from shop.store import ShopStore

router = APIRouter(dependencies=[Depends(get_current_user)])

_readers = require_roles("owner", "receptionist", "mechanic", "customer")
_creators = require_roles("owner", "receptionist")
_updaters = require_roles("owner", "receptionist", "mechanic")


def _store(request: Request) -> ShopStore:
    return request.app.state.shop_store


def _scope(identity: Identity) -> Optional[str]:
    return identity.email if identity.role == "customer" else None


def _check_references(store: ShopStore, car_id: Optional[int], appointment_id: Optional[int]) -> None:
    if car_id is None and appointment_id is None:
        raise ValidationFailed.for_field(
            "car",
            "Either car or appointment must be provided",
            summary="Either car or appointment must be specified",
        )
    if car_id is not None and store.get_car(car_id) is None:
        raise ValidationFailed.for_field("car", "Car not found")
    if appointment_id is not None and store.get_appointment(appointment_id) is None:
        raise ValidationFailed.for_field("appointment", "Appointment not found")


def _tasks(raw: list[dict]) -> list[JobTask]:
    tasks = [JobTask(description=(t.get("description") or "").strip(), completed=bool(t.get("completed"))) for t in raw]
    if any(not t.description for t in tasks):
        raise ValidationFailed.for_field("tasks", "All tasks must have valid descriptions")
    return tasks


def _job_fields(fields: dict) -> dict:
    """Rename the public car/appointment keys to the stored *_id columns."""
    if "car" in fields:
        fields["car_id"] = fields.pop("car")
    if "appointment" in fields:
        fields["appointment_id"] = fields.pop("appointment")
    return fields


@router.get("/jobs")
def list_jobs(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    status: Optional[JobStatus] = None,
    identity: Identity = Depends(_readers),
) -> dict:
    return paged(
        _store(request).list_jobs(page, limit, status=status.value if status else None, customer_email=_scope(identity))
    )


@router.get("/jobs/{job_id}")
def get_job(request: Request, job_id: int, identity: Identity = Depends(_readers)) -> dict:
    job = _store(request).get_job(job_id, customer_email=_scope(identity))
    if job is None:
        raise NotFound("Job not found")
    return ok(job)


@router.post("/jobs", status_code=201)
def create_job(request: Request, response: Response, body: JobCreate, identity: Identity = Depends(_creators)) -> dict:
    store = _store(request)
    fields = _job_fields(body.store_fields())
    _check_references(store, fields["car_id"], fields["appointment_id"])
    fields["tasks"] = _tasks(fields["tasks"])
    # A resubmit for an appointment only changes what the client sent.
    changes = _job_fields(body.patch_fields())
    if "tasks" in changes:
        changes["tasks"] = fields["tasks"]
    job, created = store.save_job(Job(**fields), changes=changes)
    if not created:
        response.status_code = 200
        return ok(job, "Job updated")
    return ok(job, "Job created")


@router.put("/jobs/{job_id}")
def update_job(request: Request, job_id: int, body: JobPatch, identity: Identity = Depends(_updaters)) -> dict:
    store = _store(request)
    existing = store.get_job(job_id)
    if existing is None:
        raise NotFound("Job not found")
    fields = _job_fields(body.patch_fields())
    if "car_id" in fields or "appointment_id" in fields:
        _check_references(
            store,
            fields.get("car_id", existing.car_id),
            fields.get("appointment_id", existing.appointment_id),
        )
    if fields.get("tasks") is not None:
        fields["tasks"] = _tasks(fields["tasks"])
    elif "tasks" in fields:
        fields["tasks"] = []
    job = store.update_job(job_id, **fields)
    if job is None:
        raise NotFound("Job not found")
    return ok(job, "Job updated")


@router.delete("/jobs/{job_id}")
def delete_job(request: Request, job_id: int, identity: Identity = Depends(_creators)) -> dict:
    if not _store(request).delete_job(job_id):
        raise NotFound("Job not found")
    return ok(message="Deleted")
