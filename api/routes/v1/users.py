"""
api/routes/v1/users.py -- Staff and customer account administration.

Routes:
  GET    /api/users                              -- owner, receptionist
  GET    /api/users/{user_id}                    -- owner, receptionist
  POST   /api/users                              -- owner
  PUT    /api/users/{user_id}                    -- owner
  DELETE /api/users/{user_id}                    -- owner
  POST   /api/users/mechanics/reset-password-nic -- owner

Passwords never appear in responses: shaping strips hashed_password.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import MechanicNicReset, UserCreate, UserPatch
from api.shaping import ok, paged
from auth.dependencies import require_roles
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import NotFound, ValidationFailed

logger = logging.getLogger("garage.auth")

router = APIRouter()

_staff = require_roles("owner", "receptionist")
_owner = require_roles("owner")


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


@router.get("/users")
def list_users(
    request: Request,
    page: int = Query(1, ge=1, le=10000),
    limit: int = Query(10, ge=1, le=1000),
    search: str = Query("", max_length=100),
    role: Optional[Role] = None,
    identity: Identity = Depends(_staff),
) -> dict:
    return paged(_store(request).list_users(page, limit, search.strip(), role.value if role else None))


# Registered before /users/{user_id} so the literal path is not captured as an id.
@router.post("/users/mechanics/reset-password-nic")
def reset_mechanic_password(request: Request, body: MechanicNicReset, identity: Identity = Depends(_owner)) -> dict:
    """Reset a mechanic's password to their NIC number."""
    store = _store(request)
    mechanic = store.get_mechanic_by_nic(body.nic)
    if mechanic is None:
        raise NotFound("Mechanic not found")
    store.set_password(mechanic.id, hash_password(body.nic))
    logger.info("Mechanic id=%s password reset to NIC by user id=%s", mechanic.id, identity.id)
    return ok(message="Password reset to NIC")


@router.get("/users/{user_id}")
def get_user(request: Request, user_id: int, identity: Identity = Depends(_staff)) -> dict:
    user = _store(request).get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return ok(user)


@router.post("/users", status_code=201)
def create_user(request: Request, body: UserCreate, identity: Identity = Depends(_owner)) -> dict:
    """Create an account. The initial password is password, or else the NIC."""
    store = _store(request)
    user_id = store.create_user(
        User(
            name=body.name,
            email=body.email,
            role=body.role,
            hashed_password=hash_password(body.password or body.nic),
            phone=body.phone,
            address=body.address,
            nic=body.nic,
        )
    )
    logger.info("User id=%s created by user id=%s", user_id, identity.id)
    return ok(store.get_by_id(user_id), "User created")


@router.put("/users/{user_id}")
def update_user(request: Request, user_id: int, body: UserPatch, identity: Identity = Depends(_owner)) -> dict:
    fields = body.patch_fields()
    if not fields:
        raise ValidationFailed("No fields to update.")
    user = _store(request).update_user(user_id, **fields)
    if user is None:
        raise NotFound("User not found")
    return ok(user, "User updated")


@router.delete("/users/{user_id}")
def delete_user(request: Request, user_id: int, identity: Identity = Depends(_owner)) -> dict:
    if not _store(request).delete_user(user_id):
        raise NotFound("User not found")
    return ok(message="Deleted")
