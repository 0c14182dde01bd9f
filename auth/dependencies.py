"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Request lifecycle for a protected route:
  1. get_current_user()  -- authenticate: pull the bearer token from the
     Authorization header, verify it, attach the Identity to request.state.
  2. require_roles(...)  -- authorize: the identity's role must be in the
     route's allowed set.

try_get_current_user() is the soft variant (returns None on failure). The
write rate limiter uses it to key counters by identity without rejecting
anonymous requests.

Layer rule: no imports from web/, shop/, or cache/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from fastapi import Depends, Request

from auth.models import Identity
from auth.tokens import InvalidToken, resolve_dev_token, verify_token
from core.errors import Forbidden, Unauthenticated


def bearer_token(request: Request) -> Optional[str]:
    """Return the token from an "Authorization: Bearer <token>" header, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def resolve_identity(token: str) -> Identity:
    """Turn a raw bearer token into an Identity or raise InvalidToken."""
    dev = resolve_dev_token(token)
    if dev is not None:
        return dev
    return verify_token(token)


def try_get_current_user(request: Request) -> Identity | None:
    """Attempt to authenticate the request. Never raises."""
    token = bearer_token(request)
    if token is None:
        return None
    try:
        return resolve_identity(token)
    except InvalidToken:
        return None


def get_current_user(request: Request) -> Identity:
    """Require authentication. Raises Unauthenticated (401) on a missing or bad token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_user)): ...
    """
    token = bearer_token(request)
    if token is None:
        raise Unauthenticated("Missing token")
    try:
        identity = resolve_identity(token)
    except InvalidToken as exc:
        raise Unauthenticated("Invalid token") from exc
    request.state.identity = identity
    return identity


def authorize(identity: Optional[Identity], allowed_roles: Iterable[str]) -> Identity:
    """Return identity unchanged if its role is allowed, else raise Forbidden.

    An empty allowed set admits any authenticated identity.
    """
    allowed = frozenset(allowed_roles)
    if identity is None or (allowed and identity.role not in allowed):
        raise Forbidden()
    return identity


def require_roles(*roles: str) -> Callable[..., Identity]:
    """Build a dependency that authenticates and then checks the role set.

    Use as a FastAPI dependency:
        @router.delete("/{item_id}")
        def route(identity: Identity = Depends(require_roles("owner"))): ...
    """
    allowed = frozenset(roles)

    def dependency(identity: Identity = Depends(get_current_user)) -> Identity:
        return authorize(identity, allowed)

    dependency.__name__ = f"require_roles_{'_'.join(sorted(allowed)) or 'any'}"
    return dependency
