"""
api/routes/v1/auth.py -- Registration, login and password reset endpoints.

Routes:
  POST /api/auth/register          -- create an account; 201 + token + profile
  POST /api/auth/login             -- password login; token + profile
  GET  /api/auth/me                -- current identity claims (requires auth)
  POST /api/auth/forgot-password   -- issue a 6-digit reset code
  POST /api/auth/reset-password    -- consume the code and set a new password

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  authenticate_user() provides timing equalization -- use it, never inline.
  Login failures return one generic "Invalid credentials" message whether the
  email is unknown or the password is wrong.
  Cache-Control: no-store on every response that carries a token.
  Reset codes are single-use, expire after RESET_CODE_TTL_SECONDS, and are
  only written to the log in debug mode (there is no mail transport).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from api.shaping import ok
from auth.dependencies import get_current_user
from auth.models import Identity, User
from auth.reset_codes import consume_reset_code, issue_reset_code
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password, identity_for, issue_token
from core.config import get_settings
from core.errors import Forbidden, NotFound, Unauthenticated, ValidationFailed

logger = logging.getLogger("garage.auth")

_settings = get_settings()

router = APIRouter()


def _public_profile(user: User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


@router.post("/auth/register", status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> dict:
    """Create an account and sign the caller in.

    The UNIQUE index on users.email is the source of truth: a duplicate email
    raises Conflict from the store (409 "User already exists").
    """
    if not _settings.self_registration_enabled:
        raise Forbidden("Self-registration is disabled")
    user_store: UserStore = request.app.state.user_store
    user_id = user_store.create_user(
        User(name=body.name, email=body.email, role=body.role, hashed_password=hash_password(body.password))
    )
    user = user_store.get_by_id(user_id)
    logger.info("Registered user id=%s role=%s", user.id, user.role)
    response.headers["Cache-Control"] = "no-store"
    return ok({"token": issue_token(identity_for(user)), "user": _public_profile(user)}, "Registered")


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
def login(request: Request, response: Response, body: LoginRequest) -> dict:
    """Authenticate with email and password; return a bearer token."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        logger.info("Failed login for %s", body.email.lower())
        raise Unauthenticated("Invalid credentials")
    response.headers["Cache-Control"] = "no-store"
    return ok({"token": issue_token(identity_for(user)), "user": _public_profile(user)}, "Logged in")


@router.get("/auth/me")
def me(identity: Identity = Depends(get_current_user)) -> dict:
    return ok(identity.claims())


@router.post("/auth/forgot-password")
def forgot_password(request: Request, body: ForgotPasswordRequest) -> dict:
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(body.email)
    if user is None:
        raise NotFound("User not found")
    code = issue_reset_code(request.app.state.reset_codes, user.email, _settings.reset_code_ttl_seconds)
    if _settings.debug:
        logger.info("Password reset code for %s: %s", user.email, code)
    else:
        logger.info("Password reset code issued for user id=%s", user.id)
    return ok(message="Reset code sent")


@router.post("/auth/reset-password")
def reset_password(request: Request, body: ResetPasswordRequest) -> dict:
    if not consume_reset_code(request.app.state.reset_codes, body.email, body.code):
        raise ValidationFailed("Invalid or expired code")
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(body.email)
    if user is None:
        raise NotFound("User not found")
    user_store.set_password(user.id, hash_password(body.new_password))
    logger.info("Password reset for user id=%s", user.id)
    return ok(message="Password reset successful")
