"""
auth/tokens.py -- Credential & token service: JWT issue/verify and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the identity claims id, role, name, email plus an expiry (default
       7 days). verify_token() raises InvalidToken on a bad signature, an
       expired token, or missing claims -- the dependency layer turns that
       into a 401.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  Development token: a fixed bearer string (DEV_AUTH_TOKEN) is accepted
       verbatim only when DEBUG=true. In production mode resolve_dev_token()
       returns None before even looking at the token, so the bypass cannot be
       reached by configuration mistakes alone.

Layer rule: no imports from api/, web/, shop/, or cache/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("garage.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("id", "role")


class InvalidToken(Exception):
    """Raised when a bearer token fails signature, expiry, or claim checks."""


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates input beyond 72 bytes; request models cap passwords at
    128 characters, well inside what users type in practice.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed or empty stored hash
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("garage_timing_dummy")


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


def issue_token(identity: Identity, expire_seconds: int = 0) -> str:
    """Sign a JWT embedding the identity claims.

    Args:
        identity:       The caller the token will represent.
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    payload = {
        **identity.claims(),
        "sub": str(identity.id),
        "exp": datetime.now(timezone.utc) + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify_token(token: str) -> Identity:
    """Verify signature and expiry, returning the embedded identity.

    Raises InvalidToken on any failure. python-jose checks "exp" itself and
    raises ExpiredSignatureError (a JWTError subclass) for stale tokens.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise InvalidToken("Token is missing identity claims")
    try:
        user_id = int(payload["id"])
    except (TypeError, ValueError) as exc:
        raise InvalidToken("Token carries a malformed id claim") from exc
    return Identity(
        id=user_id,
        role=str(payload["role"]),
        name=str(payload.get("name") or ""),
        email=str(payload.get("email") or ""),
    )


def identity_for(user: User) -> Identity:
    return Identity(id=user.id, role=user.role, name=user.name, email=user.email)


# ---------------------------------------------------------------------------
# Development bypass
# ---------------------------------------------------------------------------

DEV_IDENTITY = Identity(id=0, role="owner", name="Development Owner", email="owner@test.com")


def resolve_dev_token(token: str) -> Optional[Identity]:
    """Return the development identity if token is the configured dev token.

    Only reachable when DEBUG=true and DEV_AUTH_TOKEN is non-empty. Uses a
    constant-time comparison so the token cannot be recovered by timing.
    """
    if not _settings.debug or not _settings.dev_auth_token:
        return None
    if hmac.compare_digest(token.encode("utf-8"), _settings.dev_auth_token.encode("utf-8")):
        logger.warning("Development token used -- request runs as %s", DEV_IDENTITY.email)
        return DEV_IDENTITY
    return None


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure. Callers report the same
    "Invalid credentials" error for both cases.
    """
    user = store.get_by_email(email)
    if user is None or not user.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
