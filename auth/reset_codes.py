"""
auth/reset_codes.py -- Two-step password reset codes.

Step 1 (issue_reset_code): a random 6-digit code is stored under the
account's email with a short TTL (default 5 minutes). Issuing again replaces
the previous code.

Step 2 (consume_reset_code): the submitted code is compared in constant time.
A match deletes the entry, so every code is single-use.

Storage is any cache.store.ExpiringStore, so deployments with several
workers can point RESET_CODE_STORE_PATH at a shared file instead of keeping
codes in process memory.
"""

from __future__ import annotations

import hmac
import secrets

from auth.store import normalize_email
from cache.store import ExpiringStore

_KEY_PREFIX = "reset:"


def _key(email: str) -> str:
    return f"{_KEY_PREFIX}{normalize_email(email)}"


def generate_code() -> str:
    """Return a uniformly random code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


def issue_reset_code(store: ExpiringStore, email: str, ttl_seconds: int) -> str:
    code = generate_code()
    store.set(_key(email), {"code": code}, ttl=ttl_seconds)
    return code


def consume_reset_code(store: ExpiringStore, email: str, code: str) -> bool:
    """Return True and invalidate the code if it matches the live entry for email."""
    record = store.get(_key(email))
    if record is None:
        return False
    expected = str(record.get("code", "")).encode("utf-8")
    if not hmac.compare_digest(expected, code.strip().encode("utf-8")):
        return False
    store.delete(_key(email))
    return True
