"""
api/shaping.py -- Outbound document normalisation and envelope builders.

Every document leaving the API passes through shape(): dataclasses become
dicts, keys become camelCase, and internal bookkeeping fields are stripped.
The same transform applies to single documents, lists, and nested values.

Envelope builders return plain dicts; FastAPI serialises them.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any, Optional

from pydantic.alias_generators import to_camel

from core.models import Page

# Never leave the process: credentials, concurrency counters, and storage-engine
# artefacts from imported documents.
INTERNAL_FIELDS = frozenset({"hashed_password", "password_hash", "version", "_id", "__v"})


def shape(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, dict):
        return {to_camel(k): shape(v) for k, v in value.items() if k not in INTERNAL_FIELDS}
    if isinstance(value, (list, tuple)):
        return [shape(v) for v in value]
    return value


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = shape(data)
    if message is not None:
        body["message"] = message
    return body


def paged(page: Page) -> dict:
    return {
        "success": True,
        "data": shape(page.items),
        "page": page.page,
        "limit": page.limit,
        "total": page.total,
    }


def error_body(code: str, message: str, errors: Optional[list[dict]] = None, details: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"success": False, "code": code, "message": message}
    if errors:
        body["errors"] = errors
    if details is not None:
        body["details"] = details
    return body
