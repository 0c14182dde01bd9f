"""
web/routes.py -- Single-page-application hosting.

The built frontend (FRONTEND_DIST, default frontend/dist) is served from the
site root. Any path that is not a real file falls back to index.html so the
client-side router can handle deep links such as /jobs/42 on a hard refresh.

Paths under /api never fall back: an unmatched API path gets the JSON
"Route not found" envelope, whatever the method.

This router is a catch-all, so asgi.py mounts it after every API router.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from core.config import get_settings
from core.errors import NotFound

logger = logging.getLogger("garage.web")

router = APIRouter()

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def frontend_root() -> Path:
    return Path(get_settings().frontend_dist)


def _static_file(root: Path, relative: str) -> Path | None:
    """Return the file for relative under root, refusing anything outside root."""
    if not relative:
        return None
    root = root.resolve()
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root) or not candidate.is_file():
        return None
    return candidate


@router.api_route("/{full_path:path}", methods=_ALL_METHODS, include_in_schema=False)
def spa(request: Request, full_path: str) -> FileResponse:
    if full_path == "api" or full_path.startswith("api/"):
        raise NotFound("Route not found")
    if request.method not in ("GET", "HEAD"):
        raise NotFound("Route not found")
    root = frontend_root()
    static = _static_file(root, full_path)
    if static is not None:
        return FileResponse(static)
    index = root / "index.html"
    if not index.is_file():
        logger.warning("SPA entry document missing at %s", index)
        raise NotFound("Frontend not built")
    return FileResponse(index)
