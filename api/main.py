"""
api/main.py -- FastAPI application entry point for the garage manager.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency
  4. security_headers      -- nosniff / frame deny / referrer policy
  5. limit_body_size       -- 413 for bodies over MAX_BODY_BYTES
  6. limit_writes          -- global write limiter (api.limiter.WriteRateLimiter)
  7. SlowAPIMiddleware     -- enforces per-route limits from api.limiter

Starlette makes the most recently registered middleware the outermost one,
so registration below runs from innermost to outermost.

Lifespan handles startup (stores, reset-code store, write limiter, purge task)
and shutdown (cancel purge task, close connections) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import WriteRateLimiter, limiter
from api.routes.v1.appointments import router as appointments_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.cars import router as cars_router
from api.routes.v1.inventory import router as inventory_router
from api.routes.v1.jobs import router as jobs_router
from api.routes.v1.mechanics import router as mechanics_router
from api.routes.v1.payments import router as payments_router
from api.routes.v1.reports import router as reports_router
from api.routes.v1.users import router as users_router
from api.shaping import error_body
from auth.store import UserStore
from cache.store import build_expiring_store
from core.config import get_settings
from core.errors import ApiError, RateLimited
from shop.store import ShopStore

APP_NAME = "garage-manager"
APP_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("garage.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: float = 60.0) -> None:
    """Drop expired password-reset codes every minute.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        removed = await run_in_threadpool(app.state.reset_codes.purge_expired)
        if removed:
            logger.info("Purged %d expired reset codes", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup and close them on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The purge task is started last because it references
    app.state.reset_codes.
    """
    logger.info("Garage manager API starting up (mode=%s)", settings.runtime_mode)
    app.state.user_store = UserStore(settings.database_url)
    app.state.shop_store = ShopStore(settings.database_url)
    app.state.reset_codes = build_expiring_store(settings.reset_code_store_path)
    app.state.write_limiter = WriteRateLimiter(
        settings.rate_limit_max,
        settings.rate_limit_window_seconds,
        settings.rate_limit_storage_uri,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.reset_codes.close()
    app.state.shop_store.close()
    app.state.user_store.close()
    logger.info("Garage manager API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Garage Manager API",
    description="Customers, vehicles, appointments, job sheets, inventory, mechanics, payments and PDF reports.",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    redoc_url=None,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Middleware stack (innermost first; see module docstring)
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def limit_writes(request: Request, call_next):
    """Apply the global write limiter to mutating /api requests."""
    write_limiter: WriteRateLimiter | None = getattr(request.app.state, "write_limiter", None)
    if write_limiter is not None and not await run_in_threadpool(write_limiter.allow, request):
        exc = RateLimited()
        response = JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))
        response.headers["Retry-After"] = str(await run_in_threadpool(write_limiter.retry_after, request))
        return response
    return await call_next(request)


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """Reject requests whose declared Content-Length exceeds MAX_BODY_BYTES."""
    length = request.headers.get("content-length")
    if length is not None and length.isdigit() and int(length) > settings.max_body_bytes:
        return JSONResponse(
            status_code=413,
            content=error_body("payload_too_large", "Request body too large"),
        )
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_host_list)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(cars_router, prefix="/api", tags=["Cars"])
app.include_router(appointments_router, prefix="/api", tags=["Appointments"])
app.include_router(jobs_router, prefix="/api", tags=["Jobs"])
app.include_router(inventory_router, prefix="/api", tags=["Inventory"])
app.include_router(mechanics_router, prefix="/api", tags=["Mechanics"])
app.include_router(payments_router, prefix="/api", tags=["Payments"])
app.include_router(reports_router, prefix="/api", tags=["Reports"])
# Web UI router is mounted by asgi.py, not here.
# api/ and web/ are independent layers -- only the top-level asgi.py imports both.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, code, message, errors?}
# envelope so clients parse errors uniformly.
# ---------------------------------------------------------------------------


def _details(exc: Exception) -> str | None:
    """Traceback text for the response body, debug mode only."""
    if not settings.debug:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.errors, _details(exc) if exc.status_code >= 500 else None),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a per-route slowapi limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    limited = RateLimited()
    response = JSONResponse(status_code=429, content=error_body(limited.code, limited.message))
    response.headers["Retry-After"] = str(retry_after)
    return response


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts) or "body"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message} entry per failed constraint."""
    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body("validation_failed", "Validation failed", errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(f"http_{exc.status_code}", message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log always and to the response body only in
    debug mode.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body("internal_error", "An unexpected error occurred.", details=_details(exc)),
    )


# ---------------------------------------------------------------------------
# Health and version
#
# Defined directly in main.py (not in a router) so they are always reachable.
# Both are exempt from authentication and rate limiting.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> dict:
    """Liveness plus a trivial query against each store."""
    database = "ok"
    try:
        request.app.state.user_store.ping()
        request.app.state.shop_store.ping()
    except Exception:
        logger.exception("Health check database ping failed")
        database = "unavailable"
    return {"success": True, "data": {"status": "ok", "database": database}}


@app.get("/api/version", tags=["Health"])
def version() -> dict:
    return {"success": True, "data": {"name": APP_NAME, "version": APP_VERSION, "env": settings.runtime_mode}}
